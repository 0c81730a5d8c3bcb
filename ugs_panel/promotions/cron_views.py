from accounts.cron_views import CronJobView

from .tasks import demote_fp_users


class DemoteFPUsersCronView(CronJobView):
    task = staticmethod(demote_fp_users)
    job_name = 'demote-fp-users'
