from accounts.cron_views import CronJobView

from .tasks import generate_monthly_events


class GenerateMonthlyEventsCronView(CronJobView):
    task = staticmethod(generate_monthly_events)
    job_name = 'generate-monthly-events'
