"""
HTTP-триггеры для внешнего планировщика.

GET с ``Authorization: Bearer <CRON_SECRET>`` - плановый запуск,
POST от администратора - ручной запуск той же задачи.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from ugs_panel.sentry_config import capture_exception

from .authentication import CronSecretAuthentication
from .permissions import IsCronOrAdmin
from .tasks import resume_suspended_users, update_delinquent_status

logger = logging.getLogger(__name__)


class CronJobView(APIView):
    """Базовый класс: подклассы задают ``task`` (celery task) и ``job_name``."""
    authentication_classes = [CronSecretAuthentication, JWTAuthentication]
    permission_classes = [IsCronOrAdmin]
    task = None
    job_name = ''

    def run_job(self):
        # Синхронно: планировщику нужен результат в ответе
        return self.task()

    def _handle(self, request):
        trigger = 'cron' if request.auth == 'cron' else f'admin:{request.user.email}'
        logger.info(f'[CRON] {self.job_name} started by {trigger}')
        try:
            result = self.run_job()
        except Exception as e:
            logger.exception(f'[CRON] {self.job_name} failed: {e}')
            capture_exception(e, extra={'cron_job': self.job_name})
            return Response(
                {'success': False, 'detail': f'{self.job_name} failed', 'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        logger.info(f'[CRON] {self.job_name} finished: {result}')
        return Response({'success': True, 'job': self.job_name, 'result': result})

    def get(self, request):
        return self._handle(request)

    def post(self, request):
        return self._handle(request)


class UpdateDelinquentStatusCronView(CronJobView):
    task = staticmethod(update_delinquent_status)
    job_name = 'update-delinquent-status'


class ResumeSuspendedUsersCronView(CronJobView):
    task = staticmethod(resume_suspended_users)
    job_name = 'resume-suspended-users'
