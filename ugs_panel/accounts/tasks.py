"""Celery tasks for membership maintenance."""
import logging

from celery import shared_task
from django.utils import timezone

from ugs_panel.db import with_db_retry

from .membership import MembershipError, mark_delinquent_users, resume_membership
from .models import CustomUser
from .roles import MEMBERSHIP_SUSPENDED

logger = logging.getLogger(__name__)


@shared_task
def update_delinquent_status():
    """past_due дольше 7 дней -> delinquent."""
    result = with_db_retry(mark_delinquent_users)
    result['timestamp'] = timezone.now().isoformat()
    return result


def _resume_due_users(now):
    due = CustomUser.objects.filter(
        membership_status=MEMBERSHIP_SUSPENDED,
        suspension_end_date__isnull=False,
        suspension_end_date__lte=now,
    )
    resumed, failed = 0, 0
    for user in due:
        try:
            resume_membership(user, reason='休会期間終了による自動復帰', strict_stripe=False)
            resumed += 1
        except MembershipError as e:
            failed += 1
            logger.error(f'[CRON] Failed to resume {user.email}: {e}')
    return resumed, failed


@shared_task
def resume_suspended_users():
    """Возвращает участников, у которых истёк срок приостановки."""
    now = timezone.now()
    resumed, failed = with_db_retry(_resume_due_users, now)
    logger.info(f'[CRON] Suspended users resumed={resumed} failed={failed}')
    return {
        'resumed': resumed,
        'failed': failed,
        'timestamp': now.isoformat(),
    }
