"""Celery tasks for role maintenance."""
import logging

from celery import shared_task
from dateutil.relativedelta import relativedelta
from django.utils import timezone

from ugs_panel.db import with_db_retry

from .services import demote_flagged_fp_users

logger = logging.getLogger(__name__)


@shared_task
def demote_fp_users(now=None):
    """1-го числа: fp, не прошедшие 全体MTG прошлого месяца, становятся member."""
    now = timezone.localtime(now or timezone.now())
    current_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    last_month = current_month - relativedelta(months=1)

    result = with_db_retry(demote_flagged_fp_users, last_month, current_month)
    logger.info(f'[CRON] FP demotion: checked={result["checked"]} demoted={result["demoted"]}')
    result['timestamp'] = now.isoformat()
    return result
