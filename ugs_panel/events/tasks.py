"""Celery tasks for recurring events."""
import logging
from datetime import date, datetime, time, timedelta

from celery import shared_task
from dateutil.relativedelta import relativedelta
from django.utils import timezone

from .models import Event

logger = logging.getLogger(__name__)

MONTHLY_MEETING_START = time(19, 0)
MONTHLY_MEETING_END = time(21, 0)
ATTENDANCE_GRACE = timedelta(hours=24)


def first_sunday(year, month):
    first = date(year, month, 1)
    return first + timedelta(days=(6 - first.weekday()) % 7)


def _aware(day, at):
    return timezone.make_aware(datetime.combine(day, at), timezone.get_default_timezone())


def ensure_monthly_meeting(year, month):
    """
    Создаёт 全体MTG на первое воскресенье месяца, если его ещё нет.

    Returns:
        Event | None: созданное мероприятие или None, если уже существует
    """
    day = first_sunday(year, month)
    exists = Event.objects.filter(
        is_recurring=True,
        recurrence_pattern=Event.RECURRENCE_MONTHLY_FIRST_SUNDAY,
        date__date=day,
    ).exists()
    if exists:
        return None

    start = _aware(day, MONTHLY_MEETING_START)
    end = _aware(day, MONTHLY_MEETING_END)
    event = Event.objects.create(
        title=f'全体MTG {year}年{month}月',
        description='毎月第1日曜日に開催される全体ミーティングです。',
        date=start,
        time=f'{MONTHLY_MEETING_START:%H:%M}-{MONTHLY_MEETING_END:%H:%M}',
        event_type=Event.TYPE_REQUIRED,
        target_roles=[Event.TARGET_ALL],
        venue_type=Event.VENUE_HYBRID,
        attendance_deadline=end + ATTENDANCE_GRACE,
        is_recurring=True,
        recurrence_pattern=Event.RECURRENCE_MONTHLY_FIRST_SUNDAY,
    )
    logger.info(f'[CRON] Monthly meeting created: {event.id} {day}')
    return event


@shared_task
def generate_monthly_events(now=None):
    """全体MTG на текущий и следующий месяц."""
    now = timezone.localtime(now or timezone.now())
    created = []
    for offset in (0, 1):
        month_start = now.date().replace(day=1) + relativedelta(months=offset)
        event = ensure_monthly_meeting(month_start.year, month_start.month)
        if event is not None:
            created.append({
                'id': event.id,
                'title': event.title,
                'date': event.date.isoformat(),
            })
    return {
        'created': created,
        'timestamp': now.isoformat(),
    }
