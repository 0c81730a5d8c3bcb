"""Helper utilities for in-app notifications."""
import logging

from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


def create_notification(user, notification_type, title, message='', priority=Notification.PRIORITY_INFO, action_url=''):
    notification = Notification.objects.create(
        user=user,
        notification_type=notification_type,
        priority=priority,
        title=title,
        message=message,
        action_url=action_url,
    )
    logger.info(f'Notification created: user={user.id} type={notification_type}')
    return notification


def mark_as_read(notification):
    if notification.is_read:
        return notification
    notification.is_read = True
    notification.read_at = timezone.now()
    notification.save(update_fields=['is_read', 'read_at'])
    return notification


def mark_all_as_read(user) -> int:
    return Notification.objects.filter(user=user, is_read=False).update(
        is_read=True,
        read_at=timezone.now(),
    )
