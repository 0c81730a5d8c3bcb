"""
Самообслуживание участника: отмена, приостановка, возобновление членства.
"""
from datetime import timedelta
import logging

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from .models import Subscription
from .roles import (
    MEMBERSHIP_ACTIVE,
    MEMBERSHIP_CANCELED,
    MEMBERSHIP_DELINQUENT,
    MEMBERSHIP_EXPIRED,
    MEMBERSHIP_PAST_DUE,
    MEMBERSHIP_SUSPENDED,
    MEMBERSHIP_TERMINATED,
)
from .stripe_service import StripeService, StripeServiceError
from .subscriptions_utils import get_current_subscription

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = '理由未記入'
MAX_SUSPENSION_MONTHS = 3
DELINQUENT_AFTER = timedelta(days=7)


class MembershipError(Exception):
    """Base exception for membership state changes (maps to HTTP 400)."""
    pass


def cancel_membership(user, reason='', immediate=False):
    """
    Отмена членства пользователем.

    Raises:
        MembershipError: статус не допускает отмену
        StripeServiceError: Stripe отказал в отмене подписки
    """
    if user.membership_status in (MEMBERSHIP_TERMINATED, MEMBERSHIP_EXPIRED):
        raise MembershipError('このアカウントは退会申請ができません')

    subscription = get_current_subscription(user)
    if subscription and subscription.stripe_subscription_id:
        StripeService.cancel_subscription(subscription.stripe_subscription_id, immediate=immediate)

    now = timezone.now()
    user.membership_status = MEMBERSHIP_CANCELED
    user.membership_status_changed_at = now
    user.membership_status_reason = 'ユーザーによる退会申請'
    user.canceled_at = now
    user.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
    user.save(update_fields=[
        'membership_status', 'membership_status_changed_at', 'membership_status_reason',
        'canceled_at', 'cancellation_reason', 'updated_at',
    ])
    logger.info(f'Membership canceled by user {user.email} (immediate={immediate})')
    return user


def validate_suspension_end(end_date, now=None):
    now = now or timezone.now()
    if end_date is None:
        raise MembershipError('休会終了日を指定してください')
    if end_date <= now:
        raise MembershipError('休会終了日は未来の日付を指定してください')
    if end_date > now + relativedelta(months=MAX_SUSPENSION_MONTHS):
        raise MembershipError(f'休会期間は最大{MAX_SUSPENSION_MONTHS}ヶ月までです')


def suspend_membership(user, end_date, reason=''):
    """
    Приостановка (休会) максимум на 3 месяца. Только для active.

    Raises:
        MembershipError, StripeServiceError
    """
    validate_suspension_end(end_date)
    if user.membership_status != MEMBERSHIP_ACTIVE:
        raise MembershipError('有効会員のみ休会申請が可能です')

    subscription = get_current_subscription(user)
    if subscription and subscription.stripe_subscription_id:
        StripeService.pause_subscription(subscription.stripe_subscription_id, end_date)

    user.set_membership_status(MEMBERSHIP_SUSPENDED, reason or 'ユーザーによる休会申請', save=False)
    user.suspension_start_date = timezone.now()
    user.suspension_end_date = end_date
    user.save()
    logger.info(f'Membership suspended: {user.email} until {end_date.isoformat()}')
    return user


def resume_membership(user, reason='ユーザーによる休会解除', strict_stripe=True):
    """
    Возврат из приостановки.

    При ``strict_stripe=False`` (cron) ошибка Stripe логируется, а статус в БД всё равно меняется.
    """
    if user.membership_status != MEMBERSHIP_SUSPENDED:
        raise MembershipError('休会中のユーザーのみ休会解除が可能です')

    subscription = get_current_subscription(user)
    if subscription and subscription.stripe_subscription_id:
        try:
            StripeService.resume_subscription(subscription.stripe_subscription_id)
        except StripeServiceError as e:
            if strict_stripe:
                raise
            logger.error(f'Failed to resume Stripe subscription for {user.email}: {e}')

    user.set_membership_status(MEMBERSHIP_ACTIVE, reason, save=False)
    user.reactivated_at = timezone.now()
    user.suspension_start_date = None
    user.suspension_end_date = None
    user.save()
    logger.info(f'Membership resumed: {user.email}')
    return user


def start_reactivation(user):
    """Checkout для возврата ранее отменившего участника."""
    if user.membership_status != MEMBERSHIP_CANCELED:
        raise MembershipError('退会済みユーザーのみ再有効化が可能です')
    subscription = get_current_subscription(user)
    customer_id = subscription.stripe_customer_id if subscription else ''
    return StripeService.create_reactivation_checkout(user, customer_id)


def mark_delinquent_users(now=None):
    """
    past_due дольше 7 дней -> delinquent.

    Returns:
        dict: {'checked': int, 'updated': int}
    """
    from .models import CustomUser

    now = now or timezone.now()
    threshold = now - DELINQUENT_AFTER
    candidates = CustomUser.objects.filter(
        membership_status=MEMBERSHIP_PAST_DUE,
        delinquent_since__isnull=False,
        delinquent_since__lte=threshold,
    )
    checked = candidates.count()
    updated = candidates.update(
        membership_status=MEMBERSHIP_DELINQUENT,
        membership_status_changed_at=now,
        membership_status_reason='支払い遅延が7日以上継続',
        updated_at=now,
    )
    logger.info(f'[CRON] Delinquent update: checked={checked} updated={updated}')
    return {'checked': checked, 'updated': updated}


def subscription_summary(user):
    from .subscriptions_utils import get_subscription_status

    subscription = get_current_subscription(user)
    return {
        'status': get_subscription_status(subscription),
        'membership_status': user.membership_status,
        'current_period_end': subscription.current_period_end if subscription else None,
        'stripe_customer_id': subscription.stripe_customer_id if subscription else '',
        'is_active': bool(subscription and subscription.status == Subscription.STATUS_ACTIVE),
        'suspension_end_date': user.suspension_end_date,
        'canceled_at': user.canceled_at,
    }
