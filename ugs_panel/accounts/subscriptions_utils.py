import logging

from .models import Subscription

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATUS_NONE = 'none'
SUBSCRIPTION_STATUS_UNKNOWN = 'unknown'

KNOWN_STATUSES = {
    Subscription.STATUS_ACTIVE,
    Subscription.STATUS_CANCELED,
    Subscription.STATUS_PAST_DUE,
    Subscription.STATUS_UNPAID,
    Subscription.STATUS_PENDING,
}


def get_current_subscription(user):
    """Последняя подписка пользователя или None."""
    return Subscription.objects.filter(user=user).order_by('-created_at', '-id').first()


def get_subscription_status(subscription) -> str:
    """none / active / canceled / past_due / unpaid / pending / unknown"""
    if subscription is None:
        return SUBSCRIPTION_STATUS_NONE
    if subscription.status in KNOWN_STATUSES:
        return subscription.status
    logger.warning(f'Unexpected subscription status: id={subscription.id} status={subscription.status}')
    return SUBSCRIPTION_STATUS_UNKNOWN


def find_subscription_by_stripe_id(stripe_subscription_id):
    if not stripe_subscription_id:
        return None
    return Subscription.objects.select_related('user').filter(
        stripe_subscription_id=stripe_subscription_id
    ).first()
