"""
Обработчики событий Stripe webhook.

Каждый обработчик получает ``data.object`` события как обычный dict
(payload уже проверен по подписи) и должен быть идемпотентным: Stripe
повторяет доставку, пока не получит 2xx.
"""
import logging

from django.db import transaction
from django.utils import timezone

from . import chatwork
from .email_service import email_service
from .models import CustomUser, PendingUser, Subscription, Notification
from .notifications import create_notification
from .registration import complete_registration
from .roles import MEMBERSHIP_ACTIVE, MEMBERSHIP_CANCELED, MEMBERSHIP_CANCELLATION_PENDING, MEMBERSHIP_PAST_DUE
from .stripe_service import from_stripe_timestamp
from .subscriptions_utils import find_subscription_by_stripe_id

logger = logging.getLogger(__name__)


def _invoice_subscription_id(invoice):
    """ID подписки из invoice (старый и новый формат API)."""
    if invoice.get('subscription'):
        return invoice['subscription']
    parent = invoice.get('parent') or {}
    details = parent.get('subscription_details') or {}
    return details.get('subscription')


def _invoice_period_end(invoice):
    lines = (invoice.get('lines') or {}).get('data') or []
    if lines:
        period = lines[0].get('period') or {}
        return from_stripe_timestamp(period.get('end'))
    return from_stripe_timestamp(invoice.get('period_end'))


def _session_email(session):
    metadata = session.get('metadata') or {}
    details = session.get('customer_details') or {}
    return (
        metadata.get('user_email')
        or details.get('email')
        or session.get('customer_email')
        or ''
    ).lower()


def _activate_existing_user(user, session, reason):
    """Активирует существующего пользователя и привязывает к нему подписку из сессии."""
    stripe_subscription_id = session.get('subscription')
    subscription = find_subscription_by_stripe_id(stripe_subscription_id)
    if subscription is None:
        subscription = Subscription(user=user, stripe_subscription_id=stripe_subscription_id or None)
    subscription.stripe_customer_id = session.get('customer') or subscription.stripe_customer_id
    subscription.status = Subscription.STATUS_ACTIVE
    subscription.save()

    user.set_membership_status(MEMBERSHIP_ACTIVE, reason, save=False)
    user.is_active = True
    user.delinquent_since = None
    user.save()
    return user


def handle_checkout_session_completed(session):
    metadata = session.get('metadata') or {}
    session_type = metadata.get('type')

    if session_type == 'event':
        from events.services import EventPaymentService
        EventPaymentService.mark_paid_from_session(session)
        return

    if session_type == 'reactivation':
        user = CustomUser.objects.filter(pk=metadata.get('user_id')).first()
        if user is None:
            logger.warning(f'[STRIPE] Reactivation for unknown user: {metadata.get("user_id")}')
            return
        with transaction.atomic():
            _activate_existing_user(user, session, '再入会')
            user.reactivated_at = timezone.now()
            user.save(update_fields=['reactivated_at', 'updated_at'])
        logger.info(f'[STRIPE] User reactivated: {user.email}')
        return

    _handle_subscription_signup(session)


def _handle_subscription_signup(session):
    metadata = session.get('metadata') or {}
    email = _session_email(session)

    existing = CustomUser.objects.filter(email__iexact=email).first() if email else None
    if existing is not None:
        with transaction.atomic():
            _activate_existing_user(existing, session, '決済完了')
        logger.info(f'[STRIPE] Existing user activated: {existing.email}')
        return

    pending = None
    if metadata.get('pending_user_id'):
        pending = PendingUser.objects.filter(pk=metadata['pending_user_id']).first()
    if pending is None and email:
        pending = PendingUser.objects.filter(email__iexact=email).first()
    if pending is None:
        logger.warning(f'[STRIPE] checkout.session.completed without pending user: session={session.get("id")}')
        return

    user, referral = complete_registration(
        pending,
        stripe_customer_id=session.get('customer') or '',
        stripe_subscription_id=session.get('subscription'),
    )
    if referral is not None:
        logger.info(f'[STRIPE] Referral recorded: referrer={referral.referrer_id} referred={user.id}')

    # Письмо и Chatwork только после фиксации транзакции webhook
    transaction.on_commit(lambda: email_service.send_payment_confirmation(user.email, user.name, user.member_id))
    transaction.on_commit(lambda: chatwork.notify_new_member(user))


def handle_invoice_payment_succeeded(invoice):
    subscription = find_subscription_by_stripe_id(_invoice_subscription_id(invoice))
    if subscription is None:
        logger.info(f'[STRIPE] invoice.payment_succeeded for unknown subscription: {invoice.get("id")}')
        return

    subscription.status = Subscription.STATUS_ACTIVE
    period_end = _invoice_period_end(invoice)
    if period_end:
        subscription.current_period_end = period_end
    subscription.save(update_fields=['status', 'current_period_end', 'updated_at'])

    user = subscription.user
    if user.membership_status == MEMBERSHIP_CANCELLATION_PENDING:
        # Пользователь уже подал заявку на выход - статус не трогаем
        user.delinquent_since = None
        user.save(update_fields=['delinquent_since', 'updated_at'])
    else:
        user.set_membership_status(MEMBERSHIP_ACTIVE, '月額決済成功', save=False)
        user.delinquent_since = None
        user.save()
    logger.info(f'[STRIPE] Invoice paid: user={user.email} period_end={period_end}')


def handle_invoice_payment_failed(invoice):
    subscription = find_subscription_by_stripe_id(_invoice_subscription_id(invoice))
    if subscription is None:
        logger.info(f'[STRIPE] invoice.payment_failed for unknown subscription: {invoice.get("id")}')
        return

    subscription.status = Subscription.STATUS_PAST_DUE
    subscription.save(update_fields=['status', 'updated_at'])

    user = subscription.user
    user.set_membership_status(MEMBERSHIP_PAST_DUE, '月額決済失敗', save=False)
    if user.delinquent_since is None:
        user.delinquent_since = timezone.now()
    user.save()

    transaction.on_commit(lambda: email_service.send_payment_failed(user.email, user.name))
    transaction.on_commit(lambda: chatwork.notify_payment_failed(user))
    create_notification(
        user,
        Notification.TYPE_PAYMENT_FAILED,
        'お支払いに失敗しました',
        'お支払い方法を更新してください。',
        priority=Notification.PRIORITY_CRITICAL,
        action_url='/dashboard/settings/subscription',
    )
    logger.warning(f'[STRIPE] Invoice payment failed: user={user.email}')


def handle_subscription_deleted(stripe_subscription):
    subscription = find_subscription_by_stripe_id(stripe_subscription.get('id'))
    if subscription is None:
        logger.info(f'[STRIPE] subscription.deleted for unknown subscription: {stripe_subscription.get("id")}')
        return

    subscription.status = Subscription.STATUS_CANCELED
    subscription.save(update_fields=['status', 'updated_at'])

    user = subscription.user
    user.set_membership_status(MEMBERSHIP_CANCELED, 'サブスクリプション終了', save=False)
    user.canceled_at = user.canceled_at or timezone.now()
    user.is_active = False
    user.save()

    transaction.on_commit(lambda: email_service.send_subscription_canceled(user.email, user.name))
    logger.info(f'[STRIPE] Subscription deleted: user={user.email}')


EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_session_completed,
    'invoice.payment_succeeded': handle_invoice_payment_succeeded,
    'invoice.payment_failed': handle_invoice_payment_failed,
    'customer.subscription.deleted': handle_subscription_deleted,
}


def dispatch_event(event):
    """
    Returns:
        bool: True если событие обработано, False если тип не поддерживается
    """
    handler = EVENT_HANDLERS.get(event.get('type'))
    if handler is None:
        logger.info(f'[STRIPE] Unhandled event type: {event.get("type")}')
        return False
    handler(event['data']['object'])
    return True
