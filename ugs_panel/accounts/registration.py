"""
Регистрация участника: PendingUser -> подтверждение email -> оплата -> CustomUser.
"""
import logging

from django.contrib.auth.hashers import make_password
from django.db import transaction

from .email_service import email_service
from .member_ids import assign_member_id, generate_referral_code
from .models import CustomUser, PendingUser, Subscription
from .roles import ROLE_MEMBER, MEMBERSHIP_ACTIVE

logger = logging.getLogger(__name__)


class RegistrationError(Exception):
    """Base exception for registration errors."""
    pass


class EmailAlreadyRegisteredError(RegistrationError):
    pass


class PendingUserNotFoundError(RegistrationError):
    pass


class TokenExpiredError(RegistrationError):
    pass


class AlreadyVerifiedError(RegistrationError):
    pass


class EmailNotVerifiedError(RegistrationError):
    pass


def register_pending_user(email, name, password, referral_code=''):
    """
    Создаёт (или обновляет) ожидающую регистрацию и отправляет письмо.

    Повторная регистрация на тот же email выдаёт новый токен и перезаписывает
    данные формы.

    Raises:
        EmailAlreadyRegisteredError: пользователь с таким email уже есть
    """
    email = CustomUser.objects.normalize_email(email).lower()
    if CustomUser.objects.filter(email__iexact=email).exists():
        raise EmailAlreadyRegisteredError('このメールアドレスは既に登録されています')

    pending = PendingUser.objects.filter(email__iexact=email).first()
    if pending is None:
        pending = PendingUser(email=email)
    pending.name = name
    pending.password = make_password(password)
    pending.referral_code = (referral_code or '').strip().upper()
    pending.email_verified = False
    pending.issue_token()
    pending.save()

    email_service.send_verification_email(pending.email, pending.name, pending.verification_token)
    logger.info(f'Pending registration saved: {pending.email}')
    return pending


def verify_email_token(token):
    """
    Raises:
        PendingUserNotFoundError: токен неизвестен
        TokenExpiredError: прошло больше 24 часов
    """
    pending = PendingUser.objects.filter(verification_token=token).first() if token else None
    if pending is None:
        raise PendingUserNotFoundError('無効な確認リンクです')
    if pending.is_token_expired():
        raise TokenExpiredError('確認リンクの有効期限が切れています')

    pending.email_verified = True
    pending.verification_token = None
    pending.token_expires_at = None
    pending.save(update_fields=['email_verified', 'verification_token', 'token_expires_at'])
    logger.info(f'Email verified for pending user {pending.email}')
    return pending


def resend_verification(email):
    pending = PendingUser.objects.filter(email__iexact=email).first()
    if pending is None:
        raise PendingUserNotFoundError('仮登録が見つかりません')
    if pending.email_verified:
        raise AlreadyVerifiedError('メールアドレスは既に確認済みです')

    pending.issue_token()
    pending.save(update_fields=['verification_token', 'token_expires_at'])
    email_service.send_verification_email(pending.email, pending.name, pending.verification_token)
    return pending


def get_checkout_ready_pending_user(email):
    """
    Raises:
        EmailAlreadyRegisteredError, PendingUserNotFoundError, EmailNotVerifiedError
    """
    if CustomUser.objects.filter(email__iexact=email).exists():
        raise EmailAlreadyRegisteredError('このメールアドレスは既に登録されています')
    pending = PendingUser.objects.filter(email__iexact=email).first()
    if pending is None:
        raise PendingUserNotFoundError('仮登録が見つかりません')
    if not pending.email_verified:
        raise EmailNotVerifiedError('メールアドレスの確認が完了していません')
    return pending


@transaction.atomic
def complete_registration(pending, stripe_customer_id='', stripe_subscription_id=None, current_period_end=None):
    """
    Превращает PendingUser в активного участника после оплаты.

    Создаёт пользователя (номер участника, реферальный код), активную подписку
    и реферальную связь, удаляет PendingUser.

    Returns:
        tuple: (user, referral или None)
    """
    from finance.services import ReferralService

    user = CustomUser(
        email=pending.email,
        name=pending.name,
        password=pending.password,  # уже хэширован
        role=ROLE_MEMBER,
        referral_code=generate_referral_code(),
    )
    user.set_membership_status(MEMBERSHIP_ACTIVE, '初回決済完了', save=False)
    user.save()
    assign_member_id(user)

    Subscription.objects.create(
        user=user,
        stripe_customer_id=stripe_customer_id or '',
        stripe_subscription_id=stripe_subscription_id or None,
        status=Subscription.STATUS_ACTIVE,
        current_period_end=current_period_end,
    )

    referral = None
    if pending.referral_code:
        referral = ReferralService.create_signup_referral(pending.referral_code, user)

    pending.delete()
    logger.info(f'Registration completed: {user.email} member_id={user.member_id}')
    return user, referral
