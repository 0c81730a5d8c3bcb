from datetime import timedelta

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.crypto import get_random_string
from django.utils.translation import gettext_lazy as _

from .roles import (
    ROLE_CHOICES,
    ROLE_MEMBER,
    ROLE_ADMIN,
    MEMBERSHIP_STATUS_CHOICES,
    MEMBERSHIP_PENDING,
)

VERIFICATION_TOKEN_TTL = timedelta(hours=24)


class CustomUserManager(BaseUserManager):
    """Кастомный менеджер для CustomUser, где email - это уникальный идентификатор"""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_('Email обязателен'))
        email = self.normalize_email(email)
        extra_fields.setdefault('role', ROLE_MEMBER)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', ROLE_ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser должен иметь is_staff=True'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser должен иметь is_superuser=True'))

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    """
    Участник программы UGS.
    Вход по email (username отключен).
    """

    username = None
    first_name = None
    last_name = None
    email = models.EmailField(_('email адрес'), unique=True)
    name = models.CharField(_('имя'), max_length=150, blank=True, default='')
    phone_number = models.CharField(_('номер телефона'), max_length=20, blank=True, default='')

    role = models.CharField(_('роль'), max_length=20, choices=ROLE_CHOICES, default=ROLE_MEMBER)

    member_id = models.CharField(
        _('номер участника'),
        max_length=10,
        unique=True,
        blank=True,
        null=True,
        help_text=_('UGS + 7 цифр, выдаётся после первой оплаты')
    )
    referral_code = models.CharField(
        _('реферальный код'),
        max_length=8,
        unique=True,
        blank=True,
        null=True,
    )

    # Состояние членства
    membership_status = models.CharField(
        _('статус членства'),
        max_length=30,
        choices=MEMBERSHIP_STATUS_CHOICES,
        default=MEMBERSHIP_PENDING,
        db_index=True,
    )
    membership_status_changed_at = models.DateTimeField(null=True, blank=True)
    membership_status_reason = models.CharField(max_length=255, blank=True, default='')
    delinquent_since = models.DateTimeField(_('просрочка с'), null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default='')
    suspension_start_date = models.DateTimeField(null=True, blank=True)
    suspension_end_date = models.DateTimeField(null=True, blank=True)
    reactivated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(_('дата регистрации'), auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('пользователь')
        verbose_name_plural = _('пользователи')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.email} ({self.get_role_display()})'

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name or self.email

    def set_membership_status(self, status, reason='', save=True):
        """Меняет статус членства и фиксирует время и причину изменения."""
        self.membership_status = status
        self.membership_status_changed_at = timezone.now()
        self.membership_status_reason = reason
        if save:
            self.save(update_fields=[
                'membership_status',
                'membership_status_changed_at',
                'membership_status_reason',
                'updated_at',
            ])


class PendingUser(models.Model):
    """
    Регистрация, ожидающая подтверждения email и первой оплаты.

    Превращается в CustomUser в webhook checkout.session.completed.
    """

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150)
    password = models.CharField(max_length=128, help_text='Хэш пароля (make_password)')
    referral_code = models.CharField(max_length=8, blank=True, default='')
    verification_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    token_expires_at = models.DateTimeField(null=True, blank=True)
    email_verified = models.BooleanField(default=False)
    stripe_session_id = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Ожидающая регистрация'
        verbose_name_plural = 'Ожидающие регистрации'
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.email} (verified={self.email_verified})'

    def issue_token(self):
        """Новый токен верификации, действует 24 часа."""
        self.verification_token = get_random_string(48)
        self.token_expires_at = timezone.now() + VERIFICATION_TOKEN_TTL
        return self.verification_token

    def is_token_expired(self):
        return self.token_expires_at is None or timezone.now() > self.token_expires_at


class Subscription(models.Model):
    """Stripe-подписка участника (ежемесячный взнос)."""

    STATUS_ACTIVE = 'active'
    STATUS_PAST_DUE = 'past_due'
    STATUS_CANCELED = 'canceled'
    STATUS_UNPAID = 'unpaid'
    STATUS_PENDING = 'pending'

    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Активна'),
        (STATUS_PAST_DUE, 'Просрочена'),
        (STATUS_CANCELED, 'Отменена'),
        (STATUS_UNPAID, 'Не оплачена'),
        (STATUS_PENDING, 'Ожидает оплаты'),
    )

    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='subscriptions')
    stripe_customer_id = models.CharField(max_length=255, blank=True, default='')
    stripe_subscription_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    current_period_end = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Подписка'
        verbose_name_plural = 'Подписки'
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.user.email}: {self.status}'


class Notification(models.Model):
    """In-app уведомление для пользователя."""

    TYPE_PROMOTION_APPROVED = 'promotion_approved'
    TYPE_PROMOTION_REJECTED = 'promotion_rejected'
    TYPE_REFERRAL_APPROVED = 'referral_approved'
    TYPE_COMPENSATION_READY = 'compensation_ready'
    TYPE_PAYMENT_FAILED = 'payment_failed'
    TYPE_EVENT_REMINDER = 'event_reminder'
    TYPE_ROLE_CHANGED = 'role_changed'
    TYPE_LP_MEETING = 'lp_meeting'
    TYPE_SYSTEM = 'system'

    TYPE_CHOICES = (
        (TYPE_PROMOTION_APPROVED, '昇格承認'),
        (TYPE_PROMOTION_REJECTED, '昇格却下'),
        (TYPE_REFERRAL_APPROVED, '紹介承認'),
        (TYPE_COMPENSATION_READY, '報酬確定'),
        (TYPE_PAYMENT_FAILED, '決済失敗'),
        (TYPE_EVENT_REMINDER, 'イベント'),
        (TYPE_ROLE_CHANGED, 'ロール変更'),
        (TYPE_LP_MEETING, 'LP面談'),
        (TYPE_SYSTEM, 'システム'),
    )

    PRIORITY_INFO = 'info'
    PRIORITY_SUCCESS = 'success'
    PRIORITY_WARNING = 'warning'
    PRIORITY_CRITICAL = 'critical'

    PRIORITY_CHOICES = (
        (PRIORITY_INFO, 'Info'),
        (PRIORITY_SUCCESS, 'Success'),
        (PRIORITY_WARNING, 'Warning'),
        (PRIORITY_CRITICAL, 'Critical'),
    )

    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='notifications')
    notification_type = models.CharField(max_length=40, choices=TYPE_CHOICES, default=TYPE_SYSTEM)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default=PRIORITY_INFO)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True, default='')
    action_url = models.CharField(max_length=500, blank=True, default='')
    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Уведомление'
        verbose_name_plural = 'Уведомления'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='accounts_notif_user_read_idx'),
        ]

    def __str__(self):
        return f'{self.user_id}: {self.title}'
