"""
Finance models: insurance contracts, referrals and monthly compensation.

Key concepts:
- Contract: договор, заключённый участником (импортируется из CSV)
- Referral: связь "пригласивший -> приглашённый", основа реферального вознаграждения
- Compensation: ежемесячное вознаграждение участника (одна запись на пользователя и месяц)

Суммы хранятся в иенах (целые числа).
"""
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class Contract(models.Model):
    """Договор, заключённый участником."""

    TYPE_INSURANCE = 'insurance'
    TYPE_OTHER = 'other'
    TYPE_CHOICES = (
        (TYPE_INSURANCE, '保険'),
        (TYPE_OTHER, 'その他'),
    )

    STATUS_ACTIVE = 'active'
    STATUS_CANCELLED = 'cancelled'
    STATUS_EXPIRED = 'expired'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, '有効'),
        (STATUS_CANCELLED, '解約'),
        (STATUS_EXPIRED, '満了'),
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='contracts',
        verbose_name=_('участник')
    )
    contract_number = models.CharField(_('номер договора'), max_length=100, unique=True)
    product_name = models.CharField(_('продукт'), max_length=255)
    contract_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_INSURANCE)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    signed_at = models.DateTimeField(_('дата заключения'))
    amount = models.PositiveIntegerField(_('страховая премия'), default=0)
    reward_amount = models.PositiveIntegerField(
        _('вознаграждение'),
        null=True,
        blank=True,
        help_text=_('Вознаграждение участнику за договор; пусто = ещё не рассчитано')
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Договор')
        verbose_name_plural = _('Договоры')
        ordering = ['-signed_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='finance_contract_user_idx'),
        ]

    def __str__(self):
        return f'{self.contract_number} ({self.user.email})'


class Referral(models.Model):
    """Реферальная связь между участниками."""

    TYPE_MEMBER = 'member'
    TYPE_FP = 'fp'
    TYPE_CHOICES = (
        (TYPE_MEMBER, 'UGS会員紹介'),
        (TYPE_FP, 'FPエイド紹介'),
    )

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = (
        (STATUS_PENDING, '承認待ち'),
        (STATUS_APPROVED, '承認済み'),
        (STATUS_REJECTED, '却下'),
    )

    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='referrals_made',
    )
    referred = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='referrals_received',
    )
    referral_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_MEMBER)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    reward_amount = models.PositiveIntegerField(default=0)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Реферал')
        verbose_name_plural = _('Рефералы')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['referrer', 'referred'], name='unique_referral_pair'),
        ]

    def __str__(self):
        return f'{self.referrer_id} -> {self.referred_id} ({self.referral_type}, {self.status})'


class Compensation(models.Model):
    """Ежемесячное вознаграждение участника."""

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_PAID = 'paid'
    STATUS_CHOICES = (
        (STATUS_PENDING, '確定待ち'),
        (STATUS_CONFIRMED, '確定'),
        (STATUS_PAID, '支払済み'),
    )

    # Порядок статусов: откатывать назад нельзя
    STATUS_ORDER = {
        STATUS_PENDING: 0,
        STATUS_CONFIRMED: 1,
        STATUS_PAID: 2,
    }

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='compensations',
    )
    month = models.CharField(_('месяц'), max_length=7, help_text='YYYY-MM')
    amount = models.IntegerField(_('сумма'), default=0)
    breakdown = models.JSONField(default=dict, blank=True)
    earned_as_role = models.CharField(max_length=20, blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # Детализация из бухгалтерского CSV
    gross_amount = models.IntegerField(_('税込報酬'), null=True, blank=True)
    withholding_tax = models.IntegerField(_('源泉徴収額'), null=True, blank=True)
    transfer_fee = models.IntegerField(_('振込手数料'), null=True, blank=True)
    net_amount = models.IntegerField(_('差引支給額'), null=True, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Вознаграждение')
        verbose_name_plural = _('Вознаграждения')
        ordering = ['-month', '-id']
        constraints = [
            models.UniqueConstraint(fields=['user', 'month'], name='unique_compensation_month'),
        ]

    def __str__(self):
        return f'{self.user.email} {self.month}: {self.amount} ({self.status})'
