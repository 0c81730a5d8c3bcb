from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from accounts.roles import ROLE_FP, ROLE_MANAGER


class FPPromotionApplication(models.Model):
    """
    Чек-лист перехода member -> fp: LP-встреча (отмечает админ) и анкета.
    Одна запись на пользователя.
    """

    STATUS_NOT_APPLIED = 'not_applied'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = (
        (STATUS_NOT_APPLIED, '未申請'),
        (STATUS_PENDING, '審査中'),
        (STATUS_APPROVED, '承認'),
        (STATUS_REJECTED, '却下'),
    )

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='fp_promotion')
    lp_meeting_completed = models.BooleanField(default=False)
    survey_completed = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NOT_APPLIED)
    applied_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Чек-лист FP')
        verbose_name_plural = _('Чек-листы FP')

    def __str__(self):
        return f'{self.user.email}: {self.status}'

    @property
    def checklist_completed(self):
        return self.lp_meeting_completed and self.survey_completed


class PromotionApplication(models.Model):
    """Заявка на повышение роли (fp или manager)."""

    TARGET_ROLE_CHOICES = (
        (ROLE_FP, 'FPエイド'),
        (ROLE_MANAGER, 'マネージャー'),
    )

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = (
        (STATUS_PENDING, '審査中'),
        (STATUS_APPROVED, '承認'),
        (STATUS_REJECTED, '却下'),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='promotion_applications')
    target_role = models.CharField(max_length=20, choices=TARGET_ROLE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_promotions',
    )
    review_notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Заявка на повышение')
        verbose_name_plural = _('Заявки на повышение')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.user.email} -> {self.target_role} ({self.status})'


class LPMeeting(models.Model):
    """
    LP-встреча кандидата в fp.

    requested -> scheduled -> completed | no_show; отменить можно до завершения.
    У участника одновременно не больше одной незакрытой встречи.
    """

    STATUS_REQUESTED = 'requested'
    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CHOICES = (
        (STATUS_REQUESTED, '申請中'),
        (STATUS_SCHEDULED, '確定'),
        (STATUS_COMPLETED, '完了'),
        (STATUS_CANCELLED, 'キャンセル'),
        (STATUS_NO_SHOW, 'ノーショー'),
    )
    CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)

    LOCATION_OFFLINE = 'offline'
    LOCATION_UGS_OFFICE = 'ugs_office'
    LOCATION_CHOICES = (
        (LOCATION_OFFLINE, 'オフライン'),
        (LOCATION_UGS_OFFICE, 'UGSオフィス'),
    )

    PLATFORM_ZOOM = 'zoom'
    PLATFORM_GOOGLE_MEET = 'google_meet'
    PLATFORM_TEAMS = 'teams'
    PLATFORM_OTHER = 'other'
    PLATFORM_CHOICES = (
        (PLATFORM_ZOOM, 'Zoom'),
        (PLATFORM_GOOGLE_MEET, 'Google Meet'),
        (PLATFORM_TEAMS, 'Microsoft Teams'),
        (PLATFORM_OTHER, 'その他'),
    )

    member = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='lp_meetings')
    fp = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_lp_meetings',
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_REQUESTED, db_index=True)
    # ISO-строки, ровно пять вариантов
    preferred_dates = models.JSONField(default=list)
    meeting_location = models.CharField(max_length=20, choices=LOCATION_CHOICES)
    member_notes = models.TextField(blank=True, default='')

    scheduled_at = models.DateTimeField(null=True, blank=True)
    meeting_url = models.URLField(max_length=500, blank=True, default='')
    meeting_platform = models.CharField(max_length=20, choices=PLATFORM_CHOICES, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('LP-встреча')
        verbose_name_plural = _('LP-встречи')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.member.email}: {self.status}'

    @property
    def is_closed(self):
        return self.status in self.CLOSED_STATUSES


class ManagerAssessment(models.Model):
    """Полугодовая оценка manager: сумма вознаграждений за полугодие."""

    HALF_FIRST = 1
    HALF_SECOND = 2
    HALF_CHOICES = (
        (HALF_FIRST, '上期'),
        (HALF_SECOND, '下期'),
    )

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_DEMOTED = 'demoted'
    STATUS_CHOICES = (
        (STATUS_PENDING, '確定待ち'),
        (STATUS_CONFIRMED, '確定'),
        (STATUS_DEMOTED, '降格'),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='manager_assessments')
    period_year = models.PositiveSmallIntegerField()
    period_half = models.PositiveSmallIntegerField(choices=HALF_CHOICES)
    total_sales = models.IntegerField(default=0)
    contract_count = models.IntegerField(default=0)
    is_demotion_candidate = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Оценка manager')
        verbose_name_plural = _('Оценки manager')
        ordering = ['-period_year', '-period_half', 'user__name']
        constraints = [
            models.UniqueConstraint(fields=['user', 'period_year', 'period_half'], name='unique_manager_assessment'),
        ]

    def __str__(self):
        return f'{self.user.email} {self.period_year}H{self.period_half}: {self.status}'
