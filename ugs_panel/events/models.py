from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from accounts.roles import ROLE_ADMIN


class Event(models.Model):
    """Мероприятие (семинар, 全体MTG и т.п.)."""

    TYPE_REQUIRED = 'required'
    TYPE_OPTIONAL = 'optional'
    TYPE_MANAGER_ONLY = 'manager_only'
    TYPE_CHOICES = (
        (TYPE_REQUIRED, '必須'),
        (TYPE_OPTIONAL, '任意'),
        (TYPE_MANAGER_ONLY, 'マネージャー限定'),
    )

    TARGET_ALL = 'all'
    TARGET_ROLE_CHOICES = ('member', 'fp', 'manager', TARGET_ALL)

    VENUE_ONLINE = 'online'
    VENUE_OFFLINE = 'offline'
    VENUE_HYBRID = 'hybrid'
    VENUE_CHOICES = (
        (VENUE_ONLINE, 'オンライン'),
        (VENUE_OFFLINE, 'オフライン'),
        (VENUE_HYBRID, 'ハイブリッド'),
    )

    STATUS_UPCOMING = 'upcoming'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = (
        (STATUS_UPCOMING, '開催予定'),
        (STATUS_COMPLETED, '終了'),
        (STATUS_CANCELLED, '中止'),
    )

    RECURRENCE_MONTHLY_FIRST_SUNDAY = 'monthly-first-sunday'

    title = models.CharField(_('название'), max_length=255)
    description = models.TextField(blank=True, default='')
    date = models.DateTimeField(_('дата начала'), db_index=True)
    time = models.CharField(max_length=50, blank=True, default='', help_text='Например, 19:00-21:00')
    event_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_OPTIONAL)
    target_roles = models.JSONField(default=list, blank=True, help_text='member / fp / manager / all')
    venue_type = models.CharField(max_length=20, choices=VENUE_CHOICES, default=VENUE_ONLINE)
    location = models.CharField(max_length=255, blank=True, default='')
    online_url = models.URLField(max_length=500, blank=True, default='')
    max_participants = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_UPCOMING)

    # Оплата
    is_paid = models.BooleanField(default=False)
    price = models.PositiveIntegerField(null=True, blank=True, help_text='JPY')
    stripe_product_id = models.CharField(max_length=255, blank=True, default='')
    stripe_price_id = models.CharField(max_length=255, blank=True, default='')

    # Посещаемость
    attendance_code = models.CharField(max_length=50, blank=True, default='')
    vimeo_url = models.URLField(max_length=500, blank=True, default='')
    survey_url = models.URLField(max_length=500, blank=True, default='')
    attendance_deadline = models.DateTimeField(null=True, blank=True)

    is_recurring = models.BooleanField(default=False)
    recurrence_pattern = models.CharField(max_length=50, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Мероприятие')
        verbose_name_plural = _('Мероприятия')
        ordering = ['date']

    def __str__(self):
        return f'{self.title} ({self.date:%Y-%m-%d})'

    def is_visible_to(self, user):
        if user.role == ROLE_ADMIN or user.is_superuser:
            return True
        roles = self.target_roles or []
        return self.TARGET_ALL in roles or user.role in roles

    def participants_count(self):
        return self.registrations.count()

    def is_full(self):
        return self.max_participants is not None and self.participants_count() >= self.max_participants


class EventSchedule(models.Model):
    """Дополнительная дата/сеанс мероприятия."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='schedules')
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField(null=True, blank=True)
    location = models.CharField(max_length=255, blank=True, default='')
    online_url = models.URLField(max_length=500, blank=True, default='')

    class Meta:
        verbose_name = _('Сеанс мероприятия')
        verbose_name_plural = _('Сеансы мероприятия')
        ordering = ['date', 'start_time']

    def __str__(self):
        return f'{self.event.title}: {self.date} {self.start_time}'


class EventRegistration(models.Model):
    """Запись участника на мероприятие."""

    PAYMENT_FREE = 'free'
    PAYMENT_PENDING = 'pending'
    PAYMENT_PAID = 'paid'
    PAYMENT_REFUNDED = 'refunded'
    PAYMENT_CHOICES = (
        (PAYMENT_FREE, '無料'),
        (PAYMENT_PENDING, '支払い待ち'),
        (PAYMENT_PAID, '支払済み'),
        (PAYMENT_REFUNDED, '返金済み'),
    )

    ATTENDANCE_CODE = 'code'
    ATTENDANCE_VIDEO_SURVEY = 'video_survey'
    ATTENDANCE_CHOICES = (
        (ATTENDANCE_CODE, '参加コード'),
        (ATTENDANCE_VIDEO_SURVEY, '録画視聴+アンケート'),
    )

    APPROVAL_MAINTAINED = 'maintained'
    APPROVAL_DEMOTED = 'demoted'
    APPROVAL_CHOICES = (
        (APPROVAL_MAINTAINED, '維持'),
        (APPROVAL_DEMOTED, '降格'),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='event_registrations')
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='registrations')
    schedule = models.ForeignKey(
        EventSchedule,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='registrations',
    )

    payment_status = models.CharField(max_length=20, choices=PAYMENT_CHOICES, default=PAYMENT_FREE)
    stripe_session_id = models.CharField(max_length=255, blank=True, default='')
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default='')
    paid_amount = models.PositiveIntegerField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    video_watched = models.BooleanField(default=False)
    video_completed_at = models.DateTimeField(null=True, blank=True)
    survey_completed = models.BooleanField(default=False)
    survey_completed_at = models.DateTimeField(null=True, blank=True)
    attendance_method = models.CharField(max_length=20, choices=ATTENDANCE_CHOICES, blank=True, default='')
    attendance_completed_at = models.DateTimeField(null=True, blank=True)
    is_overdue = models.BooleanField(default=False)

    final_approval = models.CharField(max_length=20, choices=APPROVAL_CHOICES, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Регистрация на мероприятие')
        verbose_name_plural = _('Регистрации на мероприятия')
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'event'], name='unique_event_registration'),
        ]

    def __str__(self):
        return f'{self.user.email} -> {self.event.title} ({self.payment_status})'

    @property
    def attendance_completed(self):
        return self.attendance_completed_at is not None
