from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from accounts.roles import ROLE_FP, role_at_least


class Course(models.Model):
    """Обучающий курс. is_locked - контент только для FP и выше."""

    CATEGORY_BASIC = 'basic'
    CATEGORY_PRACTICAL = 'practical'
    CATEGORY_ADVANCED = 'advanced'
    CATEGORY_CHOICES = (
        (CATEGORY_BASIC, '基礎'),
        (CATEGORY_PRACTICAL, '実践'),
        (CATEGORY_ADVANCED, '応用'),
    )

    LEVEL_BEGINNER = 'beginner'
    LEVEL_INTERMEDIATE = 'intermediate'
    LEVEL_ADVANCED = 'advanced'
    LEVEL_CHOICES = (
        (LEVEL_BEGINNER, '初級'),
        (LEVEL_INTERMEDIATE, '中級'),
        (LEVEL_ADVANCED, '上級'),
    )

    title = models.CharField(_('название'), max_length=255)
    description = models.TextField(blank=True, default='')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_BASIC)
    level = models.CharField(max_length=20, choices=LEVEL_CHOICES, default=LEVEL_BEGINNER)
    is_locked = models.BooleanField(default=False, help_text='Только для FP и выше')
    is_published = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Курс')
        verbose_name_plural = _('Курсы')
        ordering = ['order', 'id']

    def __str__(self):
        return self.title

    def is_locked_for(self, user):
        if not self.is_locked:
            return False
        return not (role_at_least(user.role, ROLE_FP) or user.is_superuser)


class Lesson(models.Model):
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='lessons')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    video_url = models.URLField(max_length=500, blank=True, default='')
    duration = models.PositiveIntegerField(default=0, help_text='Минуты')
    order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Урок')
        verbose_name_plural = _('Уроки')
        ordering = ['order', 'id']

    def __str__(self):
        return f'{self.course.title}: {self.title}'


class CourseProgress(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='course_progress')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='progress')
    lesson = models.ForeignKey(Lesson, on_delete=models.CASCADE, related_name='progress')
    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Прогресс по уроку')
        verbose_name_plural = _('Прогресс по урокам')
        constraints = [
            models.UniqueConstraint(fields=['user', 'lesson'], name='unique_lesson_progress'),
        ]

    def __str__(self):
        return f'{self.user.email}: {self.lesson.title} ({"done" if self.is_completed else "open"})'
