# Generated manually for events, schedules and registrations

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255, verbose_name='название')),
                ('description', models.TextField(blank=True, default='')),
                ('date', models.DateTimeField(db_index=True, verbose_name='дата начала')),
                ('time', models.CharField(blank=True, default='', help_text='Например, 19:00-21:00', max_length=50)),
                ('event_type', models.CharField(choices=[('required', '必須'), ('optional', '任意'), ('manager_only', 'マネージャー限定')], default='optional', max_length=20)),
                ('target_roles', models.JSONField(blank=True, default=list, help_text='member / fp / manager / all')),
                ('venue_type', models.CharField(choices=[('online', 'オンライン'), ('offline', 'オフライン'), ('hybrid', 'ハイブリッド')], default='online', max_length=20)),
                ('location', models.CharField(blank=True, default='', max_length=255)),
                ('online_url', models.URLField(blank=True, default='', max_length=500)),
                ('max_participants', models.PositiveIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('upcoming', '開催予定'), ('completed', '終了'), ('cancelled', '中止')], default='upcoming', max_length=20)),
                ('is_paid', models.BooleanField(default=False)),
                ('price', models.PositiveIntegerField(blank=True, help_text='JPY', null=True)),
                ('stripe_product_id', models.CharField(blank=True, default='', max_length=255)),
                ('stripe_price_id', models.CharField(blank=True, default='', max_length=255)),
                ('attendance_code', models.CharField(blank=True, default='', max_length=50)),
                ('vimeo_url', models.URLField(blank=True, default='', max_length=500)),
                ('survey_url', models.URLField(blank=True, default='', max_length=500)),
                ('attendance_deadline', models.DateTimeField(blank=True, null=True)),
                ('is_recurring', models.BooleanField(default=False)),
                ('recurrence_pattern', models.CharField(blank=True, default='', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Мероприятие',
                'verbose_name_plural': 'Мероприятия',
                'ordering': ['date'],
            },
        ),
        migrations.CreateModel(
            name='EventSchedule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField(blank=True, null=True)),
                ('location', models.CharField(blank=True, default='', max_length=255)),
                ('online_url', models.URLField(blank=True, default='', max_length=500)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='schedules', to='events.event')),
            ],
            options={
                'verbose_name': 'Сеанс мероприятия',
                'verbose_name_plural': 'Сеансы мероприятия',
                'ordering': ['date', 'start_time'],
            },
        ),
        migrations.CreateModel(
            name='EventRegistration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('payment_status', models.CharField(choices=[('free', '無料'), ('pending', '支払い待ち'), ('paid', '支払済み'), ('refunded', '返金済み')], default='free', max_length=20)),
                ('stripe_session_id', models.CharField(blank=True, default='', max_length=255)),
                ('stripe_payment_intent_id', models.CharField(blank=True, default='', max_length=255)),
                ('paid_amount', models.PositiveIntegerField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('video_watched', models.BooleanField(default=False)),
                ('video_completed_at', models.DateTimeField(blank=True, null=True)),
                ('survey_completed', models.BooleanField(default=False)),
                ('survey_completed_at', models.DateTimeField(blank=True, null=True)),
                ('attendance_method', models.CharField(blank=True, choices=[('code', '参加コード'), ('video_survey', '録画視聴+アンケート')], default='', max_length=20)),
                ('attendance_completed_at', models.DateTimeField(blank=True, null=True)),
                ('is_overdue', models.BooleanField(default=False)),
                ('final_approval', models.CharField(blank=True, choices=[('maintained', '維持'), ('demoted', '降格')], max_length=20, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='registrations', to='events.event')),
                ('schedule', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registrations', to='events.eventschedule')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='event_registrations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Регистрация на мероприятие',
                'verbose_name_plural': 'Регистрации на мероприятия',
                'ordering': ['created_at'],
                'constraints': [models.UniqueConstraint(fields=('user', 'event'), name='unique_event_registration')],
            },
        ),
    ]
