# Generated manually for LP meetings and manager assessments

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('promotions', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LPMeeting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('requested', '申請中'), ('scheduled', '確定'), ('completed', '完了'), ('cancelled', 'キャンセル'), ('no_show', 'ノーショー')], db_index=True, default='requested', max_length=20)),
                ('preferred_dates', models.JSONField(default=list)),
                ('meeting_location', models.CharField(choices=[('offline', 'オフライン'), ('ugs_office', 'UGSオフィス')], max_length=20)),
                ('member_notes', models.TextField(blank=True, default='')),
                ('scheduled_at', models.DateTimeField(blank=True, null=True)),
                ('meeting_url', models.URLField(blank=True, default='', max_length=500)),
                ('meeting_platform', models.CharField(blank=True, choices=[('zoom', 'Zoom'), ('google_meet', 'Google Meet'), ('teams', 'Microsoft Teams'), ('other', 'その他')], default='', max_length=20)),
                ('notes', models.TextField(blank=True, default='')),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('fp', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_lp_meetings', to=settings.AUTH_USER_MODEL)),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lp_meetings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'LP-встреча',
                'verbose_name_plural': 'LP-встречи',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ManagerAssessment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('period_year', models.PositiveSmallIntegerField()),
                ('period_half', models.PositiveSmallIntegerField(choices=[(1, '上期'), (2, '下期')])),
                ('total_sales', models.IntegerField(default=0)),
                ('contract_count', models.IntegerField(default=0)),
                ('is_demotion_candidate', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('pending', '確定待ち'), ('confirmed', '確定'), ('demoted', '降格')], db_index=True, default='pending', max_length=20)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('confirmed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='manager_assessments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Оценка manager',
                'verbose_name_plural': 'Оценки manager',
                'ordering': ['-period_year', '-period_half', 'user__name'],
                'constraints': [models.UniqueConstraint(fields=('user', 'period_year', 'period_half'), name='unique_manager_assessment')],
            },
        ),
    ]
