# Generated manually for promotion applications

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
            name='FPPromotionApplication',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lp_meeting_completed', models.BooleanField(default=False)),
                ('survey_completed', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('not_applied', '未申請'), ('pending', '審査中'), ('approved', '承認'), ('rejected', '却下')], default='not_applied', max_length=20)),
                ('applied_at', models.DateTimeField(blank=True, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='fp_promotion', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Чек-лист FP',
                'verbose_name_plural': 'Чек-листы FP',
            },
        ),
        migrations.CreateModel(
            name='PromotionApplication',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('target_role', models.CharField(choices=[('fp', 'FPエイド'), ('manager', 'マネージャー')], max_length=20)),
                ('status', models.CharField(choices=[('pending', '審査中'), ('approved', '承認'), ('rejected', '却下')], db_index=True, default='pending', max_length=20)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('review_notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_promotions', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promotion_applications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Заявка на повышение',
                'verbose_name_plural': 'Заявки на повышение',
                'ordering': ['-created_at'],
            },
        ),
    ]
