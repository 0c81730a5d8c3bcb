# Generated manually for the membership schema

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


ROLE_CHOICES = [
    ('member', 'UGS会員'),
    ('fp', 'FPエイド'),
    ('manager', 'マネージャー'),
    ('admin', '管理者'),
]

MEMBERSHIP_STATUS_CHOICES = [
    ('pending', '仮登録'),
    ('active', '有効'),
    ('past_due', '支払い遅延'),
    ('delinquent', '滞納'),
    ('suspended', '休会中'),
    ('cancellation_pending', '退会予定'),
    ('canceled', '退会済み'),
    ('terminated', '強制解約'),
    ('expired', '期限切れ'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='CustomUser',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(max_length=254, unique=True, verbose_name='email адрес')),
                ('name', models.CharField(blank=True, default='', max_length=150, verbose_name='имя')),
                ('phone_number', models.CharField(blank=True, default='', max_length=20, verbose_name='номер телефона')),
                ('role', models.CharField(choices=ROLE_CHOICES, default='member', max_length=20, verbose_name='роль')),
                ('member_id', models.CharField(blank=True, help_text='UGS + 7 цифр, выдаётся после первой оплаты', max_length=10, null=True, unique=True, verbose_name='номер участника')),
                ('referral_code', models.CharField(blank=True, max_length=8, null=True, unique=True, verbose_name='реферальный код')),
                ('membership_status', models.CharField(choices=MEMBERSHIP_STATUS_CHOICES, db_index=True, default='pending', max_length=30, verbose_name='статус членства')),
                ('membership_status_changed_at', models.DateTimeField(blank=True, null=True)),
                ('membership_status_reason', models.CharField(blank=True, default='', max_length=255)),
                ('delinquent_since', models.DateTimeField(blank=True, null=True, verbose_name='просрочка с')),
                ('canceled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True, default='')),
                ('suspension_start_date', models.DateTimeField(blank=True, null=True)),
                ('suspension_end_date', models.DateTimeField(blank=True, null=True)),
                ('reactivated_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='дата регистрации')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'пользователь',
                'verbose_name_plural': 'пользователи',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='PendingUser',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('name', models.CharField(max_length=150)),
                ('password', models.CharField(help_text='Хэш пароля (make_password)', max_length=128)),
                ('referral_code', models.CharField(blank=True, default='', max_length=8)),
                ('verification_token', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('token_expires_at', models.DateTimeField(blank=True, null=True)),
                ('email_verified', models.BooleanField(default=False)),
                ('stripe_session_id', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Ожидающая регистрация',
                'verbose_name_plural': 'Ожидающие регистрации',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Subscription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stripe_customer_id', models.CharField(blank=True, default='', max_length=255)),
                ('stripe_subscription_id', models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ('status', models.CharField(choices=[('active', 'Активна'), ('past_due', 'Просрочена'), ('canceled', 'Отменена'), ('unpaid', 'Не оплачена'), ('pending', 'Ожидает оплаты')], default='pending', max_length=20)),
                ('current_period_end', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subscriptions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Подписка',
                'verbose_name_plural': 'Подписки',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('notification_type', models.CharField(choices=[('promotion_approved', '昇格承認'), ('promotion_rejected', '昇格却下'), ('referral_approved', '紹介承認'), ('compensation_ready', '報酬確定'), ('payment_failed', '決済失敗'), ('event_reminder', 'イベント'), ('role_changed', 'ロール変更'), ('system', 'システム')], default='system', max_length=40)),
                ('priority', models.CharField(choices=[('info', 'Info'), ('success', 'Success'), ('warning', 'Warning'), ('critical', 'Critical')], default='info', max_length=20)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField(blank=True, default='')),
                ('action_url', models.CharField(blank=True, default='', max_length=500)),
                ('is_read', models.BooleanField(db_index=True, default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Уведомление',
                'verbose_name_plural': 'Уведомления',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['user', 'is_read'], name='accounts_notif_user_read_idx')],
            },
        ),
    ]
