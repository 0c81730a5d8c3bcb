# Generated manually for contracts, referrals and compensations

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
            name='Contract',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('contract_number', models.CharField(max_length=100, unique=True, verbose_name='номер договора')),
                ('product_name', models.CharField(max_length=255, verbose_name='продукт')),
                ('contract_type', models.CharField(choices=[('insurance', '保険'), ('other', 'その他')], default='insurance', max_length=20)),
                ('status', models.CharField(choices=[('active', '有効'), ('cancelled', '解約'), ('expired', '満了')], db_index=True, default='active', max_length=20)),
                ('signed_at', models.DateTimeField(verbose_name='дата заключения')),
                ('amount', models.PositiveIntegerField(default=0, verbose_name='страховая премия')),
                ('reward_amount', models.PositiveIntegerField(blank=True, help_text='Вознаграждение участнику за договор; пусто = ещё не рассчитано', null=True, verbose_name='вознаграждение')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contracts', to=settings.AUTH_USER_MODEL, verbose_name='участник')),
            ],
            options={
                'verbose_name': 'Договор',
                'verbose_name_plural': 'Договоры',
                'ordering': ['-signed_at'],
                'indexes': [models.Index(fields=['user', 'status'], name='finance_contract_user_idx')],
            },
        ),
        migrations.CreateModel(
            name='Referral',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('referral_type', models.CharField(choices=[('member', 'UGS会員紹介'), ('fp', 'FPエイド紹介')], default='member', max_length=20)),
                ('status', models.CharField(choices=[('pending', '承認待ち'), ('approved', '承認済み'), ('rejected', '却下')], db_index=True, default='pending', max_length=20)),
                ('reward_amount', models.PositiveIntegerField(default=0)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('referred', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='referrals_received', to=settings.AUTH_USER_MODEL)),
                ('referrer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='referrals_made', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Реферал',
                'verbose_name_plural': 'Рефералы',
                'ordering': ['-created_at'],
                'constraints': [models.UniqueConstraint(fields=('referrer', 'referred'), name='unique_referral_pair')],
            },
        ),
        migrations.CreateModel(
            name='Compensation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('month', models.CharField(help_text='YYYY-MM', max_length=7, verbose_name='месяц')),
                ('amount', models.IntegerField(default=0, verbose_name='сумма')),
                ('breakdown', models.JSONField(blank=True, default=dict)),
                ('earned_as_role', models.CharField(blank=True, default='', max_length=20)),
                ('status', models.CharField(choices=[('pending', '確定待ち'), ('confirmed', '確定'), ('paid', '支払済み')], db_index=True, default='pending', max_length=20)),
                ('gross_amount', models.IntegerField(blank=True, null=True, verbose_name='税込報酬')),
                ('withholding_tax', models.IntegerField(blank=True, null=True, verbose_name='源泉徴収額')),
                ('transfer_fee', models.IntegerField(blank=True, null=True, verbose_name='振込手数料')),
                ('net_amount', models.IntegerField(blank=True, null=True, verbose_name='差引支給額')),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='compensations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Вознаграждение',
                'verbose_name_plural': 'Вознаграждения',
                'ordering': ['-month', '-id'],
                'constraints': [models.UniqueConstraint(fields=('user', 'month'), name='unique_compensation_month')],
            },
        ),
    ]
