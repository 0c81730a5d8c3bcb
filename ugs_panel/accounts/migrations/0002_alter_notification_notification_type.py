from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='notification',
            name='notification_type',
            field=models.CharField(choices=[('promotion_approved', '昇格承認'), ('promotion_rejected', '昇格却下'), ('referral_approved', '紹介承認'), ('compensation_ready', '報酬確定'), ('payment_failed', '決済失敗'), ('event_reminder', 'イベント'), ('role_changed', 'ロール変更'), ('lp_meeting', 'LP面談'), ('system', 'システム')], default='system', max_length=40),
        ),
    ]
