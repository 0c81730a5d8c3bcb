"""
Email сервис: верификация регистрации, оплата, отмена подписки, события.
"""
from concurrent.futures import ThreadPoolExecutor
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import escape, strip_tags

logger = logging.getLogger(__name__)

# Пул потоков для асинхронной отправки email (fire-and-forget)
_email_executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix='email_sender')

SITE_NAME = 'UGS'


class EmailService:
    """Сервис для отправки email"""

    def __init__(self):
        self.from_email = getattr(settings, 'DEFAULT_FROM_EMAIL', 'noreply@ugs.example.com')
        self.async_send = getattr(settings, 'EMAIL_ASYNC_SEND', False)
        self.enabled = getattr(settings, 'EMAIL_BACKEND', '') != 'django.core.mail.backends.dummy.EmailBackend'

        if not self.enabled:
            logger.warning('Email backend not configured. Email sending will be disabled.')

    def _dispatch(self, to_email, subject, html_content):
        """
        Отправка письма. В async-режиме сразу возвращает success и шлёт в фоне.

        Returns:
            dict: {'success': bool, 'message': str}
        """
        if not self.enabled:
            logger.error(f'Email service not configured. Cannot send "{subject}" to {to_email}')
            return {'success': False, 'message': 'Email service not configured'}

        if self.async_send:
            try:
                _email_executor.submit(self._send_sync, to_email, subject, html_content)
                logger.info(f'Email "{subject}" queued for async sending to {to_email}')
                return {'success': True, 'message': 'Email queued for sending'}
            except RuntimeError as e:
                # Executor уже остановлен (shutdown) - отправляем синхронно
                logger.error(f'Failed to queue email to {to_email}: {e}')

        return self._send_sync(to_email, subject, html_content)

    def _send_sync(self, to_email, subject, html_content):
        try:
            message = EmailMultiAlternatives(
                subject=subject,
                body=strip_tags(html_content),
                from_email=self.from_email,
                to=[to_email],
            )
            message.attach_alternative(html_content, 'text/html')
            message.send(fail_silently=False)
            logger.info(f'Email "{subject}" sent to {to_email}')
            return {'success': True, 'message': 'Email sent'}
        except Exception as e:
            logger.error(f'Failed to send email "{subject}" to {to_email}: {e}')
            return {'success': False, 'message': str(e)}

    @staticmethod
    def _wrap(title, body_html):
        return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="utf-8"></head>
        <body style="font-family: sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #1e3a8a;">{title}</h2>
            {body_html}
            <hr>
            <p style="font-size: 12px; color: #888;">{SITE_NAME} 事務局</p>
        </body>
        </html>
        """

    def send_verification_email(self, email, name, token):
        verification_url = f'{settings.FRONTEND_URL}/verify-email?token={token}'
        html = self._wrap('メールアドレスの確認', f"""
            <p>{escape(name)} 様</p>
            <p>{SITE_NAME}へのご登録ありがとうございます。以下のリンクからメールアドレスを確認してください。</p>
            <p><a href="{verification_url}">{verification_url}</a></p>
            <p>このリンクの有効期限は24時間です。</p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】メールアドレスの確認', html)

    def send_payment_confirmation(self, email, name, member_id=''):
        member_line = f'<p>会員番号: <strong>{escape(member_id)}</strong></p>' if member_id else ''
        html = self._wrap('決済完了のお知らせ', f"""
            <p>{escape(name)} 様</p>
            <p>月額会員のお支払いが完了しました。ダッシュボードからサービスをご利用いただけます。</p>
            {member_line}
            <p><a href="{settings.FRONTEND_URL}/dashboard">{settings.FRONTEND_URL}/dashboard</a></p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】決済完了のお知らせ', html)

    def send_payment_failed(self, email, name):
        html = self._wrap('お支払いに失敗しました', f"""
            <p>{escape(name)} 様</p>
            <p>月額会費のお支払いに失敗しました。お支払い方法をご確認のうえ、更新をお願いいたします。</p>
            <p>7日以上未払いの状態が続くと、会員ステータスが滞納に変更されます。</p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】お支払いに失敗しました', html)

    def send_subscription_canceled(self, email, name):
        html = self._wrap('退会手続き完了のお知らせ', f"""
            <p>{escape(name)} 様</p>
            <p>サブスクリプションの解約が完了しました。これまでのご利用ありがとうございました。</p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】退会手続き完了のお知らせ', html)

    def send_event_confirmation(self, email, name, event_title, event_date, amount=None):
        amount_line = f'<p>お支払い金額: ¥{amount:,}</p>' if amount else ''
        html = self._wrap('イベント申込完了', f"""
            <p>{escape(name)} 様</p>
            <p>以下のイベントへのお申し込みが完了しました。</p>
            <p><strong>{escape(event_title)}</strong><br>{escape(event_date)}</p>
            {amount_line}
        """)
        return self._dispatch(email, f'【{SITE_NAME}】イベント申込完了: {event_title}', html)

    def send_lp_meeting_completed(self, email, name, scheduled_at=''):
        html = self._wrap('LP面談完了', f"""
            <p>{escape(name)} 様</p>
            <p>LP面談が完了しました。ご参加いただきありがとうございました。</p>
            <p><strong>■ 面談日時</strong><br>{escape(scheduled_at or '---')}</p>
            <p>引き続きFPエイド昇格に向けて、次のステップにお進みください。</p>
            <p><a href="{settings.FRONTEND_URL}/dashboard/promotion">{settings.FRONTEND_URL}/dashboard/promotion</a></p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】LP面談完了 ご参加ありがとうございました', html)

    def send_lp_meeting_no_show(self, email, name, scheduled_at=''):
        scheduled_line = f'<p><strong>■ 面談予定日時</strong><br>{escape(scheduled_at)}</p>' if scheduled_at else ''
        html = self._wrap('LP面談 出席確認のお知らせ', f"""
            <p>{escape(name)} 様</p>
            <p>予定されていたLP面談に出席が確認できませんでした。</p>
            {scheduled_line}
            <p>再度LP面談をご希望の場合は、LP面談申請ページからお申し込みください。</p>
            <p><a href="{settings.FRONTEND_URL}/dashboard/lp-meeting/request">{settings.FRONTEND_URL}/dashboard/lp-meeting/request</a></p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】LP面談 出席確認のお知らせ', html)

    def send_lp_meeting_canceled(self, email, name, scheduled_at='', reason=''):
        scheduled_line = f'<p><strong>■ 面談予定日時</strong><br>{escape(scheduled_at)}</p>' if scheduled_at else ''
        reason_line = f'<p><strong>■ キャンセル理由</strong><br>{escape(reason)}</p>' if reason else ''
        html = self._wrap('LP面談キャンセルのお知らせ', f"""
            <p>{escape(name)} 様</p>
            <p>LP面談がキャンセルされました。</p>
            {scheduled_line}
            {reason_line}
            <p>再度LP面談をご希望の場合は、LP面談申請ページからお申し込みください。</p>
        """)
        return self._dispatch(email, f'【{SITE_NAME}】LP面談キャンセルのお知らせ', html)


email_service = EmailService()
