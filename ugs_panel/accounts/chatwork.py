"""Служебные уведомления команды в Chatwork."""
import logging

import requests
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

CHATWORK_API_URL = 'https://api.chatwork.com/v2'


def _get_api_token() -> str:
    return getattr(settings, 'CHATWORK_API_TOKEN', '') or ''


def send_message(room_id: str, message: str) -> bool:
    """
    Отправляет сообщение в комнату Chatwork.

    Без токена или комнаты - пропускаем с предупреждением. Ошибки API
    логируются и не пробрасываются: уведомление не должно ломать webhook.
    """
    token = _get_api_token()
    if not token:
        logger.warning('[CHATWORK] CHATWORK_API_TOKEN is not set, skipping notification')
        return False
    if not room_id:
        logger.warning('[CHATWORK] Room ID is not provided, skipping notification')
        return False

    try:
        response = requests.post(
            f'{CHATWORK_API_URL}/rooms/{room_id}/messages',
            headers={'X-ChatWorkToken': token},
            data={'body': message},
            timeout=getattr(settings, 'CHATWORK_TIMEOUT', 10),
        )
        if response.status_code >= 400:
            logger.error(f'[CHATWORK] API error {response.status_code}: {response.text[:200]}')
            return False
    except requests.RequestException as e:
        logger.error(f'[CHATWORK] Failed to send message to room {room_id}: {e}')
        return False

    logger.info(f'[CHATWORK] Message sent to room {room_id}')
    return True


def _now_label():
    return timezone.localtime().strftime('%Y年%m月%d日 %H:%M')


def notify_new_member(user) -> bool:
    message = (
        '[info][title]新規会員登録（決済完了）[/title]'
        f'氏名: {user.name}\n'
        f'メール: {user.email}\n'
        f'会員番号: {user.member_id or "-"}\n'
        f'日時: {_now_label()}[/info]'
    )
    return send_message(settings.CHATWORK_ROOM_PAYMENT, message)


def notify_payment_failed(user) -> bool:
    message = (
        '[info][title]月額決済失敗[/title]'
        f'氏名: {user.name}\n'
        f'メール: {user.email}\n'
        f'会員番号: {user.member_id or "-"}\n'
        f'日時: {_now_label()}[/info]'
    )
    return send_message(settings.CHATWORK_ROOM_PAYMENT, message)


def notify_promotion_application(user, target_role_label: str) -> bool:
    message = (
        f'[info][title]昇格申請: {target_role_label}[/title]'
        f'氏名: {user.name}\n'
        f'会員番号: {user.member_id or "-"}\n'
        f'日時: {_now_label()}[/info]'
    )
    return send_message(settings.CHATWORK_ROOM_PROMOTION, message)
