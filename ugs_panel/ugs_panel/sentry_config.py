"""
Sentry integration.

Ошибки отправляются в Sentry только если в окружении задан SENTRY_DSN.
Вызывается в конце settings.py: ``init_sentry()``.
"""
import logging
import os

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

FILTERED_KEYS = ('password', 'current_password', 'new_password', 'token', 'secret', 'api_key')
FILTERED_HEADERS = ('Authorization', 'Stripe-Signature', 'X-Chatworktoken')


def init_sentry():
    """Инициализирует Sentry SDK. Возвращает True, если SDK был подключён."""
    sentry_dsn = os.environ.get('SENTRY_DSN', '')
    if not sentry_dsn:
        logger.info("Sentry: DSN not configured, skipping initialization")
        return False

    environment = os.environ.get('DJANGO_ENV', 'production')
    if os.environ.get('DEBUG', 'False').lower() in ('true', '1', 'yes'):
        environment = 'development'

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            DjangoIntegration(transaction_style='url'),
            CeleryIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        environment=environment,
        release=os.environ.get('APP_VERSION', 'unknown'),
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1')),
        send_default_pii=False,
        before_send=before_send_callback,
    )

    logger.info(f"Sentry: initialized for {environment} environment")
    return True


def before_send_callback(event, hint):
    """Отбрасывает 404 и маскирует секреты в данных запроса."""
    if 'exc_info' in hint:
        exc_type = hint['exc_info'][0]
        if exc_type.__name__ == 'Http404':
            return None

    request_data = event.get('request')
    if request_data:
        data = request_data.get('data')
        if isinstance(data, dict):
            for key in FILTERED_KEYS:
                if key in data:
                    data[key] = '[FILTERED]'

        headers = request_data.get('headers')
        if isinstance(headers, dict):
            for header in FILTERED_HEADERS:
                if header in headers:
                    headers[header] = '[FILTERED]'

    return event


def capture_exception(exception, extra=None):
    """
    Отправляет exception в Sentry вручную (например, из обработчика webhook).

    Без инициализированного SDK вызов ничего не делает.
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
