"""
Health check для мониторинга.

Возвращает 200, если база доступна и критические настройки заданы, иначе 500.
"""
import logging
import time

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = ('SECRET_KEY', 'STRIPE_SECRET_KEY', 'STRIPE_WEBHOOK_SECRET')


def health_check(request):
    status = {
        'status': 'healthy',
        'timestamp': time.time(),
        'checks': {},
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        status['checks']['database'] = 'ok'
    except DatabaseError as e:
        logger.error(f'Health check: database unavailable: {e}')
        status['status'] = 'unhealthy'
        status['checks']['database'] = f'error: {str(e)[:100]}'

    missing = [name for name in REQUIRED_SETTINGS if not getattr(settings, name, '')]
    if missing:
        status['status'] = 'unhealthy'
        status['checks']['settings'] = f'missing: {", ".join(missing)}'
    else:
        status['checks']['settings'] = 'ok'

    http_status = 200 if status['status'] == 'healthy' else 500
    return JsonResponse(status, status=http_status)
