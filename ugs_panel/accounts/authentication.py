"""Аутентификация внешнего планировщика по общему секрету."""
import hmac
import logging

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication, get_authorization_header

logger = logging.getLogger(__name__)

CRON_AUTH = 'cron'


class CronSecretAuthentication(BaseAuthentication):
    """
    ``Authorization: Bearer <CRON_SECRET>``.

    При совпадении запрос считается аутентифицированным как планировщик
    (request.auth == 'cron'); иначе управление переходит к JWT.
    """

    def authenticate(self, request):
        secret = getattr(settings, 'CRON_SECRET', '')
        if not secret:
            return None
        header = get_authorization_header(request).decode('latin-1')
        if hmac.compare_digest(header, f'Bearer {secret}'):
            return (AnonymousUser(), CRON_AUTH)
        return None

    def authenticate_header(self, request):
        return 'Bearer'
