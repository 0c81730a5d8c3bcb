"""
Development settings - локальная разработка
"""
from .settings import *  # noqa: F401,F403

DEBUG = True
ALLOWED_HOSTS = ['*']

FRONTEND_URL = 'http://localhost:3000'

# Email в консоль
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'
EMAIL_ASYNC_SEND = False

# Задачи выполняются синхронно, без брокера
CELERY_TASK_ALWAYS_EAGER = True

LOGGING['loggers']['accounts']['level'] = 'DEBUG'  # noqa: F405
