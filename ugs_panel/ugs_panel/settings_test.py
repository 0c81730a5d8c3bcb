"""
Test settings - pytest / manage.py test.
"""
from .settings import *  # noqa: F401,F403

DEBUG = False
ALLOWED_HOSTS = ['*']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
EMAIL_ASYNC_SEND = False

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

STRIPE_SECRET_KEY = 'sk_test_dummy'
STRIPE_WEBHOOK_SECRET = 'whsec_test_dummy'
STRIPE_MEMBERSHIP_PRICE_ID = 'price_membership_test'

CRON_SECRET = 'test-cron-secret'

CHATWORK_API_TOKEN = ''

FRONTEND_URL = 'http://testserver'
