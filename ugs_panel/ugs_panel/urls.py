"""
URL configuration for ugs_panel project.
"""
from django.contrib import admin
from django.urls import include, path

from accounts.cron_views import ResumeSuspendedUsersCronView, UpdateDelinquentStatusCronView
from accounts.payments_views import stripe_webhook
from events.cron_views import GenerateMonthlyEventsCronView
from promotions.cron_views import DemoteFPUsersCronView

from .health import health_check

urlpatterns = [
    path('api/health/', health_check, name='health'),
    path('admin/', admin.site.urls),

    # Аутентификация, регистрация, членство, уведомления
    path('api/auth/', include('accounts.urls')),

    # Stripe
    path('api/webhooks/stripe/', stripe_webhook, name='stripe-webhook'),

    # Внешний планировщик
    path(
        'api/cron/update-delinquent-status/',
        UpdateDelinquentStatusCronView.as_view(),
        name='cron-update-delinquent-status',
    ),
    path(
        'api/cron/resume-suspended-users/',
        ResumeSuspendedUsersCronView.as_view(),
        name='cron-resume-suspended-users',
    ),
    path(
        'api/cron/generate-monthly-events/',
        GenerateMonthlyEventsCronView.as_view(),
        name='cron-generate-monthly-events',
    ),
    path('api/cron/demote-fp-users/', DemoteFPUsersCronView.as_view(), name='cron-demote-fp-users'),

    path('api/courses/', include('courses.urls')),
    path('api/events/', include('events.urls')),
    path('api/finance/', include('finance.urls')),
    path('api/promotions/', include('promotions.urls')),
]
