from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .admin_views import (
    AdminBulkMembershipStatusView,
    AdminUserDetailView,
    AdminUserListView,
    AdminUsersBulkCreateView,
    AdminUsersExportView,
)
from .api_views import ChangePasswordView, MeView, ReferralCodeView
from .jwt_views import CaseInsensitiveTokenObtainPairView
from .notifications_views import (
    LatestNotificationsView,
    NotificationListView,
    NotificationReadAllView,
    NotificationReadView,
)
from .payments_views import CreateCheckoutSessionView, PromoCodeValidateView
from .registration_views import RegisterView, ReferralInfoView, ResendVerificationView, VerifyEmailView
from .subscriptions_views import (
    AdminSubscriptionsListView,
    CancellationView,
    ReactivateView,
    SubscriptionMeView,
    SuspensionView,
)

app_name = 'accounts'

urlpatterns = [
    # JWT
    path('token/', CaseInsensitiveTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Регистрация
    path('register/', RegisterView.as_view(), name='register'),
    path('verify-email/', VerifyEmailView.as_view(), name='verify-email'),
    path('resend-verification/', ResendVerificationView.as_view(), name='resend-verification'),
    path('referral-info/', ReferralInfoView.as_view(), name='referral-info'),
    path('checkout-session/', CreateCheckoutSessionView.as_view(), name='checkout-session'),
    path('promo-code/validate/', PromoCodeValidateView.as_view(), name='promo-code-validate'),

    # Профиль
    path('me/', MeView.as_view(), name='me'),
    path('change-password/', ChangePasswordView.as_view(), name='change-password'),
    path('referral-code/', ReferralCodeView.as_view(), name='referral-code'),

    # Членство
    path('subscription/', SubscriptionMeView.as_view(), name='subscription'),
    path('cancellation/', CancellationView.as_view(), name='cancellation'),
    path('suspension/', SuspensionView.as_view(), name='suspension'),
    path('reactivate/', ReactivateView.as_view(), name='reactivate'),

    # Уведомления
    path('notifications/', NotificationListView.as_view(), name='notifications'),
    path('notifications/latest/', LatestNotificationsView.as_view(), name='notifications-latest'),
    path('notifications/read-all/', NotificationReadAllView.as_view(), name='notifications-read-all'),
    path('notifications/<int:pk>/read/', NotificationReadView.as_view(), name='notification-read'),

    # Админка
    path('admin/users/', AdminUserListView.as_view(), name='admin-users'),
    path('admin/users/bulk-membership-status/', AdminBulkMembershipStatusView.as_view(), name='admin-users-bulk-status'),
    path('admin/users/export/', AdminUsersExportView.as_view(), name='admin-users-export'),
    path('admin/users/bulk-create/', AdminUsersBulkCreateView.as_view(), name='admin-users-bulk-create'),
    path('admin/users/<int:pk>/', AdminUserDetailView.as_view(), name='admin-user-detail'),
    path('admin/subscriptions/', AdminSubscriptionsListView.as_view(), name='admin-subscriptions'),
]
