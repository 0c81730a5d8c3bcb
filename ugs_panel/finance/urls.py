"""
Finance app URL configuration.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register('referrals', views.ReferralViewSet, basename='referral')
router.register('admin/compensations', views.AdminCompensationViewSet, basename='admin-compensation')

urlpatterns = [
    path('', include(router.urls)),
    path('compensations/', views.MyCompensationsView.as_view(), name='my-compensations'),
    path('contracts/', views.MyContractsView.as_view(), name='my-contracts'),
    path('admin/contracts/upload/preview/', views.AdminContractsPreviewView.as_view(), name='admin-contracts-preview'),
    path('admin/contracts/upload/confirm/', views.AdminContractsConfirmView.as_view(), name='admin-contracts-confirm'),
]
