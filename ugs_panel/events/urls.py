from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import AdminEventViewSet, AdminRegistrationUpdateView, EventViewSet

app_name = 'events'

admin_router = SimpleRouter()
admin_router.register(r'events', AdminEventViewSet, basename='admin-event')

router = SimpleRouter()
router.register(r'', EventViewSet, basename='event')

urlpatterns = [
    path('admin/', include(admin_router.urls)),
    path('admin/registrations/<int:pk>/', AdminRegistrationUpdateView.as_view(), name='admin-registration-update'),
    path('', include(router.urls)),
]
