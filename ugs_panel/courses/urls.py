from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import (
    AdminCourseViewSet,
    AdminLessonDetailView,
    CourseDetailView,
    CourseListView,
    CourseProgressView,
)

app_name = 'courses'

admin_router = SimpleRouter()
admin_router.register(r'courses', AdminCourseViewSet, basename='admin-course')

urlpatterns = [
    path('', CourseListView.as_view(), name='course-list'),
    path('progress/', CourseProgressView.as_view(), name='course-progress'),
    path('<int:pk>/', CourseDetailView.as_view(), name='course-detail'),
    path('admin/', include(admin_router.urls)),
    path('admin/lessons/<int:pk>/', AdminLessonDetailView.as_view(), name='admin-lesson-detail'),
]
