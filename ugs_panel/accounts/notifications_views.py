from django.shortcuts import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Notification
from .notifications import mark_all_as_read, mark_as_read
from .serializers import NotificationSerializer

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
LATEST_COUNT = 5


def _int_param(value, default, minimum=0, maximum=None):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    parsed = max(parsed, minimum)
    if maximum is not None:
        parsed = min(parsed, maximum)
    return parsed


class NotificationListView(APIView):
    """
    GET /api/auth/notifications/?is_read=false&limit=50&offset=0
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Notification.objects.filter(user=request.user)

        is_read = request.query_params.get('is_read')
        if is_read in ('true', 'false'):
            qs = qs.filter(is_read=(is_read == 'true'))

        limit = _int_param(request.query_params.get('limit'), DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT)
        offset = _int_param(request.query_params.get('offset'), 0)

        total = qs.count()
        items = qs[offset:offset + limit]
        unread_count = Notification.objects.filter(user=request.user, is_read=False).count()

        return Response({
            'notifications': NotificationSerializer(items, many=True).data,
            'unread_count': unread_count,
            'has_more': offset + limit < total,
        })


class LatestNotificationsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        items = Notification.objects.filter(user=request.user)[:LATEST_COUNT]
        return Response({
            'notifications': NotificationSerializer(items, many=True).data,
            'unread_count': Notification.objects.filter(user=request.user, is_read=False).count(),
        })


class NotificationReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk, user=request.user)
        mark_as_read(notification)
        return Response(NotificationSerializer(notification).data)


class NotificationReadAllView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = mark_all_as_read(request.user)
        return Response({'updated': updated})
