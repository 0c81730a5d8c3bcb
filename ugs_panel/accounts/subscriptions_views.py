"""
Членство участника: статус подписки, отмена, приостановка, возврат.
"""
import logging

from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .membership import (
    MembershipError,
    cancel_membership,
    resume_membership,
    start_reactivation,
    subscription_summary,
    suspend_membership,
)
from .models import Subscription
from .permissions import IsAdmin
from .serializers import CancellationSerializer, SubscriptionSerializer, SuspensionSerializer, UserProfileSerializer
from .stripe_service import StripeServiceError

logger = logging.getLogger(__name__)


def _stripe_error_response(message, error):
    return Response(
        {'detail': message, 'error': str(error)},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


class SubscriptionMeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(subscription_summary(request.user))


class CancellationView(APIView):
    """POST /api/auth/cancellation/  {"reason": "...", "immediate": false}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CancellationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        immediate = serializer.validated_data['immediate']

        try:
            user = cancel_membership(request.user, serializer.validated_data['reason'], immediate=immediate)
        except MembershipError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StripeServiceError as e:
            return _stripe_error_response('サブスクリプションのキャンセルに失敗しました', e)

        if immediate:
            message = '退会手続きが完了しました'
        else:
            message = '退会手続きが完了しました。現在の請求期間の終了までサービスをご利用いただけます'
        return Response({'detail': message, 'user': UserProfileSerializer(user).data})


class SuspensionView(APIView):
    """
    POST   /api/auth/suspension/  - 休会 (максимум 3 месяца)
    DELETE /api/auth/suspension/  - 休会解除
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = SuspensionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user = suspend_membership(
                request.user,
                serializer.validated_data.get('suspension_end_date'),
                serializer.validated_data['reason'],
            )
        except MembershipError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StripeServiceError as e:
            return _stripe_error_response('休会処理に失敗しました', e)

        return Response({'detail': '休会手続きが完了しました', 'user': UserProfileSerializer(user).data})

    def delete(self, request):
        try:
            user = resume_membership(request.user)
        except MembershipError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StripeServiceError as e:
            return _stripe_error_response('休会解除に失敗しました', e)

        return Response({'detail': '休会を解除しました', 'user': UserProfileSerializer(user).data})


class ReactivateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        try:
            session = start_reactivation(request.user)
        except MembershipError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StripeServiceError as e:
            return _stripe_error_response('チェックアウトセッションの作成に失敗しました', e)

        return Response({'session_id': session.id, 'url': session.url})


class AdminSubscriptionsListView(ListAPIView):
    """GET /api/auth/admin/subscriptions/?status=past_due"""
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = SubscriptionSerializer

    def get_queryset(self):
        qs = Subscription.objects.select_related('user').order_by('-created_at')
        status_filter = self.request.query_params.get('status')
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs
