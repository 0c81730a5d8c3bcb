"""
Регистрация участника до оплаты: форма, подтверждение email, повторная отправка.
"""
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import CustomUser
from .registration import (
    AlreadyVerifiedError,
    EmailAlreadyRegisteredError,
    PendingUserNotFoundError,
    TokenExpiredError,
    register_pending_user,
    resend_verification,
    verify_email_token,
)
from .serializers import EmailSerializer, RegisterSerializer, VerifyEmailSerializer

logger = logging.getLogger(__name__)


class RegisterView(APIView):
    """POST /api/auth/register/"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            pending = register_pending_user(
                email=data['email'],
                name=data['name'],
                password=data['password'],
                referral_code=data.get('referral_code', ''),
            )
        except EmailAlreadyRegisteredError as e:
            return Response({'detail': str(e)}, status=status.HTTP_409_CONFLICT)

        return Response(
            {
                'detail': '確認メールを送信しました。メール内のリンクから登録を完了してください。',
                'email': pending.email,
            },
            status=status.HTTP_201_CREATED,
        )


class VerifyEmailView(APIView):
    """POST /api/auth/verify-email/"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = VerifyEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            pending = verify_email_token(serializer.validated_data['token'])
        except PendingUserNotFoundError as e:
            return Response({'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except TokenExpiredError as e:
            return Response({'detail': str(e)}, status=status.HTTP_410_GONE)

        return Response({
            'detail': 'メールアドレスを確認しました',
            'pending_user_id': pending.id,
            'email': pending.email,
        })


class ResendVerificationView(APIView):
    """POST /api/auth/resend-verification/"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = EmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            resend_verification(serializer.validated_data['email'])
        except PendingUserNotFoundError as e:
            return Response({'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except AlreadyVerifiedError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({'detail': '確認メールを再送信しました'})


class ReferralInfoView(APIView):
    """GET /api/auth/referral-info/?code=XXXX - имя пригласившего для формы регистрации."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        code = (request.query_params.get('code') or '').strip().upper()
        if not code:
            return Response({'detail': '紹介コードを指定してください'}, status=status.HTTP_400_BAD_REQUEST)

        referrer = CustomUser.objects.filter(referral_code=code, is_active=True).first()
        if referrer is None:
            return Response({'valid': False, 'detail': '無効な紹介コードです'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'valid': True, 'referral_code': code, 'referrer_name': referrer.name})
