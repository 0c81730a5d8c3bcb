"""
Stripe: webhook, checkout для регистрации, проверка промокодов.
"""
import json
import logging

import stripe
from django.db import transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ugs_panel.sentry_config import capture_exception

from .registration import (
    EmailAlreadyRegisteredError,
    EmailNotVerifiedError,
    PendingUserNotFoundError,
    get_checkout_ready_pending_user,
)
from .serializers import CheckoutSessionSerializer, PromoCodeSerializer
from .stripe_service import StripeService, StripeServiceError
from .stripe_webhooks import dispatch_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["POST"])
def stripe_webhook(request):
    """
    Webhook endpoint для событий Stripe

    POST /api/webhooks/stripe/

    - checkout.session.completed - оплата членства / события / повторная подписка
    - invoice.payment_succeeded / invoice.payment_failed - ежемесячные списания
    - customer.subscription.deleted - подписка завершена
    """
    signature = request.headers.get('Stripe-Signature', '')
    if not signature:
        logger.warning('[STRIPE] Webhook without signature header')
        return JsonResponse({'error': 'Missing signature'}, status=400)

    try:
        StripeService.construct_event(request.body, signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f'[STRIPE] Invalid webhook signature: {e}')
        return JsonResponse({'error': 'Invalid signature'}, status=400)

    # Подпись проверена - дальше работаем с обычным dict
    event = json.loads(request.body.decode('utf-8'))
    logger.info(f'[STRIPE] Received webhook: {event.get("type")} ({event.get("id")})')

    try:
        with transaction.atomic():
            dispatch_event(event)
    except Exception as e:
        logger.exception(f'[STRIPE] Webhook processing error for {event.get("type")}: {e}')
        capture_exception(e, extra={'stripe_event_id': event.get('id')})
        return JsonResponse({'error': 'Webhook handler failed'}, status=500)

    return JsonResponse({'received': True})


class CreateCheckoutSessionView(APIView):
    """
    POST /api/auth/checkout-session/
    Body: {"email": "...", "promotion_code": "WELCOME"}
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = CheckoutSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            pending = get_checkout_ready_pending_user(data['email'])
        except EmailAlreadyRegisteredError as e:
            return Response({'detail': str(e)}, status=status.HTTP_409_CONFLICT)
        except PendingUserNotFoundError as e:
            return Response({'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except EmailNotVerifiedError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            promotion_code_id = None
            if data.get('promotion_code'):
                promotion = StripeService.find_promotion_code(data['promotion_code'])
                if promotion is None:
                    return Response({'detail': '無効なプロモーションコードです'}, status=status.HTTP_400_BAD_REQUEST)
                promotion_code_id = promotion.id

            session = StripeService.create_membership_checkout(pending, promotion_code_id)
        except StripeServiceError as e:
            return Response(
                {'detail': 'チェックアウトセッションの作成に失敗しました', 'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        pending.stripe_session_id = session.id
        pending.save(update_fields=['stripe_session_id'])
        return Response({'session_id': session.id, 'url': session.url})


class PromoCodeValidateView(APIView):
    """
    POST /api/auth/promo-code/validate/
    Body: {"code": "WELCOME"}
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PromoCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            info = StripeService.validate_promotion_code(serializer.validated_data['code'])
        except StripeServiceError as e:
            return Response(
                {'detail': 'プロモーションコードの確認に失敗しました', 'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        if info is None:
            return Response({'valid': False, 'detail': '無効なプロモーションコードです'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'valid': True, **info})
