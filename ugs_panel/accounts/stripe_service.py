"""
Stripe: membership checkout, управление подпиской, промокоды.

Все обращения к Stripe SDK для членства собраны здесь; вьюхи и webhook
работают только через StripeService.
"""
import logging
from datetime import datetime, timezone as dt_timezone

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Ошибка обращения к Stripe (сеть, ключи, отказ API)."""
    pass


def configure_stripe():
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.max_network_retries = 2


def to_stripe_timestamp(dt):
    return int(dt.timestamp())


def from_stripe_timestamp(value):
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


DURATION_LABELS = {
    'once': '初回のみ',
    'forever': '永続',
}


def describe_coupon(coupon) -> dict:
    """Описание скидки купона для показа на форме оплаты."""
    percent_off = getattr(coupon, 'percent_off', None)
    amount_off = getattr(coupon, 'amount_off', None)
    duration = getattr(coupon, 'duration', 'once')
    duration_in_months = getattr(coupon, 'duration_in_months', None)

    if percent_off:
        discount_label = f'{percent_off:g}%オフ'
    elif amount_off:
        discount_label = f'¥{amount_off:,}オフ'
    else:
        discount_label = ''

    if duration == 'repeating' and duration_in_months:
        duration_label = f'{duration_in_months}ヶ月間'
    else:
        duration_label = DURATION_LABELS.get(duration, duration)

    return {
        'percent_off': percent_off,
        'amount_off': amount_off,
        'currency': getattr(coupon, 'currency', None),
        'duration': duration,
        'duration_in_months': duration_in_months,
        'discount_label': discount_label,
        'duration_label': duration_label,
    }


class StripeService:
    """Операции с подпиской участника в Stripe."""

    @staticmethod
    def construct_event(payload: bytes, sig_header: str):
        """
        Проверка подписи webhook.

        Raises:
            ValueError: некорректный payload
            stripe.SignatureVerificationError: подпись не совпала
        """
        return stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)

    @staticmethod
    def get_or_create_membership_price() -> str:
        """
        ID цены месячного взноса.

        Берём STRIPE_MEMBERSHIP_PRICE_ID, иначе ищем продукт по имени и
        активную месячную цену нужного размера, иначе создаём их.
        """
        if settings.STRIPE_MEMBERSHIP_PRICE_ID:
            return settings.STRIPE_MEMBERSHIP_PRICE_ID

        configure_stripe()
        amount = settings.MEMBERSHIP_MONTHLY_PRICE
        try:
            products = stripe.Product.list(active=True, limit=100)
            product = next(
                (p for p in products.data if p.name == settings.MEMBERSHIP_PRODUCT_NAME),
                None,
            )
            if product is None:
                product = stripe.Product.create(name=settings.MEMBERSHIP_PRODUCT_NAME)
                logger.info(f'[STRIPE] Membership product created: {product.id}')

            prices = stripe.Price.list(product=product.id, active=True, type='recurring', limit=100)
            for price in prices.data:
                if price.unit_amount == amount and price.recurring and price.recurring.interval == 'month':
                    return price.id

            price = stripe.Price.create(
                product=product.id,
                unit_amount=amount,
                currency=settings.STRIPE_CURRENCY,
                recurring={'interval': 'month'},
            )
            logger.info(f'[STRIPE] Membership price created: {price.id} ({amount} JPY/month)')
            return price.id
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Failed to resolve membership price: {e}')
            raise StripeServiceError(str(e)) from e

    @staticmethod
    def create_membership_checkout(pending_user, promotion_code_id=None):
        """
        Checkout Session для первой оплаты членства.

        Returns:
            stripe.checkout.Session
        """
        price_id = StripeService.get_or_create_membership_price()
        configure_stripe()

        params = {
            'mode': 'subscription',
            'payment_method_types': ['card'],
            'customer_email': pending_user.email,
            'line_items': [{'price': price_id, 'quantity': 1}],
            'success_url': f'{settings.FRONTEND_URL}/register/complete?session_id={{CHECKOUT_SESSION_ID}}',
            'cancel_url': f'{settings.FRONTEND_URL}/register/payment?canceled=true',
            'metadata': {
                'type': 'subscription',
                'pending_user_id': str(pending_user.id),
                'user_name': pending_user.name,
                'user_email': pending_user.email,
                'referral_code': pending_user.referral_code or '',
            },
        }
        if promotion_code_id:
            params['discounts'] = [{'promotion_code': promotion_code_id}]
        else:
            params['allow_promotion_codes'] = True

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Checkout session failed for {pending_user.email}: {e}')
            raise StripeServiceError(str(e)) from e

        logger.info(f'[STRIPE] Membership checkout created: {session.id} for {pending_user.email}')
        return session

    @staticmethod
    def create_reactivation_checkout(user, stripe_customer_id=''):
        price_id = StripeService.get_or_create_membership_price()
        configure_stripe()

        params = {
            'mode': 'subscription',
            'payment_method_types': ['card'],
            'line_items': [{'price': price_id, 'quantity': 1}],
            'success_url': f'{settings.FRONTEND_URL}/dashboard?reactivated=true',
            'cancel_url': f'{settings.FRONTEND_URL}/dashboard/settings/subscription',
            'metadata': {
                'type': 'reactivation',
                'user_id': str(user.id),
                'user_email': user.email,
                'user_name': user.name,
            },
        }
        if stripe_customer_id:
            params['customer'] = stripe_customer_id
        else:
            params['customer_email'] = user.email

        try:
            return stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Reactivation checkout failed for {user.email}: {e}')
            raise StripeServiceError(str(e)) from e

    @staticmethod
    def cancel_subscription(stripe_subscription_id, immediate=False):
        configure_stripe()
        try:
            stripe.Subscription.cancel(
                stripe_subscription_id,
                invoice_now=False,
                prorate=bool(immediate),
            )
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Cancel failed for {stripe_subscription_id}: {e}')
            raise StripeServiceError(str(e)) from e
        logger.info(f'[STRIPE] Subscription canceled: {stripe_subscription_id} (immediate={immediate})')

    @staticmethod
    def pause_subscription(stripe_subscription_id, resumes_at):
        """Приостанавливает списания до ``resumes_at`` (счета аннулируются)."""
        configure_stripe()
        try:
            stripe.Subscription.modify(
                stripe_subscription_id,
                pause_collection={
                    'behavior': 'void',
                    'resumes_at': to_stripe_timestamp(resumes_at),
                },
            )
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Pause failed for {stripe_subscription_id}: {e}')
            raise StripeServiceError(str(e)) from e

    @staticmethod
    def resume_subscription(stripe_subscription_id):
        configure_stripe()
        try:
            # Пустая строка снимает pause_collection
            stripe.Subscription.modify(stripe_subscription_id, pause_collection='')
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Resume failed for {stripe_subscription_id}: {e}')
            raise StripeServiceError(str(e)) from e

    @staticmethod
    def find_promotion_code(code):
        """
        Активный промокод по коду (регистр не важен).

        Returns:
            stripe.PromotionCode или None
        """
        configure_stripe()
        try:
            result = stripe.PromotionCode.list(code=code.strip().upper(), active=True, limit=1)
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Promotion code lookup failed for {code}: {e}')
            raise StripeServiceError(str(e)) from e
        return result.data[0] if result.data else None

    @staticmethod
    def validate_promotion_code(code):
        """
        Returns:
            dict с описанием скидки или None, если код не найден / купон невалиден
        """
        promotion = StripeService.find_promotion_code(code)
        if promotion is None:
            return None

        coupon = promotion.coupon
        if isinstance(coupon, str):
            try:
                coupon = stripe.Coupon.retrieve(coupon)
            except stripe.StripeError as e:
                logger.error(f'[STRIPE] Coupon retrieve failed for {coupon}: {e}')
                raise StripeServiceError(str(e)) from e

        if not getattr(coupon, 'valid', True):
            return None

        info = describe_coupon(coupon)
        info['promotion_code_id'] = promotion.id
        info['code'] = promotion.code
        return info
