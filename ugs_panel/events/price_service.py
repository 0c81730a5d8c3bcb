"""
Синхронизация цены платного мероприятия со Stripe.

Цены в Stripe неизменяемы: при смене суммы создаётся новый Price,
старый архивируется (active=False).
"""
import logging

import stripe

from accounts.stripe_service import StripeServiceError, configure_stripe

logger = logging.getLogger(__name__)


class EventPriceService:

    @staticmethod
    def _archive(price_id):
        if not price_id:
            return
        try:
            stripe.Price.modify(price_id, active=False)
        except stripe.StripeError as e:
            # Старая цена уже могла быть архивирована вручную
            logger.warning(f'[STRIPE] Failed to archive price {price_id}: {e}')

    @staticmethod
    def _create_price(event):
        return stripe.Price.create(
            product=event.stripe_product_id,
            unit_amount=event.price,
            currency='jpy',
            metadata={'event_id': str(event.id)},
        )

    @staticmethod
    def sync(event, previous_price=None):
        """
        Приводит stripe_product_id / stripe_price_id в соответствие с is_paid и price.
        Сохраняет event, если идентификаторы изменились.

        Raises:
            StripeServiceError
        """
        if not event.is_paid or not event.price:
            if event.stripe_price_id:
                configure_stripe()
                EventPriceService._archive(event.stripe_price_id)
            if event.stripe_product_id or event.stripe_price_id:
                event.stripe_product_id = ''
                event.stripe_price_id = ''
                event.save(update_fields=['stripe_product_id', 'stripe_price_id', 'updated_at'])
            return event

        if event.stripe_price_id and previous_price == event.price:
            return event

        configure_stripe()
        try:
            if not event.stripe_product_id:
                product = stripe.Product.create(
                    name=event.title,
                    metadata={'event_id': str(event.id)},
                )
                event.stripe_product_id = product.id

            old_price_id = event.stripe_price_id
            price = EventPriceService._create_price(event)
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Price sync failed for event {event.id}: {e}')
            raise StripeServiceError(str(e)) from e

        event.stripe_price_id = price.id
        event.save(update_fields=['stripe_product_id', 'stripe_price_id', 'updated_at'])
        if old_price_id and old_price_id != price.id:
            EventPriceService._archive(old_price_id)

        logger.info(f'[STRIPE] Event {event.id} price synced: {price.id} ({event.price} JPY)')
        return event
