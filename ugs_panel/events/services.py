"""
Events business logic: запись, посещаемость, оплата платных мероприятий.
"""
import logging

import stripe
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounts.email_service import email_service
from accounts.stripe_service import configure_stripe

from .models import Event, EventRegistration, EventSchedule

logger = logging.getLogger(__name__)


class EventServiceError(Exception):
    """Base exception for event operations (HTTP 400)."""
    pass


class RegistrationNotFoundError(EventServiceError):
    """Пользователь не записан на мероприятие (HTTP 404)."""
    pass


class EventPaymentError(EventServiceError):
    """Ошибка Stripe при оплате или возврате (HTTP 500)."""
    pass


def get_registration(user, event):
    return EventRegistration.objects.filter(user=user, event=event).first()


class EventRegistrationService:

    @staticmethod
    @transaction.atomic
    def register(user, event, schedule_id=None):
        """
        Бесплатная запись.

        Returns:
            tuple: (registration, created). created=False - уже был записан.

        Raises:
            EventServiceError: платное мероприятие, нет мест, неизвестный сеанс
        """
        event = Event.objects.select_for_update().get(pk=event.pk)
        existing = get_registration(user, event)
        if existing is not None:
            return existing, False

        if event.is_paid:
            raise EventServiceError('有料イベントは決済ページからお申し込みください')
        if event.is_full():
            raise EventServiceError('定員に達しています')

        schedule = None
        if schedule_id:
            schedule = EventSchedule.objects.filter(pk=schedule_id, event=event).first()
            if schedule is None:
                raise EventServiceError('指定された日程が見つかりません')

        registration = EventRegistration.objects.create(
            user=user,
            event=event,
            schedule=schedule,
            payment_status=EventRegistration.PAYMENT_FREE,
        )
        logger.info(f'Event registration: user={user.id} event={event.id}')
        return registration, True

    @staticmethod
    def unregister(user, event):
        """
        Returns:
            bool: False - пользователь не был записан
        """
        registration = get_registration(user, event)
        if registration is None:
            return False
        if registration.payment_status == EventRegistration.PAYMENT_PAID:
            raise EventServiceError('有料イベントのキャンセルは返金手続きから行ってください')
        registration.delete()
        logger.info(f'Event unregistration: user={user.id} event={event.id}')
        return True

    @staticmethod
    def cancel(user, event):
        registration = get_registration(user, event)
        if registration is None:
            raise RegistrationNotFoundError('参加登録が見つかりません')
        if registration.payment_status == EventRegistration.PAYMENT_PAID:
            raise EventServiceError('支払済みの登録はキャンセルできません。返金手続きを行ってください')
        registration.delete()


class AttendanceService:
    """Отметка посещения: код на мероприятии или видео + анкета после."""

    @staticmethod
    def _require_registration(user, event):
        registration = get_registration(user, event)
        if registration is None:
            raise RegistrationNotFoundError('このイベントに参加登録されていません')
        return registration

    @staticmethod
    def _complete_if_ready(registration, now):
        if registration.video_watched and registration.survey_completed and not registration.attendance_completed_at:
            registration.attendance_method = EventRegistration.ATTENDANCE_VIDEO_SURVEY
            registration.attendance_completed_at = now

    @staticmethod
    def _mark_overdue(registration, event, now):
        if event.attendance_deadline and now > event.attendance_deadline:
            registration.is_overdue = True

    @staticmethod
    def mark_video_watched(user, event):
        if not event.vimeo_url:
            raise EventServiceError('このイベントには録画がありません')
        registration = AttendanceService._require_registration(user, event)

        now = timezone.now()
        registration.video_watched = True
        registration.video_completed_at = registration.video_completed_at or now
        AttendanceService._mark_overdue(registration, event, now)
        AttendanceService._complete_if_ready(registration, now)
        registration.save()
        return registration

    @staticmethod
    def mark_survey_completed(user, event):
        if not event.survey_url:
            raise EventServiceError('このイベントにはアンケートがありません')
        registration = AttendanceService._require_registration(user, event)

        now = timezone.now()
        registration.survey_completed = True
        registration.survey_completed_at = registration.survey_completed_at or now
        AttendanceService._mark_overdue(registration, event, now)
        AttendanceService._complete_if_ready(registration, now)
        registration.save()
        return registration

    @staticmethod
    def submit_attendance_code(user, event, code):
        """
        Returns:
            tuple: (registration, already_completed)
        """
        if not event.attendance_code:
            raise EventServiceError('このイベントには参加コードが設定されていません')
        now = timezone.now()
        if event.attendance_deadline and now > event.attendance_deadline:
            raise EventServiceError('出席登録の期限が過ぎています')

        registration = AttendanceService._require_registration(user, event)
        if registration.attendance_completed_at:
            return registration, True

        if (code or '').strip().upper() != event.attendance_code.strip().upper():
            raise EventServiceError('参加コードが正しくありません')

        registration.attendance_method = EventRegistration.ATTENDANCE_CODE
        registration.attendance_completed_at = now
        registration.save(update_fields=['attendance_method', 'attendance_completed_at'])
        logger.info(f'Attendance code accepted: user={user.id} event={event.id}')
        return registration, False


class EventPaymentService:
    """Оплата платных мероприятий через Stripe Checkout (mode=payment)."""

    @staticmethod
    def create_checkout(user, event):
        """
        Returns:
            stripe.checkout.Session

        Raises:
            EventServiceError, EventPaymentError
        """
        if not event.is_paid or not event.stripe_price_id:
            raise EventServiceError('このイベントは有料イベントではありません')

        configure_stripe()
        try:
            price = stripe.Price.retrieve(event.stripe_price_id)
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Price retrieve failed for event {event.id}: {e}')
            raise EventPaymentError(str(e)) from e
        if not price.active or price.unit_amount != event.price:
            logger.warning(
                f'[STRIPE] Price mismatch for event {event.id}: '
                f'active={price.active} unit_amount={price.unit_amount} price={event.price}'
            )
            raise EventServiceError('イベント価格の設定が正しくありません。管理者にお問い合わせください')

        with transaction.atomic():
            locked = Event.objects.select_for_update().get(pk=event.pk)
            registration = get_registration(user, locked)
            if registration and registration.payment_status == EventRegistration.PAYMENT_PAID:
                raise EventServiceError('既に支払い済みです')
            if registration is None:
                if locked.is_full():
                    raise EventServiceError('定員に達しています')
                registration = EventRegistration.objects.create(
                    user=user,
                    event=locked,
                    payment_status=EventRegistration.PAYMENT_PENDING,
                )

        try:
            session = stripe.checkout.Session.create(
                mode='payment',
                payment_method_types=['card'],
                line_items=[{'price': event.stripe_price_id, 'quantity': 1}],
                customer_email=user.email,
                success_url=f'{settings.FRONTEND_URL}/dashboard/events?payment=success&event_id={event.id}',
                cancel_url=f'{settings.FRONTEND_URL}/dashboard/events?payment=cancelled',
                metadata={
                    'type': 'event',
                    'registration_id': str(registration.id),
                    'event_id': str(event.id),
                    'user_id': str(user.id),
                },
            )
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Event checkout failed for event {event.id}: {e}')
            raise EventPaymentError(str(e)) from e

        registration.stripe_session_id = session.id
        registration.save(update_fields=['stripe_session_id'])
        logger.info(f'[STRIPE] Event checkout created: {session.id} event={event.id} user={user.id}')
        return session

    @staticmethod
    def refund(user, event):
        registration = get_registration(user, event)
        if registration is None:
            raise RegistrationNotFoundError('参加登録が見つかりません')
        if registration.payment_status != EventRegistration.PAYMENT_PAID or not registration.stripe_payment_intent_id:
            raise EventServiceError('返金可能な支払いがありません')

        configure_stripe()
        try:
            refund = stripe.Refund.create(
                payment_intent=registration.stripe_payment_intent_id,
                reason='requested_by_customer',
            )
        except stripe.StripeError as e:
            logger.error(f'[STRIPE] Refund failed for registration {registration.id}: {e}')
            raise EventPaymentError(str(e)) from e

        registration.delete()
        logger.info(f'[STRIPE] Event refunded: {refund.id} event={event.id} user={user.id}')
        return refund

    @staticmethod
    def mark_paid_from_session(session):
        """Обработка checkout.session.completed с metadata.type == 'event'."""
        metadata = session.get('metadata') or {}
        registration = (
            EventRegistration.objects.select_related('event', 'user')
            .filter(pk=metadata.get('registration_id'))
            .first()
        )
        if registration is None:
            logger.warning(f'[STRIPE] Event payment for unknown registration: {metadata.get("registration_id")}')
            return None
        if registration.payment_status == EventRegistration.PAYMENT_PAID:
            return registration

        registration.payment_status = EventRegistration.PAYMENT_PAID
        registration.paid_amount = session.get('amount_total')
        registration.paid_at = timezone.now()
        registration.stripe_payment_intent_id = session.get('payment_intent') or ''
        registration.stripe_session_id = session.get('id') or registration.stripe_session_id
        registration.save()

        event = registration.event
        transaction.on_commit(lambda: email_service.send_event_confirmation(
            registration.user.email,
            registration.user.name,
            event.title,
            timezone.localtime(event.date).strftime('%Y年%m月%d日 %H:%M'),
            amount=registration.paid_amount,
        ))
        logger.info(f'[STRIPE] Event registration paid: registration={registration.id}')
        return registration
