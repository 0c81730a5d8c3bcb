"""
Tests for events app: registration, attendance, paid events, admin, monthly meetings.
"""
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import patch

import stripe
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Event, EventRegistration, EventSchedule
from .services import EventPaymentService
from .tasks import first_sunday, generate_monthly_events

User = get_user_model()


def aware(*args):
    return timezone.make_aware(datetime(*args))


def make_user(email, role='member', **extra):
    return User.objects.create_user(email=email, password='testpass123', role=role, name=email.split('@')[0], **extra)


def make_event(**extra):
    data = {
        'title': '勉強会',
        'date': timezone.now() + timedelta(days=7),
        'target_roles': ['all'],
    }
    data.update(extra)
    return Event.objects.create(**data)


class EventListTest(APITestCase):

    def setUp(self):
        self.member = make_user('member@test.com')
        self.admin = make_user('admin@test.com', role='admin')
        self.public = make_event(title='全員向け')
        self.fp_only = make_event(title='FP向け', target_roles=['fp'])

    def test_member_sees_only_targeted_events(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get('/api/events/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [e['title'] for e in response.data['events']]
        self.assertEqual(titles, ['全員向け'])

    def test_admin_sees_everything(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/events/')
        self.assertEqual(len(response.data['events']), 2)

    def test_list_includes_registration_state(self):
        EventRegistration.objects.create(user=self.member, event=self.public)
        self.client.force_authenticate(user=self.member)

        event = self.client.get('/api/events/').data['events'][0]

        self.assertTrue(event['is_registered'])
        self.assertEqual(event['current_participants'], 1)
        self.assertEqual(event['registration']['payment_status'], 'free')

    def test_hidden_event_actions_return_404(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post(f'/api/events/{self.fp_only.id}/register/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class EventRegistrationTest(APITestCase):

    def setUp(self):
        self.user = make_user('member@test.com')
        self.client.force_authenticate(user=self.user)

    def test_register_free_event(self):
        event = make_event()
        response = self.client.post(f'/api/events/{event.id}/register/')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['current_participants'], 1)
        self.assertTrue(EventRegistration.objects.filter(user=self.user, event=event, payment_status='free').exists())

    def test_register_twice_returns_200(self):
        event = make_event()
        self.client.post(f'/api/events/{event.id}/register/')
        response = self.client.post(f'/api/events/{event.id}/register/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(EventRegistration.objects.filter(event=event).count(), 1)

    def test_register_with_schedule(self):
        event = make_event()
        schedule = EventSchedule.objects.create(event=event, date=timezone.localdate(), start_time='10:00')
        response = self.client.post(f'/api/events/{event.id}/register/', {'schedule_id': schedule.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(EventRegistration.objects.get(event=event).schedule, schedule)

    def test_register_paid_event_requires_checkout(self):
        event = make_event(is_paid=True, price=3000, stripe_price_id='price_1')
        response = self.client.post(f'/api/events/{event.id}/register/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_full_event(self):
        event = make_event(max_participants=1)
        EventRegistration.objects.create(user=make_user('other@test.com'), event=event)

        response = self.client.post(f'/api/events/{event.id}/register/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unregister(self):
        event = make_event()
        EventRegistration.objects.create(user=self.user, event=event)

        response = self.client.post(f'/api/events/{event.id}/unregister/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['current_participants'], 0)

    def test_unregister_when_not_registered(self):
        event = make_event()
        response = self.client.post(f'/api/events/{event.id}/unregister/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unregister_paid_registration_rejected(self):
        event = make_event(is_paid=True, price=3000)
        EventRegistration.objects.create(user=self.user, event=event, payment_status='paid')

        response = self.client.post(f'/api/events/{event.id}/unregister/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(EventRegistration.objects.filter(event=event).exists())

    def test_cancel_missing_registration(self):
        event = make_event()
        response = self.client.post(f'/api/events/{event.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_pending_registration(self):
        event = make_event(is_paid=True, price=3000)
        EventRegistration.objects.create(user=self.user, event=event, payment_status='pending')

        response = self.client.post(f'/api/events/{event.id}/cancel/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(EventRegistration.objects.filter(event=event).exists())


class AttendanceTest(APITestCase):

    def setUp(self):
        self.user = make_user('member@test.com')
        self.client.force_authenticate(user=self.user)
        self.event = make_event(
            attendance_code='ugs2024',
            vimeo_url='https://vimeo.com/1',
            survey_url='https://forms.example.com/s',
            attendance_deadline=timezone.now() + timedelta(days=1),
        )

    def _register(self):
        return EventRegistration.objects.create(user=self.user, event=self.event)

    def test_code_is_trimmed_and_case_insensitive(self):
        self._register()
        response = self.client.post(
            f'/api/events/{self.event.id}/submit-attendance-code/', {'code': '  UGS2024 '}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        registration = EventRegistration.objects.get(user=self.user)
        self.assertEqual(registration.attendance_method, 'code')
        self.assertIsNotNone(registration.attendance_completed_at)

    def test_wrong_code(self):
        self._register()
        response = self.client.post(
            f'/api/events/{self.event.id}/submit-attendance-code/', {'code': 'nope'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_code_after_deadline(self):
        self._register()
        Event.objects.filter(pk=self.event.pk).update(attendance_deadline=timezone.now() - timedelta(hours=1))

        response = self.client.post(
            f'/api/events/{self.event.id}/submit-attendance-code/', {'code': 'ugs2024'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_code_when_already_completed(self):
        registration = self._register()
        registration.attendance_completed_at = timezone.now()
        registration.save()

        response = self.client.post(
            f'/api/events/{self.event.id}/submit-attendance-code/', {'code': 'whatever'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_video_requires_registration(self):
        response = self.client.post(f'/api/events/{self.event.id}/mark-video-watched/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_video_requires_vimeo_url(self):
        event = make_event()
        EventRegistration.objects.create(user=self.user, event=event)
        response = self.client.post(f'/api/events/{event.id}/mark-video-watched/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_video_and_survey_complete_attendance(self):
        self._register()
        self.client.post(f'/api/events/{self.event.id}/mark-video-watched/')
        registration = EventRegistration.objects.get(user=self.user)
        self.assertTrue(registration.video_watched)
        self.assertFalse(registration.attendance_completed)

        response = self.client.post(f'/api/events/{self.event.id}/mark-survey-completed/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        registration.refresh_from_db()
        self.assertEqual(registration.attendance_method, 'video_survey')
        self.assertIsNotNone(registration.attendance_completed_at)
        self.assertFalse(registration.is_overdue)

    def test_late_video_marks_overdue(self):
        self._register()
        Event.objects.filter(pk=self.event.pk).update(attendance_deadline=timezone.now() - timedelta(hours=1))

        self.client.post(f'/api/events/{self.event.id}/mark-video-watched/')

        self.assertTrue(EventRegistration.objects.get(user=self.user).is_overdue)


class PaidEventTest(APITestCase):

    def setUp(self):
        self.user = make_user('member@test.com')
        self.client.force_authenticate(user=self.user)
        self.event = make_event(is_paid=True, price=5000, stripe_price_id='price_evt')

    def test_checkout_creates_pending_registration(self):
        price = SimpleNamespace(active=True, unit_amount=5000)
        session = SimpleNamespace(id='cs_evt', url='https://checkout.stripe.com/cs_evt')
        with patch('stripe.Price.retrieve', return_value=price), \
                patch('stripe.checkout.Session.create', return_value=session) as create:
            response = self.client.post(f'/api/events/{self.event.id}/checkout/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'session_id': 'cs_evt', 'url': 'https://checkout.stripe.com/cs_evt'})
        registration = EventRegistration.objects.get(user=self.user, event=self.event)
        self.assertEqual(registration.payment_status, 'pending')
        self.assertEqual(registration.stripe_session_id, 'cs_evt')
        metadata = create.call_args.kwargs['metadata']
        self.assertEqual(metadata['type'], 'event')
        self.assertEqual(metadata['registration_id'], str(registration.id))
        self.assertEqual(create.call_args.kwargs['mode'], 'payment')

    def test_checkout_rejects_mismatched_price(self):
        price = SimpleNamespace(active=True, unit_amount=4000)
        with patch('stripe.Price.retrieve', return_value=price):
            response = self.client.post(f'/api/events/{self.event.id}/checkout/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(EventRegistration.objects.exists())

    def test_checkout_already_paid(self):
        EventRegistration.objects.create(user=self.user, event=self.event, payment_status='paid')
        price = SimpleNamespace(active=True, unit_amount=5000)
        with patch('stripe.Price.retrieve', return_value=price):
            response = self.client.post(f'/api/events/{self.event.id}/checkout/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_free_event(self):
        event = make_event()
        response = self.client.post(f'/api/events/{event.id}/checkout/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_refund_deletes_registration(self):
        EventRegistration.objects.create(
            user=self.user, event=self.event, payment_status='paid', stripe_payment_intent_id='pi_1'
        )
        with patch('stripe.Refund.create', return_value=SimpleNamespace(id='re_1')) as create:
            response = self.client.post(f'/api/events/{self.event.id}/refund/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        create.assert_called_once_with(payment_intent='pi_1', reason='requested_by_customer')
        self.assertFalse(EventRegistration.objects.exists())

    def test_refund_stripe_failure_returns_500(self):
        EventRegistration.objects.create(
            user=self.user, event=self.event, payment_status='paid', stripe_payment_intent_id='pi_1'
        )
        with patch('stripe.Refund.create', side_effect=stripe.StripeError('boom')):
            response = self.client.post(f'/api/events/{self.event.id}/refund/')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertTrue(EventRegistration.objects.exists())

    def test_refund_requires_paid_registration(self):
        EventRegistration.objects.create(user=self.user, event=self.event, payment_status='pending')
        response = self.client.post(f'/api/events/{self.event.id}/refund/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_paid_from_session(self):
        registration = EventRegistration.objects.create(user=self.user, event=self.event, payment_status='pending')
        session = {
            'id': 'cs_evt',
            'amount_total': 5000,
            'payment_intent': 'pi_evt',
            'metadata': {'type': 'event', 'registration_id': str(registration.id)},
        }
        with patch('events.services.email_service.send_event_confirmation') as send:
            with self.captureOnCommitCallbacks(execute=True):
                EventPaymentService.mark_paid_from_session(session)

        registration.refresh_from_db()
        self.assertEqual(registration.payment_status, 'paid')
        self.assertEqual(registration.paid_amount, 5000)
        self.assertEqual(registration.stripe_payment_intent_id, 'pi_evt')
        self.assertIsNotNone(registration.paid_at)
        send.assert_called_once()


class AdminEventTest(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.client.force_authenticate(user=self.admin)

    def test_member_cannot_access_admin(self):
        self.client.force_authenticate(user=make_user('member@test.com'))
        response = self.client.get('/api/events/admin/events/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_paid_event_creates_stripe_price(self):
        payload = {
            'title': '有料セミナー',
            'date': (timezone.now() + timedelta(days=10)).isoformat(),
            'target_roles': ['fp'],
            'is_paid': True,
            'price': 3000,
            'schedules': [{'date': '2030-01-05', 'start_time': '10:00'}],
        }
        with patch('stripe.Product.create', return_value=SimpleNamespace(id='prod_1')), \
                patch('stripe.Price.create', return_value=SimpleNamespace(id='price_1')) as price_create:
            response = self.client.post('/api/events/admin/events/', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        event = Event.objects.get(title='有料セミナー')
        self.assertEqual(event.stripe_product_id, 'prod_1')
        self.assertEqual(event.stripe_price_id, 'price_1')
        self.assertEqual(event.schedules.count(), 1)
        self.assertEqual(price_create.call_args.kwargs['currency'], 'jpy')
        self.assertEqual(price_create.call_args.kwargs['unit_amount'], 3000)

    def test_paid_event_without_price_rejected(self):
        payload = {'title': 'x', 'date': timezone.now().isoformat(), 'is_paid': True}
        response = self.client.post('/api/events/admin/events/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_price_change_archives_old_price(self):
        event = make_event(is_paid=True, price=3000, stripe_product_id='prod_1', stripe_price_id='price_old')
        with patch('stripe.Price.create', return_value=SimpleNamespace(id='price_new')), \
                patch('stripe.Price.modify') as modify:
            response = self.client.patch(f'/api/events/admin/events/{event.id}/', {'price': 4000}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        event.refresh_from_db()
        self.assertEqual(event.stripe_price_id, 'price_new')
        modify.assert_called_once_with('price_old', active=False)

    def test_unchanged_price_does_not_touch_stripe(self):
        event = make_event(is_paid=True, price=3000, stripe_product_id='prod_1', stripe_price_id='price_1')
        with patch('stripe.Price.create') as price_create:
            self.client.patch(f'/api/events/admin/events/{event.id}/', {'title': '改名'}, format='json')
        price_create.assert_not_called()

    def test_making_event_free_clears_price(self):
        event = make_event(is_paid=True, price=3000, stripe_product_id='prod_1', stripe_price_id='price_1')
        with patch('stripe.Price.modify') as modify:
            self.client.patch(f'/api/events/admin/events/{event.id}/', {'is_paid': False}, format='json')

        event.refresh_from_db()
        self.assertEqual(event.stripe_price_id, '')
        self.assertEqual(event.stripe_product_id, '')
        modify.assert_called_once_with('price_1', active=False)

    def test_schedule_create_and_delete(self):
        event = make_event()
        response = self.client.post(
            f'/api/events/admin/events/{event.id}/schedules/',
            {'date': '2030-02-01', 'start_time': '13:00', 'end_time': '15:00'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        schedule_id = response.data['id']
        response = self.client.delete(f'/api/events/admin/events/{event.id}/schedules/{schedule_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(EventSchedule.objects.exists())

    def test_participants_and_export(self):
        event = make_event()
        member = make_user('member@test.com', member_id='UGS0000001')
        EventRegistration.objects.create(user=member, event=event, video_watched=True)

        response = self.client.get(f'/api/events/admin/events/{event.id}/participants/')
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['participants'][0]['member_id'], 'UGS0000001')

        response = self.client.get(f'/api/events/admin/events/{event.id}/participants/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        content = response.content.decode('utf-8')
        self.assertTrue(content.startswith('\ufeff'))
        self.assertIn('UGS0000001', content)

    def test_update_registration_final_approval(self):
        event = make_event()
        registration = EventRegistration.objects.create(user=make_user('fp@test.com', role='fp'), event=event)

        response = self.client.patch(
            f'/api/events/admin/registrations/{registration.id}/',
            {'final_approval': 'demoted', 'video_watched': True, 'survey_completed': True},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        registration.refresh_from_db()
        self.assertEqual(registration.final_approval, 'demoted')
        self.assertEqual(registration.attendance_method, 'video_survey')


class MonthlyEventsTest(TestCase):

    def test_first_sunday(self):
        self.assertEqual(first_sunday(2024, 11).day, 3)
        self.assertEqual(first_sunday(2024, 12).day, 1)

    def test_generates_current_and_next_month_once(self):
        result = generate_monthly_events(now=aware(2024, 11, 15, 12, 0))

        self.assertEqual(len(result['created']), 2)
        events = list(Event.objects.order_by('date'))
        self.assertEqual(events[0].title, '全体MTG 2024年11月')
        self.assertEqual(timezone.localtime(events[0].date).hour, 19)
        self.assertEqual(events[0].target_roles, ['all'])
        self.assertEqual(events[0].venue_type, 'hybrid')
        self.assertEqual(
            events[0].attendance_deadline,
            aware(2024, 11, 3, 21, 0) + timedelta(hours=24),
        )

        again = generate_monthly_events(now=aware(2024, 11, 20, 12, 0))
        self.assertEqual(again['created'], [])
        self.assertEqual(Event.objects.count(), 2)


class GenerateMonthlyEventsCronTest(APITestCase):

    def test_requires_cron_secret(self):
        response = self.client.get('/api/cron/generate-monthly-events/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_runs_with_cron_secret(self):
        response = self.client.get(
            '/api/cron/generate-monthly-events/',
            HTTP_AUTHORIZATION='Bearer test-cron-secret',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(Event.objects.filter(is_recurring=True).count(), 2)
