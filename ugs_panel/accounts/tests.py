"""
Tests for accounts app.

Covers:
- номера участников и реферальные коды
- регистрация (PendingUser -> email -> оплата)
- Stripe webhook
- самообслуживание членства и cron-задачи
- уведомления и админские эндпоинты
"""
import json
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import stripe
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from events.models import Event, EventRegistration
from finance.models import Referral

from .member_ids import assign_member_id, generate_member_id, is_valid_member_id
from .membership import mark_delinquent_users
from .models import CustomUser, Notification, PendingUser, Subscription
from .notifications import create_notification
from .stripe_webhooks import dispatch_event


def make_user(email, role='member', **extra):
    extra.setdefault('membership_status', 'active')
    return CustomUser.objects.create_user(
        email=email, password='StrongPass123', role=role, name=email.split('@')[0], **extra
    )


class MemberIdTests(TestCase):

    def test_first_member_id(self):
        self.assertEqual(generate_member_id(), 'UGS0000001')

    def test_next_member_id_ignores_malformed_values(self):
        make_user('a@example.com', member_id='UGS0000041')
        make_user('b@example.com', member_id='UGSX')
        self.assertEqual(generate_member_id(), 'UGS0000042')

    def test_assign_keeps_existing_id(self):
        user = make_user('a@example.com', member_id='UGS0000007')
        self.assertEqual(assign_member_id(user), 'UGS0000007')

    def test_assign_new_id(self):
        user = make_user('a@example.com')
        member_id = assign_member_id(user)
        self.assertTrue(is_valid_member_id(member_id))
        user.refresh_from_db()
        self.assertEqual(user.member_id, member_id)


class RegistrationTests(APITestCase):

    def test_register_sends_verification_email(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'New@Example.com',
            'name': '山田太郎',
            'password': 'VeryStrongPass123',
            'referral_code': 'abcd2345',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        pending = PendingUser.objects.get(email='new@example.com')
        self.assertEqual(pending.referral_code, 'ABCD2345')
        self.assertIsNotNone(pending.verification_token)
        self.assertEqual(len(mail.outbox), 1)

    def test_register_again_refreshes_pending_registration(self):
        payload = {'email': 'again@example.com', 'name': '初回', 'password': 'VeryStrongPass123'}
        self.client.post('/api/auth/register/', payload, format='json')
        first_token = PendingUser.objects.get(email='again@example.com').verification_token

        payload['name'] = '二回目'
        response = self.client.post('/api/auth/register/', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(PendingUser.objects.filter(email='again@example.com').count(), 1)
        pending = PendingUser.objects.get(email='again@example.com')
        self.assertNotEqual(pending.verification_token, first_token)
        self.assertEqual(pending.name, '二回目')
        self.assertEqual(len(mail.outbox), 2)
        self.assertIn(pending.verification_token, mail.outbox[1].body)

    def test_verification_email_escapes_name(self):
        self.client.post('/api/auth/register/', {
            'email': 'html@example.com', 'name': '<b>太郎</b>', 'password': 'VeryStrongPass123',
        }, format='json')

        html = mail.outbox[0].alternatives[0][0]
        self.assertIn('&lt;b&gt;太郎&lt;/b&gt;', html)
        self.assertNotIn('<b>太郎', html)

    def test_register_existing_email_conflict(self):
        make_user('taken@example.com')
        response = self.client.post('/api/auth/register/', {
            'email': 'TAKEN@example.com', 'name': 'x', 'password': 'VeryStrongPass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_verify_email(self):
        pending = PendingUser(email='p@example.com', name='p', password='x')
        token = pending.issue_token()
        pending.save()

        response = self.client.post('/api/auth/verify-email/', {'token': token}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pending_user_id'], pending.id)
        pending.refresh_from_db()
        self.assertTrue(pending.email_verified)

    def test_verify_unknown_token(self):
        response = self.client.post('/api/auth/verify-email/', {'token': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_verify_expired_token(self):
        pending = PendingUser(email='p@example.com', name='p', password='x')
        token = pending.issue_token()
        pending.token_expires_at = timezone.now() - timedelta(minutes=1)
        pending.save()

        response = self.client.post('/api/auth/verify-email/', {'token': token}, format='json')

        self.assertEqual(response.status_code, status.HTTP_410_GONE)

    def test_resend_for_verified_email(self):
        PendingUser.objects.create(email='p@example.com', name='p', password='x', email_verified=True)
        response = self.client.post('/api/auth/resend-verification/', {'email': 'p@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_requires_verified_email(self):
        PendingUser.objects.create(email='p@example.com', name='p', password='x')
        response = self.client.post('/api/auth/checkout-session/', {'email': 'p@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_referral_info(self):
        make_user('ref@example.com', referral_code='REFCODE2')

        response = self.client.get('/api/auth/referral-info/?code=refcode2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['referrer_name'], 'ref')

        response = self.client.get('/api/auth/referral-info/?code=UNKNOWN1')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_token_login_is_case_insensitive(self):
        make_user('login@example.com')
        response = self.client.post('/api/auth/token/', {
            'email': 'LOGIN@example.com', 'password': 'StrongPass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)


class StripeWebhookTests(APITestCase):
    url = '/api/webhooks/stripe/'

    def _post(self, event_type, obj):
        event = {'id': 'evt_1', 'type': event_type, 'data': {'object': obj}}
        with patch('accounts.payments_views.StripeService.construct_event', return_value=event):
            return self.client.post(
                self.url,
                data=json.dumps(event),
                content_type='application/json',
                HTTP_STRIPE_SIGNATURE='t=1,v1=test',
            )

    def test_missing_signature(self):
        response = self.client.post(self.url, data='{}', content_type='application/json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_signature(self):
        error = stripe.SignatureVerificationError('bad signature', 't=1,v1=bad')
        with patch('accounts.payments_views.StripeService.construct_event', side_effect=error):
            response = self.client.post(
                self.url, data='{}', content_type='application/json', HTTP_STRIPE_SIGNATURE='t=1,v1=bad'
            )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_completed_creates_member(self):
        referrer = make_user('fp@example.com', role='fp', referral_code='REFCODE1')
        pending = PendingUser.objects.create(
            email='new@example.com', name='新規', password='hashed', email_verified=True, referral_code='REFCODE1'
        )

        response = self._post('checkout.session.completed', {
            'id': 'cs_1',
            'customer': 'cus_1',
            'subscription': 'sub_1',
            'customer_email': 'new@example.com',
            'metadata': {'pending_user_id': str(pending.id)},
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user = CustomUser.objects.get(email='new@example.com')
        self.assertEqual(user.membership_status, 'active')
        self.assertTrue(is_valid_member_id(user.member_id))
        self.assertIsNotNone(user.referral_code)
        self.assertFalse(PendingUser.objects.exists())
        self.assertEqual(Subscription.objects.get(user=user).stripe_subscription_id, 'sub_1')
        referral = Referral.objects.get(referrer=referrer, referred=user)
        self.assertEqual(referral.status, 'pending')

    def test_payment_failed_marks_past_due(self):
        user = make_user('m@example.com')
        Subscription.objects.create(user=user, stripe_subscription_id='sub_1', status='active')

        response = self._post('invoice.payment_failed', {'id': 'in_1', 'subscription': 'sub_1'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.membership_status, 'past_due')
        self.assertIsNotNone(user.delinquent_since)
        notification = Notification.objects.get(user=user)
        self.assertEqual(notification.priority, 'critical')

    def test_payment_succeeded_keeps_cancellation_pending(self):
        user = make_user('m@example.com', membership_status='cancellation_pending')
        Subscription.objects.create(user=user, stripe_subscription_id='sub_1', status='past_due')

        self._post('invoice.payment_succeeded', {
            'id': 'in_1',
            'subscription': 'sub_1',
            'lines': {'data': [{'period': {'end': 1735657200}}]},
        })

        user.refresh_from_db()
        self.assertEqual(user.membership_status, 'cancellation_pending')
        subscription = Subscription.objects.get(user=user)
        self.assertEqual(subscription.status, 'active')
        self.assertIsNotNone(subscription.current_period_end)

    def test_subscription_deleted_deactivates_user(self):
        user = make_user('m@example.com')
        Subscription.objects.create(user=user, stripe_subscription_id='sub_1', status='active')

        self._post('customer.subscription.deleted', {'id': 'sub_1'})

        user.refresh_from_db()
        self.assertEqual(user.membership_status, 'canceled')
        self.assertFalse(user.is_active)

    def test_unknown_event_type_is_acknowledged(self):
        response = self._post('customer.created', {'id': 'cus_1'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_checkout_completed_side_effects_wait_for_commit(self):
        PendingUser.objects.create(email='new@example.com', name='新規', password='hashed', email_verified=True)
        session = {
            'id': 'cs_1',
            'customer': 'cus_1',
            'subscription': 'sub_1',
            'customer_email': 'new@example.com',
            'metadata': {},
        }

        with patch('accounts.stripe_webhooks.chatwork.notify_new_member') as notify:
            with self.captureOnCommitCallbacks(execute=False) as callbacks:
                self._post('checkout.session.completed', session)
            self.assertEqual(len(mail.outbox), 0)
            notify.assert_not_called()

            for callback in callbacks:
                callback()

        notify.assert_called_once()
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('新規', mail.outbox[0].body)

    def test_failed_handler_discards_side_effects(self):
        user = make_user('m@example.com')
        Subscription.objects.create(user=user, stripe_subscription_id='sub_1', status='active')

        with patch('accounts.stripe_webhooks.create_notification', side_effect=RuntimeError('boom')), \
                patch('accounts.stripe_webhooks.chatwork.notify_payment_failed') as notify:
            with self.captureOnCommitCallbacks(execute=True):
                response = self._post('invoice.payment_failed', {'id': 'in_1', 'subscription': 'sub_1'})

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        notify.assert_not_called()
        self.assertEqual(len(mail.outbox), 0)
        user.refresh_from_db()
        self.assertEqual(user.membership_status, 'active')

    def test_reactivation_checkout_restores_membership(self):
        user = make_user('old@example.com', membership_status='canceled', is_active=False)
        user.delinquent_since = timezone.now() - timedelta(days=30)
        user.save()

        response = self._post('checkout.session.completed', {
            'id': 'cs_re',
            'customer': 'cus_re',
            'subscription': 'sub_re',
            'metadata': {'type': 'reactivation', 'user_id': str(user.id)},
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.membership_status, 'active')
        self.assertEqual(user.membership_status_reason, '再入会')
        self.assertTrue(user.is_active)
        self.assertIsNone(user.delinquent_since)
        self.assertIsNotNone(user.reactivated_at)
        subscription = Subscription.objects.get(stripe_subscription_id='sub_re')
        self.assertEqual(subscription.user, user)
        self.assertEqual(subscription.status, 'active')
        self.assertEqual(subscription.stripe_customer_id, 'cus_re')

    def test_reactivation_for_unknown_user_is_acknowledged(self):
        response = self._post('checkout.session.completed', {
            'id': 'cs_re',
            'subscription': 'sub_re',
            'metadata': {'type': 'reactivation', 'user_id': '9999'},
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Subscription.objects.exists())

    def test_event_checkout_marks_registration_paid(self):
        user = make_user('m@example.com')
        event = Event.objects.create(
            title='<i>勉強会</i>',
            date=timezone.now() + timedelta(days=7),
            target_roles=['all'],
            is_paid=True,
            price=5000,
        )
        registration = EventRegistration.objects.create(user=user, event=event, payment_status='pending')

        with self.captureOnCommitCallbacks(execute=True):
            response = self._post('checkout.session.completed', {
                'id': 'cs_evt',
                'amount_total': 5000,
                'payment_intent': 'pi_evt',
                'metadata': {'type': 'event', 'registration_id': str(registration.id)},
            })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        registration.refresh_from_db()
        self.assertEqual(registration.payment_status, 'paid')
        self.assertEqual(registration.paid_amount, 5000)
        self.assertEqual(registration.stripe_session_id, 'cs_evt')
        self.assertFalse(PendingUser.objects.exists())
        self.assertEqual(len(mail.outbox), 1)
        html = mail.outbox[0].alternatives[0][0]
        self.assertIn('&lt;i&gt;勉強会&lt;/i&gt;', html)
        self.assertNotIn('<i>勉強会', html)

    def test_dispatch_event_routes_event_checkout(self):
        session = {'id': 'cs_evt', 'metadata': {'type': 'event', 'registration_id': '1'}}
        with patch('events.services.EventPaymentService.mark_paid_from_session') as mark_paid, \
                patch('accounts.stripe_webhooks._handle_subscription_signup') as signup:
            handled = dispatch_event({'type': 'checkout.session.completed', 'data': {'object': session}})

        self.assertTrue(handled)
        mark_paid.assert_called_once_with(session)
        signup.assert_not_called()


class PromoCodeValidateTests(APITestCase):
    url = '/api/auth/promo-code/validate/'

    def _promotion(self, coupon):
        return SimpleNamespace(data=[SimpleNamespace(id='promo_1', code='WELCOME', coupon=coupon)])

    def test_percent_coupon(self):
        coupon = SimpleNamespace(
            valid=True, percent_off=20.0, amount_off=None, currency=None, duration='once', duration_in_months=None
        )
        with patch('stripe.PromotionCode.list', return_value=self._promotion(coupon)) as lookup:
            response = self.client.post(self.url, {'code': ' welcome '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['discount_label'], '20%オフ')
        self.assertEqual(response.data['duration_label'], '初回のみ')
        self.assertEqual(response.data['promotion_code_id'], 'promo_1')
        self.assertEqual(lookup.call_args.kwargs['code'], 'WELCOME')

    def test_amount_coupon_retrieved_by_id(self):
        coupon = SimpleNamespace(
            valid=True, percent_off=None, amount_off=1000, currency='jpy', duration='repeating', duration_in_months=3
        )
        with patch('stripe.PromotionCode.list', return_value=self._promotion('co_1')), \
                patch('stripe.Coupon.retrieve', return_value=coupon) as retrieve:
            response = self.client.post(self.url, {'code': 'WELCOME'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        retrieve.assert_called_once_with('co_1')
        self.assertEqual(response.data['discount_label'], '¥1,000オフ')
        self.assertEqual(response.data['duration_label'], '3ヶ月間')
        self.assertEqual(response.data['currency'], 'jpy')

    def test_unknown_code(self):
        with patch('stripe.PromotionCode.list', return_value=SimpleNamespace(data=[])):
            response = self.client.post(self.url, {'code': 'NOPE'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['valid'])

    def test_invalid_coupon_is_not_found(self):
        coupon = SimpleNamespace(valid=False, percent_off=10.0)
        with patch('stripe.PromotionCode.list', return_value=self._promotion(coupon)):
            response = self.client.post(self.url, {'code': 'OLD'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_stripe_error(self):
        with patch('stripe.PromotionCode.list', side_effect=stripe.APIConnectionError('down')):
            response = self.client.post(self.url, {'code': 'WELCOME'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class MembershipTests(APITestCase):

    def setUp(self):
        self.user = make_user('m@example.com')
        self.client.force_authenticate(user=self.user)

    def test_cancel_without_stripe_subscription(self):
        response = self.client.post('/api/auth/cancellation/', {'reason': '引越し'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.membership_status, 'canceled')
        self.assertEqual(self.user.cancellation_reason, '引越し')

    def test_cancel_calls_stripe(self):
        Subscription.objects.create(user=self.user, stripe_subscription_id='sub_1', status='active')
        with patch('accounts.membership.StripeService.cancel_subscription') as cancel:
            self.client.post('/api/auth/cancellation/', {'immediate': True}, format='json')
        cancel.assert_called_once_with('sub_1', immediate=True)

    def test_cancel_terminated_user(self):
        self.user.membership_status = 'terminated'
        self.user.save()
        response = self.client.post('/api/auth/cancellation/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suspension_over_three_months_rejected(self):
        end = timezone.now() + timedelta(days=120)
        response = self.client.post('/api/auth/suspension/', {'suspension_end_date': end.isoformat()}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suspend_and_resume(self):
        end = timezone.now() + timedelta(days=30)
        response = self.client.post('/api/auth/suspension/', {'suspension_end_date': end.isoformat()}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.membership_status, 'suspended')

        response = self.client.delete('/api/auth/suspension/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.membership_status, 'active')
        self.assertIsNone(self.user.suspension_end_date)

    def test_reactivate_requires_canceled(self):
        response = self.client.post('/api/auth/reactivate/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_subscription_summary_without_subscription(self):
        response = self.client.get('/api/auth/subscription/')
        self.assertEqual(response.data['status'], 'none')
        self.assertFalse(response.data['is_active'])


class MembershipCronTests(APITestCase):

    def test_mark_delinquent_after_seven_days(self):
        now = timezone.now()
        late = make_user('late@example.com', membership_status='past_due', delinquent_since=now - timedelta(days=8))
        recent = make_user('recent@example.com', membership_status='past_due', delinquent_since=now - timedelta(days=2))

        result = mark_delinquent_users(now)

        self.assertEqual(result, {'checked': 1, 'updated': 1})
        late.refresh_from_db()
        recent.refresh_from_db()
        self.assertEqual(late.membership_status, 'delinquent')
        self.assertEqual(recent.membership_status, 'past_due')

    def test_cron_requires_secret(self):
        response = self.client.get('/api/cron/update-delinquent-status/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.client.get('/api/cron/update-delinquent-status/', HTTP_AUTHORIZATION='Bearer wrong')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_resume_suspended_users_cron(self):
        due = make_user(
            'due@example.com',
            membership_status='suspended',
            suspension_end_date=timezone.now() - timedelta(hours=1),
        )
        later = make_user(
            'later@example.com',
            membership_status='suspended',
            suspension_end_date=timezone.now() + timedelta(days=5),
        )

        response = self.client.get(
            '/api/cron/resume-suspended-users/', HTTP_AUTHORIZATION='Bearer test-cron-secret'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['result']['resumed'], 1)
        due.refresh_from_db()
        later.refresh_from_db()
        self.assertEqual(due.membership_status, 'active')
        self.assertEqual(later.membership_status, 'suspended')


class NotificationTests(APITestCase):

    def setUp(self):
        self.user = make_user('m@example.com')
        self.client.force_authenticate(user=self.user)
        for i in range(3):
            create_notification(self.user, Notification.TYPE_SYSTEM, f'お知らせ{i}')
        create_notification(make_user('other@example.com'), Notification.TYPE_SYSTEM, '他人宛')

    def test_list_and_unread_count(self):
        response = self.client.get('/api/auth/notifications/?limit=2')

        self.assertEqual(len(response.data['notifications']), 2)
        self.assertEqual(response.data['unread_count'], 3)
        self.assertTrue(response.data['has_more'])

    def test_mark_read(self):
        notification = Notification.objects.filter(user=self.user).first()
        response = self.client.post(f'/api/auth/notifications/{notification.id}/read/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        notification.refresh_from_db()
        self.assertTrue(notification.is_read)

    def test_cannot_read_foreign_notification(self):
        foreign = Notification.objects.exclude(user=self.user).first()
        response = self.client.post(f'/api/auth/notifications/{foreign.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_read_all(self):
        response = self.client.post('/api/auth/notifications/read-all/')
        self.assertEqual(response.data['updated'], 3)
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())


class AdminUserTests(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', role='admin')
        self.client.force_authenticate(user=self.admin)

    def test_member_forbidden(self):
        self.client.force_authenticate(user=make_user('m@example.com'))
        response = self.client.get('/api/auth/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters_role_case_insensitive(self):
        make_user('fp@example.com', role='fp')
        make_user('m@example.com')

        response = self.client.get('/api/auth/admin/users/?role=FP')

        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['email'], 'fp@example.com')

    def test_export_has_bom(self):
        make_user('m@example.com', member_id='UGS0000003')
        response = self.client.get('/api/auth/admin/users/export/')

        content = response.content.decode('utf-8')
        self.assertTrue(content.startswith('\ufeff'))
        self.assertIn('UGS0000003', content)

    def test_bulk_create_dry_run_and_commit(self):
        make_user('exists@example.com')
        csv_text = (
            'email,name,role\n'
            'new1@example.com,新規1,FP\n'
            'new1@example.com,重複,member\n'
            'exists@example.com,既存,member\n'
            'broken,壊れ,member\n'
        )

        def upload(dry_run):
            file = SimpleUploadedFile('users.csv', csv_text.encode('utf-8'), content_type='text/csv')
            return self.client.post(
                '/api/auth/admin/users/bulk-create/', {'file': file, 'dry_run': dry_run}, format='multipart'
            )

        response = upload('true')
        self.assertEqual(len(response.data['created']), 1)
        self.assertEqual(len(response.data['skipped']), 2)
        self.assertEqual(response.data['errors'][0]['row'], 5)
        self.assertFalse(CustomUser.objects.filter(email='new1@example.com').exists())

        response = upload('false')
        user = CustomUser.objects.get(email='new1@example.com')
        self.assertEqual(user.role, 'fp')
        self.assertTrue(is_valid_member_id(user.member_id))
        self.assertFalse(user.has_usable_password())
