from datetime import datetime, timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Notification
from events.models import Event, EventRegistration
from finance.calculator import base_month_start, target_months
from finance.models import Compensation, Contract, Referral

from .models import FPPromotionApplication, LPMeeting, ManagerAssessment, PromotionApplication
from .services import assessment_period, check_eligibility, current_assessment_period
from .tasks import demote_fp_users

User = get_user_model()


def aware(*args):
    return timezone.make_aware(datetime(*args))


def make_user(email, role='member'):
    return User.objects.create_user(email=email, password='testpass123', role=role, name=email.split('@')[0])


def make_manager_ready(user):
    """Заполняет данные так, чтобы fp прошёл все условия на manager."""
    for month in target_months(6):
        Compensation.objects.create(user=user, month=month, amount=70000, status=Compensation.STATUS_PAID)

    base = base_month_start()
    created = timezone.make_aware(datetime(base.year, base.month, 10))
    for i in range(12):
        referral_type = Referral.TYPE_MEMBER if i < 8 else Referral.TYPE_FP
        referral = Referral.objects.create(
            referrer=user,
            referred=make_user(f'ref{i}@test.com'),
            referral_type=referral_type,
            status=Referral.STATUS_APPROVED,
        )
        Referral.objects.filter(pk=referral.pk).update(created_at=created)

    for i in range(20):
        Contract.objects.create(
            user=user,
            contract_number=f'C-{i}',
            product_name='医療保険',
            signed_at=created,
            amount=5000,
        )


class EligibilityTest(TestCase):

    def test_fp_requires_checklist(self):
        user = make_user('member@test.com')
        result = check_eligibility(user, 'fp')
        self.assertFalse(result['is_eligible'])

        FPPromotionApplication.objects.create(user=user, lp_meeting_completed=True, survey_completed=True)
        result = check_eligibility(user, 'fp')
        self.assertTrue(result['is_eligible'])
        self.assertTrue(result['conditions']['survey_completed']['met'])

    def test_manager_requires_fp_role(self):
        user = make_user('member@test.com')
        result = check_eligibility(user, 'manager')
        self.assertEqual(result, {'is_eligible': False, 'target_role': 'manager', 'conditions': {}})

    def test_manager_conditions(self):
        user = make_user('fp@test.com', role='fp')
        result = check_eligibility(user, 'manager')
        self.assertFalse(result['is_eligible'])
        self.assertEqual(result['conditions']['average_compensation'], {'current': 0, 'target': 70000, 'met': False})

        make_manager_ready(user)
        result = check_eligibility(user, 'manager')

        self.assertTrue(result['is_eligible'])
        self.assertEqual(result['conditions']['member_referrals']['current'], 8)
        self.assertEqual(result['conditions']['fp_referrals']['current'], 4)
        self.assertEqual(result['conditions']['contract_achievement']['current'], 20)


class ApplyTest(APITestCase):

    def setUp(self):
        self.fp = make_user('fp@test.com', role='fp')
        self.client.force_authenticate(user=self.fp)

    def test_eligibility_endpoint(self):
        response = self.client.get('/api/promotions/eligibility/?target_role=manager')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_eligible'])

    def test_invalid_role(self):
        response = self.client.post('/api/promotions/apply/', {'target_role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_not_eligible_returns_conditions(self):
        response = self.client.post('/api/promotions/apply/', {'target_role': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('eligibility', response.data)

    def test_apply_creates_pending_and_notifies_chatwork(self):
        make_manager_ready(self.fp)
        with patch('promotions.services.notify_promotion_application') as notify:
            response = self.client.post('/api/promotions/apply/', {'target_role': 'MANAGER'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        notify.assert_called_once()

        response = self.client.post('/api/promotions/apply/', {'target_role': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_same_or_higher_role_cannot_apply(self):
        manager = make_user('manager@test.com', role='manager')
        FPPromotionApplication.objects.create(user=manager, lp_meeting_completed=True, survey_completed=True)
        self.client.force_authenticate(user=manager)

        with patch('promotions.services.notify_promotion_application') as notify:
            response = self.client.post('/api/promotions/apply/', {'target_role': 'fp'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

            self.client.force_authenticate(user=self.fp)
            FPPromotionApplication.objects.create(user=self.fp, lp_meeting_completed=True, survey_completed=True)
            response = self.client.post('/api/promotions/apply/', {'target_role': 'fp'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        notify.assert_not_called()
        self.assertFalse(PromotionApplication.objects.exists())

    def test_history(self):
        PromotionApplication.objects.create(user=self.fp, target_role='manager', status='rejected')
        response = self.client.get('/api/promotions/applications/')
        self.assertEqual(len(response.data), 1)


class FPChecklistTest(APITestCase):

    def setUp(self):
        self.member = make_user('member@test.com')
        self.admin = make_user('admin@test.com', role='admin')

    def test_checklist_flow(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get('/api/promotions/fp/')
        self.assertEqual(response.data['status'], 'not_applied')

        response = self.client.post('/api/promotions/fp/survey/')
        self.assertTrue(response.data['survey_completed'])

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/promotions/admin/fp/{self.member.id}/lp-meeting-complete/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['checklist_completed'])

    def test_fp_apply_only_for_members(self):
        self.client.force_authenticate(user=make_user('fp@test.com', role='fp'))
        response = self.client.post('/api/promotions/fp/apply/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_fp_apply_twice(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post('/api/promotions/fp/apply/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(FPPromotionApplication.objects.get(user=self.member).status, 'pending')

        response = self.client.post('/api/promotions/fp/apply/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fp_reapply_after_rejection(self):
        FPPromotionApplication.objects.create(user=self.member, status='rejected', applied_at=timezone.now())
        self.client.force_authenticate(user=self.member)

        response = self.client.post('/api/promotions/fp/apply/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)


class AdminReviewTest(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.member = make_user('member@test.com')
        self.client.force_authenticate(user=self.admin)

    def test_list_filtered_by_status(self):
        PromotionApplication.objects.create(user=self.member, target_role='fp')
        PromotionApplication.objects.create(user=self.member, target_role='fp', status='rejected')

        response = self.client.get('/api/promotions/admin/applications/?status=pending')

        self.assertEqual(response.data['count'], 1)

    def test_approve_fp(self):
        application = PromotionApplication.objects.create(user=self.member, target_role='fp')

        response = self.client.post(
            f'/api/promotions/admin/applications/{application.id}/approve/', {'review_notes': 'OK'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.member.refresh_from_db()
        self.assertEqual(self.member.role, 'fp')
        application.refresh_from_db()
        self.assertEqual(application.reviewed_by, self.admin)
        self.assertEqual(FPPromotionApplication.objects.get(user=self.member).status, 'approved')
        notification = Notification.objects.get(user=self.member)
        self.assertEqual(notification.notification_type, 'promotion_approved')
        self.assertEqual(notification.priority, 'success')

    def test_reject(self):
        application = PromotionApplication.objects.create(user=self.member, target_role='fp')

        response = self.client.post(f'/api/promotions/admin/applications/{application.id}/reject/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.member.refresh_from_db()
        self.assertEqual(self.member.role, 'member')
        notification = Notification.objects.get(user=self.member)
        self.assertEqual(notification.notification_type, 'promotion_rejected')
        self.assertEqual(notification.priority, 'warning')

    def test_review_guards(self):
        response = self.client.post('/api/promotions/admin/applications/9999/approve/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        application = PromotionApplication.objects.create(user=self.member, target_role='fp', status='approved')
        response = self.client.post(f'/api/promotions/admin/applications/{application.id}/reject/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_member_cannot_review(self):
        application = PromotionApplication.objects.create(user=self.member, target_role='fp')
        self.client.force_authenticate(user=self.member)
        response = self.client.post(f'/api/promotions/admin/applications/{application.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class DemoteFPUsersTest(TestCase):

    def test_demotes_flagged_fp_from_last_month_meeting(self):
        meeting = Event.objects.create(
            title='全体MTG 2024年11月',
            date=aware(2024, 11, 3, 19, 0),
            is_recurring=True,
            recurrence_pattern=Event.RECURRENCE_MONTHLY_FIRST_SUNDAY,
        )
        older = Event.objects.create(title='全体MTG 2024年10月', date=aware(2024, 10, 6, 19, 0), is_recurring=True)

        flagged_fp = make_user('fp1@test.com', role='fp')
        kept_fp = make_user('fp2@test.com', role='fp')
        flagged_member = make_user('member@test.com')
        old_fp = make_user('fp3@test.com', role='fp')
        EventRegistration.objects.create(user=flagged_fp, event=meeting, final_approval='demoted')
        EventRegistration.objects.create(user=kept_fp, event=meeting, final_approval='maintained')
        EventRegistration.objects.create(user=flagged_member, event=meeting, final_approval='demoted')
        EventRegistration.objects.create(user=old_fp, event=older, final_approval='demoted')

        result = demote_fp_users(now=aware(2024, 12, 1, 0, 5))

        self.assertEqual(result['checked'], 2)
        self.assertEqual(result['demoted'], 1)
        flagged_fp.refresh_from_db()
        kept_fp.refresh_from_db()
        old_fp.refresh_from_db()
        self.assertEqual(flagged_fp.role, 'member')
        self.assertEqual(kept_fp.role, 'fp')
        self.assertEqual(old_fp.role, 'fp')
        self.assertTrue(Notification.objects.filter(user=flagged_fp, notification_type='role_changed').exists())


class DemoteFPUsersCronTest(APITestCase):

    def test_admin_can_trigger_with_post(self):
        self.client.force_authenticate(user=make_user('admin@test.com', role='admin'))
        response = self.client.post('/api/cron/demote-fp-users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['result']['demoted'], 0)

    def test_admin_get_is_rejected(self):
        self.client.force_authenticate(user=make_user('admin@test.com', role='admin'))
        response = self.client.get('/api/cron/demote-fp-users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


def preferred_dates(days_ahead=1):
    start = timezone.now().replace(hour=13, minute=0, second=0, microsecond=0) + timedelta(days=days_ahead)
    return [(start + timedelta(days=i)).isoformat() for i in range(5)]


class LPMeetingTest(APITestCase):

    def setUp(self):
        self.member = make_user('member@test.com')
        self.fp = make_user('fp@test.com', role='fp')
        self.admin = make_user('admin@test.com', role='admin')
        self.dates = preferred_dates()

    def _request(self, **overrides):
        payload = {'preferred_dates': self.dates, 'meeting_location': 'OFFLINE', 'member_notes': '夜希望'}
        payload.update(overrides)
        self.client.force_authenticate(user=self.member)
        return self.client.post('/api/promotions/lp-meetings/request/', payload, format='json')

    def _schedule(self, meeting_id, **overrides):
        payload = {
            'scheduled_at': self.dates[1],
            'fp_id': self.fp.id,
            'meeting_url': 'https://zoom.us/j/123',
            'meeting_platform': 'ZOOM',
        }
        payload.update(overrides)
        self.client.force_authenticate(user=self.admin)
        return self.client.post(f'/api/promotions/admin/lp-meetings/{meeting_id}/schedule/', payload, format='json')

    def test_request_validation(self):
        response = self._request(meeting_location='cafe')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self._request(preferred_dates=self.dates[:4])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        past = [(timezone.now() - timedelta(days=1)).isoformat()] + self.dates[1:]
        response = self._request(preferred_dates=past)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(LPMeeting.objects.exists())

    def test_only_members_can_request(self):
        self.client.force_authenticate(user=self.fp)
        response = self.client.post('/api/promotions/lp-meetings/request/', {
            'preferred_dates': self.dates, 'meeting_location': 'offline',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_request_notifies_admins_and_blocks_second_request(self):
        response = self._request()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'requested')
        self.assertEqual(response.data['meeting_location'], 'offline')
        self.assertEqual(len(response.data['preferred_dates']), 5)
        self.assertTrue(Notification.objects.filter(user=self.admin, notification_type='lp_meeting').exists())

        response = self._request()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.get('/api/promotions/lp-meetings/request/')
        self.assertEqual(response.data['meeting']['status'], 'requested')

    def test_schedule_and_fp_completes(self):
        meeting_id = self._request().data['id']

        response = self._schedule(meeting_id)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'scheduled')
        self.assertEqual(response.data['fp']['id'], self.fp.id)
        self.assertEqual(response.data['meeting_platform'], 'zoom')
        self.assertTrue(Notification.objects.filter(user=self.fp, notification_type='lp_meeting').exists())

        response = self._schedule(meeting_id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(user=self.fp)
        response = self.client.get('/api/promotions/lp-meetings/my-scheduled/')
        self.assertEqual([m['id'] for m in response.data], [meeting_id])

        other_fp = make_user('fp2@test.com', role='fp')
        self.client.force_authenticate(user=other_fp)
        response = self.client.post(f'/api/promotions/lp-meetings/{meeting_id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.fp)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                f'/api/promotions/lp-meetings/{meeting_id}/complete/', {'notes': '良好'}, format='json'
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['notes'], '良好')
        self.assertTrue(FPPromotionApplication.objects.get(user=self.member).lp_meeting_completed)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['member@test.com'])

    def test_schedule_guards(self):
        meeting_id = self._request().data['id']

        off_day = (timezone.now() + timedelta(days=30)).isoformat()
        response = self._schedule(meeting_id, scheduled_at=off_day)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self._schedule(meeting_id, fp_id=self.member.id)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self._schedule(meeting_id, meeting_platform='skype')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self._schedule(9999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(LPMeeting.objects.get(pk=meeting_id).status, 'requested')

    def test_admin_completes_without_fp_check(self):
        meeting_id = self._request().data['id']
        self._schedule(meeting_id)

        response = self.client.post(f'/api/promotions/admin/lp-meetings/{meeting_id}/complete/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(FPPromotionApplication.objects.get(user=self.member).lp_meeting_completed)

    def test_no_show_then_request_again(self):
        meeting_id = self._request().data['id']

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/promotions/admin/lp-meetings/{meeting_id}/no-show/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self._schedule(meeting_id)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                f'/api/promotions/admin/lp-meetings/{meeting_id}/no-show/', {'notes': '連絡なし'}, format='json'
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'no_show')
        self.assertEqual(response.data['notes'], 'ノーショー備考: 連絡なし')
        self.assertFalse(FPPromotionApplication.objects.filter(user=self.member, lp_meeting_completed=True).exists())
        self.assertEqual(len(mail.outbox), 1)
        notification = Notification.objects.filter(user=self.member, priority='critical').get()
        self.assertEqual(notification.notification_type, 'lp_meeting')

        response = self._request()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_cancel(self):
        meeting_id = self._request().data['id']

        self.client.force_authenticate(user=self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                f'/api/promotions/admin/lp-meetings/{meeting_id}/cancel/', {'reason': '<日程>変更'}, format='json'
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')
        self.assertIsNotNone(response.data['cancelled_at'])
        self.assertIn('キャンセル理由: <日程>変更', response.data['notes'])
        self.assertIn('&lt;日程&gt;変更', mail.outbox[0].alternatives[0][0])

        response = self.client.post(f'/api/promotions/admin/lp-meetings/{meeting_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_list_with_statistics(self):
        LPMeeting.objects.create(member=self.member, preferred_dates=self.dates, meeting_location='offline')
        other = make_user('member2@test.com')
        LPMeeting.objects.create(
            member=other, preferred_dates=self.dates, meeting_location='ugs_office', status='cancelled'
        )
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/promotions/admin/lp-meetings/?status=requested')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['statistics']['total'], 2)
        self.assertEqual(response.data['statistics']['cancelled'], 1)

        response = self.client.get(f'/api/promotions/admin/lp-meetings/?member_id={other.id}')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/promotions/admin/lp-meetings/?fp_id=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(user=self.member)
        response = self.client.get('/api/promotions/admin/lp-meetings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AssessmentPeriodTest(TestCase):

    def test_halves(self):
        period = assessment_period(2024, 2)
        self.assertEqual(period['months'], ['2024-07', '2024-08', '2024-09', '2024-10', '2024-11', '2024-12'])
        self.assertEqual(period['label'], '2024年下期')
        self.assertEqual(period['start'], aware(2024, 7, 1))
        self.assertEqual(period['end'], aware(2025, 1, 1))

        self.assertEqual(current_assessment_period(now=aware(2024, 6, 30, 12, 0))['half'], 1)
        self.assertEqual(current_assessment_period(now=aware(2024, 8, 1, 12, 0))['half'], 2)


class ManagerAssessmentTest(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.keeper = make_user('keeper@test.com', role='manager')
        self.weak = make_user('weak@test.com', role='manager')
        self.newcomer = make_user('new@test.com', role='manager')
        self.client.force_authenticate(user=self.admin)

        for month in assessment_period(2024, 1)['months']:
            Compensation.objects.create(user=self.keeper, month=month, amount=250000, status=Compensation.STATUS_PAID)
        for month in ['2024-01', '2024-02', '2024-03', '2024-04', '2024-05']:
            Compensation.objects.create(user=self.weak, month=month, amount=100000, status=Compensation.STATUS_CONFIRMED)
        # Неподтверждённые и вне периода не учитываются
        Compensation.objects.create(user=self.weak, month='2024-06', amount=900000, status=Compensation.STATUS_PENDING)
        Compensation.objects.create(user=self.weak, month='2024-07', amount=900000, status=Compensation.STATUS_PAID)
        Contract.objects.create(
            user=self.keeper, contract_number='C-1', product_name='医療保険', signed_at=aware(2024, 2, 10), amount=5000
        )
        PromotionApplication.objects.create(
            user=self.newcomer, target_role='manager', status='approved', reviewed_at=aware(2024, 3, 1)
        )

    def _run(self):
        return self.client.post('/api/promotions/admin/manager-assessments/run/', {'year': 2024, 'half': 1}, format='json')

    def test_run_flags_candidates(self):
        response = self._run()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period'], '2024年上期')
        self.assertEqual(response.data['processed'], 2)
        self.assertEqual(response.data['demotion_candidates'], 1)
        self.assertEqual(response.data['exempt'], 1)

        keeper = ManagerAssessment.objects.get(user=self.keeper)
        self.assertEqual(keeper.total_sales, 1500000)
        self.assertEqual(keeper.contract_count, 1)
        self.assertFalse(keeper.is_demotion_candidate)
        weak = ManagerAssessment.objects.get(user=self.weak)
        self.assertEqual(weak.total_sales, 500000)
        self.assertTrue(weak.is_demotion_candidate)
        self.assertFalse(ManagerAssessment.objects.filter(user=self.newcomer).exists())

        response = self.client.get('/api/promotions/admin/manager-assessments/?year=2024&half=1')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['status_counts'], {'pending': 2})

    def test_run_requires_year_and_half_together(self):
        response = self.client.post('/api/promotions/admin/manager-assessments/run/', {'year': 2024}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/promotions/admin/manager-assessments/?year=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_demote_candidate(self):
        self._run()
        weak = ManagerAssessment.objects.get(user=self.weak)
        keeper = ManagerAssessment.objects.get(user=self.keeper)

        response = self.client.post(f'/api/promotions/admin/manager-assessments/{keeper.id}/demote/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/promotions/admin/manager-assessments/{weak.id}/demote/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'demoted')
        self.assertEqual(response.data['confirmed_by_email'], 'admin@test.com')
        self.weak.refresh_from_db()
        self.assertEqual(self.weak.role, 'fp')
        notification = Notification.objects.get(user=self.weak)
        self.assertEqual(notification.notification_type, 'role_changed')

        response = self.client.post(f'/api/promotions/admin/manager-assessments/{weak.id}/demote/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirmed_assessments_are_not_recalculated(self):
        self._run()
        keeper = ManagerAssessment.objects.get(user=self.keeper)

        response = self.client.post(f'/api/promotions/admin/manager-assessments/{keeper.id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')

        Compensation.objects.filter(user=self.keeper).update(amount=0)
        response = self._run()

        self.assertEqual(response.data['skipped'], 1)
        self.assertEqual(response.data['processed'], 1)
        keeper.refresh_from_db()
        self.assertEqual(keeper.total_sales, 1500000)

    def test_missing_assessment(self):
        response = self.client.post('/api/promotions/admin/manager-assessments/9999/confirm/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_member_forbidden(self):
        self.client.force_authenticate(user=make_user('member@test.com'))
        response = self._run()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
