"""
Tests for finance app.

Covers:
- CompensationCalculator (monthly breakdown, 6-month average, referral stats)
- ReferralService / CompensationService
- API endpoints (referrals, compensations, CSV imports)
"""
from datetime import datetime

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Notification
from .calculator import CompensationCalculator, target_months
from .models import Compensation, Contract, Referral
from .services import CompensationService, ReferralService

User = get_user_model()


def aware(*args):
    return timezone.make_aware(datetime(*args))


def make_user(email, role='member', **extra):
    return User.objects.create_user(email=email, password='testpass123', role=role, name=email.split('@')[0], **extra)


def csv_file(text, name='upload.csv'):
    return SimpleUploadedFile(name, text.encode('utf-8'), content_type='text/csv')


class CompensationCalculatorTest(TestCase):
    """Tests for CompensationCalculator."""

    def setUp(self):
        self.user = make_user('fp@test.com', role='fp')
        self.now = aware(2024, 11, 15, 12, 0)

    def _contract(self, number, signed_at, reward, status=Contract.STATUS_ACTIVE, contract_type=Contract.TYPE_INSURANCE):
        return Contract.objects.create(
            user=self.user,
            contract_number=number,
            product_name='終身保険',
            contract_type=contract_type,
            status=status,
            signed_at=signed_at,
            amount=10000,
            reward_amount=reward,
        )

    def test_monthly_breakdown_counts_active_contracts_of_month(self):
        self._contract('C-1', aware(2024, 10, 1, 0, 0), 30000)
        self._contract('C-2', aware(2024, 10, 31, 23, 0), 20000)
        self._contract('C-3', aware(2024, 10, 10), 99999, status=Contract.STATUS_CANCELLED)
        self._contract('C-4', aware(2024, 11, 1), 50000)
        self._contract('C-5', aware(2024, 10, 12), None)

        breakdown = CompensationCalculator.calculate_monthly(self.user, '2024-10')

        self.assertEqual(breakdown['contract'], 50000)
        self.assertEqual(breakdown['member_referral'], 0)
        self.assertEqual(breakdown['fp_referral'], 0)
        self.assertEqual(CompensationCalculator.calculate_total(breakdown), 50000)

    def test_total_subtracts_deduction(self):
        breakdown = {'member_referral': 1000, 'fp_referral': 2000, 'contract': 3000, 'bonus': 500, 'deduction': 700}
        self.assertEqual(CompensationCalculator.calculate_total(breakdown), 5800)

    def test_target_months_end_with_previous_month(self):
        self.assertEqual(
            target_months(6, now=self.now),
            ['2024-05', '2024-06', '2024-07', '2024-08', '2024-09', '2024-10'],
        )
        self.assertEqual(target_months(2, now=aware(2024, 1, 10)), ['2023-11', '2023-12'])

    def test_average_uses_confirmed_and_paid_in_window(self):
        Compensation.objects.create(user=self.user, month='2024-10', amount=100000, status=Compensation.STATUS_CONFIRMED)
        Compensation.objects.create(user=self.user, month='2024-09', amount=50001, status=Compensation.STATUS_PAID)
        Compensation.objects.create(user=self.user, month='2024-08', amount=900000, status=Compensation.STATUS_PENDING)
        Compensation.objects.create(user=self.user, month='2024-04', amount=900000, status=Compensation.STATUS_PAID)
        Compensation.objects.create(user=self.user, month='2024-11', amount=900000, status=Compensation.STATUS_PAID)

        average = CompensationCalculator.calculate_average_compensation(self.user, now=self.now)

        self.assertEqual(average, 75000)

    def test_average_without_rows_is_zero(self):
        self.assertEqual(CompensationCalculator.calculate_average_compensation(self.user, now=self.now), 0)

    def test_referral_stats_counts_approved_in_window(self):
        for i, (ref_type, ref_status, created) in enumerate([
            (Referral.TYPE_MEMBER, Referral.STATUS_APPROVED, aware(2024, 10, 31, 23, 0)),
            (Referral.TYPE_MEMBER, Referral.STATUS_APPROVED, aware(2024, 5, 1, 0, 0)),
            (Referral.TYPE_MEMBER, Referral.STATUS_PENDING, aware(2024, 9, 1)),
            (Referral.TYPE_FP, Referral.STATUS_APPROVED, aware(2024, 7, 1)),
            (Referral.TYPE_FP, Referral.STATUS_APPROVED, aware(2024, 11, 2)),
        ]):
            referred = make_user(f'ref{i}@test.com')
            referral = Referral.objects.create(referrer=self.user, referred=referred, referral_type=ref_type, status=ref_status)
            Referral.objects.filter(pk=referral.pk).update(created_at=created)

        stats = CompensationCalculator.get_referral_stats(self.user, now=self.now)

        self.assertEqual(stats, {'member_referrals': 2, 'fp_referrals': 1})

    def test_contract_achievement_requires_twenty_active_insurance(self):
        for i in range(19):
            self._contract(f'A-{i}', aware(2024, 1, 1), 0)
        self._contract('OTHER-1', aware(2024, 1, 1), 0, contract_type=Contract.TYPE_OTHER)
        self.assertFalse(CompensationCalculator.get_contract_achievement(self.user))

        self._contract('A-19', aware(2024, 1, 1), 0)
        self.assertTrue(CompensationCalculator.get_contract_achievement(self.user))


class ReferralServiceTest(TestCase):
    def setUp(self):
        self.referrer = make_user('referrer@test.com', role='fp', referral_code='ABCD2345')
        self.new_member = make_user('new@test.com')

    def test_signup_referral_type_follows_referrer_role(self):
        referral = ReferralService.create_signup_referral('abcd2345', self.new_member)

        self.assertEqual(referral.referrer, self.referrer)
        self.assertEqual(referral.referral_type, Referral.TYPE_FP)
        self.assertEqual(referral.status, Referral.STATUS_PENDING)

    def test_signup_referral_ignores_unknown_and_self(self):
        self.assertIsNone(ReferralService.create_signup_referral('ZZZZ9999', self.new_member))
        self.assertIsNone(ReferralService.create_signup_referral('ABCD2345', self.referrer))
        self.assertEqual(Referral.objects.count(), 0)


class ReferralAPITest(APITestCase):
    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.referrer = make_user('referrer@test.com', role='member', referral_code='REFCODE2')
        self.referred = make_user('referred@test.com', role='fp')

    def test_register_referral(self):
        self.client.force_authenticate(user=self.referrer)
        response = self.client.post('/api/finance/referrals/register/', {
            'referral_code': 'REFCODE2',
            'referred_user_id': self.referred.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['referral_type'], Referral.TYPE_FP)

        duplicate = self.client.post('/api/finance/referrals/register/', {
            'referral_code': 'REFCODE2',
            'referred_user_id': self.referred.id,
        }, format='json')
        self.assertEqual(duplicate.status_code, status.HTTP_409_CONFLICT)

    def test_register_errors(self):
        self.client.force_authenticate(user=self.referrer)
        url = '/api/finance/referrals/register/'

        response = self.client.post(url, {'referral_code': 'NOPE2345', 'referred_user_id': self.referred.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(url, {'referral_code': 'REFCODE2', 'referred_user_id': self.referrer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'referral_code': 'REFCODE2', 'referred_user_id': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_returns_own_referrals_with_totals(self):
        Referral.objects.create(referrer=self.referrer, referred=self.referred, referral_type=Referral.TYPE_FP,
                                status=Referral.STATUS_APPROVED, reward_amount=20000)
        other = make_user('other@test.com')
        Referral.objects.create(referrer=other, referred=self.admin)

        self.client.force_authenticate(user=self.referrer)
        response = self.client.get('/api/finance/referrals/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['referrals']), 1)
        self.assertEqual(response.data['totals']['total_reward'], 20000)

    def test_admin_approves_member_referral(self):
        referral = Referral.objects.create(referrer=self.referrer, referred=make_user('m@test.com'))
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f'/api/finance/referrals/{referral.id}/approve/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        referral.refresh_from_db()
        self.assertEqual(referral.status, Referral.STATUS_APPROVED)
        self.assertEqual(referral.reward_amount, 15000)
        self.assertIsNotNone(referral.approved_at)
        self.assertTrue(
            Notification.objects.filter(user=self.referrer, notification_type=Notification.TYPE_REFERRAL_APPROVED).exists()
        )

        again = self.client.post(f'/api/finance/referrals/{referral.id}/approve/')
        self.assertEqual(again.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fp_referral_reward(self):
        referral = Referral.objects.create(referrer=self.referrer, referred=self.referred, referral_type=Referral.TYPE_FP)
        self.client.force_authenticate(user=self.admin)
        self.client.post(f'/api/finance/referrals/{referral.id}/approve/')
        referral.refresh_from_db()
        self.assertEqual(referral.reward_amount, 20000)

    def test_reject_only_pending(self):
        referral = Referral.objects.create(referrer=self.referrer, referred=self.referred, status=Referral.STATUS_APPROVED)
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/finance/referrals/{referral.id}/reject/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_admin_cannot_approve(self):
        referral = Referral.objects.create(referrer=self.referrer, referred=self.referred)
        self.client.force_authenticate(user=self.referrer)
        response = self.client.post(f'/api/finance/referrals/{referral.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CompensationAPITest(APITestCase):
    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.fp = make_user('fp@test.com', role='fp')
        self.member = make_user('member@test.com')

    def test_member_cannot_view_compensations(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get('/api/finance/compensations/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_fp_views_own_compensations(self):
        Compensation.objects.create(user=self.fp, month='2024-01', amount=10000, earned_as_role='fp')
        Compensation.objects.create(user=self.admin, month='2024-01', amount=55555)
        self.client.force_authenticate(user=self.fp)

        response = self.client.get('/api/finance/compensations/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['compensations']), 1)
        self.assertEqual(response.data['stats']['total'], 10000)
        self.assertEqual(response.data['stats']['total_by_role']['fp'], 10000)

    def test_admin_list_rejects_non_numeric_user_id(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/finance/admin/compensations/?user_id=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/finance/admin/compensations/?user_id={self.fp.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_generate(self):
        Contract.objects.create(user=self.fp, contract_number='G-1', product_name='医療保険',
                                signed_at=aware(2024, 10, 5), reward_amount=12000)
        manager = make_user('manager@test.com', role='manager')
        Compensation.objects.create(user=self.admin, month='2024-10', amount=1)
        self.client.force_authenticate(user=self.admin)

        response = self.client.post('/api/finance/admin/compensations/generate/', {'month': '2024-10'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary, {'total': 3, 'succeeded': 1, 'skipped': 1, 'failed': 1})
        created = Compensation.objects.get(user=self.fp, month='2024-10')
        self.assertEqual(created.amount, 12000)
        self.assertEqual(created.earned_as_role, 'fp')
        self.assertEqual(created.status, Compensation.STATUS_PENDING)
        self.assertFalse(Compensation.objects.filter(user=manager).exists())
        self.assertFalse(Compensation.objects.filter(user=self.member).exists())

    def test_generate_rejects_bad_month(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/finance/admin/compensations/generate/', {'month': '2024/10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_transitions(self):
        compensation = Compensation.objects.create(user=self.fp, month='2024-10', amount=30000)
        self.client.force_authenticate(user=self.admin)
        url = f'/api/finance/admin/compensations/{compensation.id}/status/'

        response = self.client.patch(url, {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(
            Notification.objects.filter(user=self.fp, notification_type=Notification.TYPE_COMPENSATION_READY).exists()
        )

        response = self.client.patch(url, {'status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {'status': 'paid'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        compensation.refresh_from_db()
        self.assertEqual(compensation.status, Compensation.STATUS_PAID)
        self.assertIsNotNone(compensation.paid_at)

    def test_service_generate_narrowed_by_user_ids(self):
        other_fp = make_user('fp2@test.com', role='fp')
        result = CompensationService.generate('2024-10', user_ids=[other_fp.id])
        self.assertEqual(result['summary']['total'], 1)


class ContractImportTest(APITestCase):
    HEADER = 'userId,contractNumber,productName,amount,signedAt,status\n'

    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.fp = make_user('fp@test.com', role='fp', member_id='UGS0000007')
        Contract.objects.create(user=self.fp, contract_number='EXIST-1', product_name='旧商品', signed_at=aware(2023, 1, 1))
        self.client.force_authenticate(user=self.admin)

    def test_preview_splits_rows(self):
        body = self.HEADER + (
            f'{self.fp.id},NEW-1,終身保険,12000,2024-10-01,active\n'
            f'UGS0000007,EXIST-1,終身保険,"13,000",2024/10/02,ACTIVE\n'
            f'99999,NEW-2,終身保険,1000,2024-10-01,ACTIVE\n'
            f'{self.fp.id},NEW-3,終身保険,abc,2024-10-01,ACTIVE\n'
            f'{self.fp.id},NEW-4,終身保険,1000,not-a-date,ACTIVE\n'
            f'{self.fp.id},NEW-5,終身保険,1000,2024-10-01,PAUSED\n'
        )
        response = self.client.post(
            '/api/finance/admin/contracts/upload/preview/',
            {'file': csv_file(body)},
            format='multipart',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['to_add']), 1)
        self.assertEqual(len(response.data['to_update']), 1)
        self.assertEqual([e['row_number'] for e in response.data['errors']], [4, 5, 6, 7])

    def test_preview_requires_columns(self):
        response = self.client.post(
            '/api/finance/admin/contracts/upload/preview/',
            {'file': csv_file('userId,contractNumber\n1,X\n')},
            format='multipart',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('productName', response.data['detail'])

    def test_preview_reports_bad_amounts_per_row(self):
        body = self.HEADER + (
            f'{self.fp.id},NEW-1,終身保険,1e309,2024-10-01,ACTIVE\n'
            f'{self.fp.id},NEW-2,終身保険,12.9,2024-10-01,ACTIVE\n'
            f'{self.fp.id},NEW-3,終身保険,NaN,2024-10-01,ACTIVE\n'
            f'{self.fp.id},NEW-4,終身保険,1200.0,2024-10-01,ACTIVE\n'
        )
        response = self.client.post(
            '/api/finance/admin/contracts/upload/preview/',
            {'file': csv_file(body)},
            format='multipart',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([e['row_number'] for e in response.data['errors']], [2, 3, 4])
        self.assertEqual(response.data['to_add'][0]['amount'], 1200)

    def test_confirm_creates_and_updates(self):
        contracts = [
            {'user_id': self.fp.id, 'contract_number': 'NEW-1', 'product_name': '医療保険',
             'amount': 5000, 'signed_at': '2024-10-01T00:00:00+09:00', 'status': 'ACTIVE'},
            {'user_id': self.fp.id, 'contract_number': 'EXIST-1', 'product_name': '新商品',
             'amount': 7000, 'signed_at': '2024-10-02T00:00:00+09:00', 'status': 'CANCELLED'},
        ]
        response = self.client.post('/api/finance/admin/contracts/upload/confirm/', {'contracts': contracts}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['added'], 1)
        self.assertEqual(response.data['updated'], 1)
        new = Contract.objects.get(contract_number='NEW-1')
        self.assertEqual(new.contract_type, Contract.TYPE_INSURANCE)
        self.assertIsNone(new.reward_amount)
        self.assertEqual(Contract.objects.get(contract_number='EXIST-1').status, Contract.STATUS_CANCELLED)


class CompensationImportTest(APITestCase):
    HEADER = '会員番号,対象月,税込報酬,源泉徴収額,振込手数料\n'

    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.fp = make_user('fp@test.com', role='fp', member_id='UGS0000001')
        self.client.force_authenticate(user=self.admin)

    def test_preview_parses_currency_values(self):
        body = '\ufeff' + self.HEADER + (
            'UGS0000001,2024-10,"¥100,000",10210,￥440\n'
            'UGS0000001,2024-11,1000,900,200\n'
            'XYZ,2024-10,1000,0,0\n'
            'UGS0000002,2024-10,1000,0,0\n'
            'UGS0000001,2024-13,1000,0,0\n'
        )
        response = self.client.post(
            '/api/finance/admin/compensations/upload/preview/',
            {'file': csv_file(body)},
            format='multipart',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['to_add']), 1)
        row = response.data['to_add'][0]
        self.assertEqual(row['gross_amount'], 100000)
        self.assertEqual(row['net_amount'], 100000 - 10210 - 440)
        self.assertEqual(len(response.data['errors']), 4)

    def test_preview_rejects_non_utf8(self):
        upload = SimpleUploadedFile('c.csv', self.HEADER.encode('shift_jis'), content_type='text/csv')
        response = self.client.post('/api/finance/admin/compensations/upload/preview/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_keeps_existing_status(self):
        existing = Compensation.objects.create(user=self.fp, month='2024-09', amount=1, status=Compensation.STATUS_PAID)
        items = [
            {'member_id': 'UGS0000001', 'month': '2024-09', 'gross_amount': 50000, 'withholding_tax': 5105, 'transfer_fee': 440},
            {'member_id': 'UGS0000001', 'month': '2024-10', 'gross_amount': 20000, 'withholding_tax': 0, 'transfer_fee': 0},
        ]
        response = self.client.post('/api/finance/admin/compensations/upload/confirm/', {'compensations': items}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['added'], 1)
        self.assertEqual(response.data['updated'], 1)
        existing.refresh_from_db()
        self.assertEqual(existing.status, Compensation.STATUS_PAID)
        self.assertEqual(existing.amount, 50000)
        self.assertEqual(existing.net_amount, 44455)
        created = Compensation.objects.get(user=self.fp, month='2024-10')
        self.assertEqual(created.status, Compensation.STATUS_CONFIRMED)
