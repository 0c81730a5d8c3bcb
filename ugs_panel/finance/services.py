"""
Finance business logic service.

Рефералы (регистрация, одобрение, отклонение) и ежемесячные вознаграждения
(генерация, смена статуса, сводка для участника).
"""
import logging

from dateutil.relativedelta import relativedelta
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import Notification
from accounts.notifications import create_notification
from accounts.roles import COMPENSATION_ROLES, ROLE_FP, ROLE_MANAGER

from .calculator import CompensationCalculator, format_month, is_valid_month
from .models import Compensation, Referral

User = get_user_model()
logger = logging.getLogger(__name__)

REFERRAL_REWARDS = {
    Referral.TYPE_MEMBER: 15000,
    Referral.TYPE_FP: 20000,
}


class FinanceServiceError(Exception):
    """Base exception for finance service errors (HTTP 400)."""
    pass


class ReferralNotFoundError(FinanceServiceError):
    """Unknown referral code or referred user (HTTP 404)."""
    pass


class DuplicateReferralError(FinanceServiceError):
    """Referral pair already registered (HTTP 409)."""
    pass


class InvalidStatusTransitionError(FinanceServiceError):
    pass


class ReferralService:
    """Реферальные связи между участниками."""

    @staticmethod
    def create_signup_referral(referral_code, referred_user):
        """
        Реферал при первой оплате нового участника.

        Неизвестный код и приглашение самого себя игнорируются (возвращается None).
        """
        code = (referral_code or '').strip().upper()
        referrer = User.objects.filter(referral_code=code).first() if code else None
        if referrer is None:
            logger.info(f'Signup referral code not found: {code!r}')
            return None
        if referrer.pk == referred_user.pk:
            return None

        referral_type = Referral.TYPE_FP if referrer.role == ROLE_FP else Referral.TYPE_MEMBER
        referral, created = Referral.objects.get_or_create(
            referrer=referrer,
            referred=referred_user,
            defaults={'referral_type': referral_type, 'status': Referral.STATUS_PENDING},
        )
        if created:
            logger.info(f'Referral created on signup: {referrer.email} -> {referred_user.email}')
        return referral

    @staticmethod
    def register(referral_code, referred_user_id):
        """
        Ручная регистрация реферала.

        Raises:
            ReferralNotFoundError: неизвестный код или пользователь
            FinanceServiceError: попытка пригласить себя
            DuplicateReferralError: пара уже зарегистрирована
        """
        referrer = User.objects.filter(referral_code=(referral_code or '').strip().upper()).first()
        if referrer is None:
            raise ReferralNotFoundError('無効な紹介コードです')
        if referrer.pk == referred_user_id:
            raise FinanceServiceError('自分自身を紹介することはできません')

        referred = User.objects.filter(pk=referred_user_id).first()
        if referred is None:
            raise ReferralNotFoundError('被紹介者が見つかりません')

        if Referral.objects.filter(referrer=referrer, referred=referred).exists():
            raise DuplicateReferralError('この紹介は既に登録されています')

        referral_type = Referral.TYPE_FP if referred.role == ROLE_FP else Referral.TYPE_MEMBER
        try:
            with transaction.atomic():
                referral = Referral.objects.create(
                    referrer=referrer,
                    referred=referred,
                    referral_type=referral_type,
                    status=Referral.STATUS_PENDING,
                )
        except IntegrityError:
            raise DuplicateReferralError('この紹介は既に登録されています')

        logger.info(f'Referral registered: {referrer.email} -> {referred.email} ({referral_type})')
        return referral

    @staticmethod
    @transaction.atomic
    def approve(referral):
        referral = Referral.objects.select_for_update().get(pk=referral.pk)
        if referral.status == Referral.STATUS_APPROVED:
            raise FinanceServiceError('この紹介は既に承認済みです')

        referral.status = Referral.STATUS_APPROVED
        referral.reward_amount = REFERRAL_REWARDS.get(referral.referral_type, 0)
        referral.approved_at = timezone.now()
        referral.save(update_fields=['status', 'reward_amount', 'approved_at'])

        create_notification(
            referral.referrer,
            Notification.TYPE_REFERRAL_APPROVED,
            '紹介が承認されました',
            f'{referral.referred.name or referral.referred.email}さんの紹介が承認されました。'
            f'報酬額: ¥{referral.reward_amount:,}',
            priority=Notification.PRIORITY_SUCCESS,
            action_url='/dashboard/referrals',
        )
        logger.info(f'Referral {referral.id} approved, reward={referral.reward_amount}')
        return referral

    @staticmethod
    def reject(referral):
        if referral.status != Referral.STATUS_PENDING:
            raise FinanceServiceError('承認待ちの紹介のみ却下できます')
        referral.status = Referral.STATUS_REJECTED
        referral.save(update_fields=['status'])
        logger.info(f'Referral {referral.id} rejected')
        return referral


class CompensationService:
    """Генерация и жизненный цикл ежемесячных вознаграждений."""

    @staticmethod
    def generate(month, user_ids=None):
        """
        Создаёт pending-записи за месяц для fp / manager / admin.

        Returns:
            dict: {'results': [...], 'summary': {total, succeeded, skipped, failed}}
        """
        if not is_valid_month(month):
            raise FinanceServiceError('無効な月形式です。YYYY-MM形式で指定してください')

        users = User.objects.filter(role__in=COMPENSATION_ROLES).order_by('id')
        if user_ids:
            users = users.filter(id__in=user_ids)

        results = []
        for user in users:
            if Compensation.objects.filter(user=user, month=month).exists():
                results.append({'user_id': user.id, 'success': False, 'error': '既に報酬が存在します'})
                continue

            breakdown = CompensationCalculator.calculate_monthly(user, month)
            total = CompensationCalculator.calculate_total(breakdown)
            if total == 0:
                results.append({
                    'user_id': user.id,
                    'success': True,
                    'skipped': True,
                    'message': '報酬が0のためスキップしました',
                })
                continue

            try:
                with transaction.atomic():
                    compensation = Compensation.objects.create(
                        user=user,
                        month=month,
                        amount=total,
                        breakdown=breakdown,
                        earned_as_role=user.role,
                        status=Compensation.STATUS_PENDING,
                    )
            except IntegrityError as e:
                logger.error(f'Compensation create failed for user {user.id}, month {month}: {e}')
                results.append({'user_id': user.id, 'success': False, 'error': str(e)})
                continue

            results.append({
                'user_id': user.id,
                'success': True,
                'compensation': {'id': compensation.id, 'amount': compensation.amount, 'month': month},
            })

        summary = {
            'total': len(results),
            'succeeded': sum(1 for r in results if r['success'] and not r.get('skipped')),
            'skipped': sum(1 for r in results if r.get('skipped')),
            'failed': sum(1 for r in results if not r['success']),
        }
        logger.info(f'Compensations generated for {month}: {summary}')
        return {'results': results, 'summary': summary}

    @staticmethod
    def update_status(compensation, new_status):
        """
        pending -> confirmed -> paid. Откат назад запрещён.

        Raises:
            InvalidStatusTransitionError
        """
        order = Compensation.STATUS_ORDER
        if new_status not in order:
            raise InvalidStatusTransitionError(f'無効なステータスです: {new_status}')
        if order[new_status] <= order[compensation.status]:
            raise InvalidStatusTransitionError(
                f'ステータスを {compensation.status} から {new_status} に変更できません'
            )

        compensation.status = new_status
        if new_status == Compensation.STATUS_PAID:
            compensation.paid_at = timezone.now()
        compensation.save(update_fields=['status', 'paid_at', 'updated_at'])

        if new_status == Compensation.STATUS_CONFIRMED:
            create_notification(
                compensation.user,
                Notification.TYPE_COMPENSATION_READY,
                f'{compensation.month}の報酬が確定しました',
                f'確定額: ¥{compensation.amount:,}',
                priority=Notification.PRIORITY_SUCCESS,
                action_url='/dashboard/compensation',
            )
        logger.info(f'Compensation {compensation.id} -> {new_status}')
        return compensation

    @staticmethod
    def summary_for_user(user, month=None, now=None):
        qs = Compensation.objects.filter(user=user).order_by('-month')
        if month:
            qs = qs.filter(month=month)
        compensations = list(qs)

        now = timezone.localtime(now or timezone.now())
        current_month = format_month(now)
        last_month = format_month(now - relativedelta(months=1))

        return {
            'compensations': compensations,
            'total': sum(c.amount for c in compensations),
            'total_by_role': {
                ROLE_FP: sum(c.amount for c in compensations if c.earned_as_role == ROLE_FP),
                ROLE_MANAGER: sum(c.amount for c in compensations if c.earned_as_role == ROLE_MANAGER),
            },
            'current_month': next((c for c in compensations if c.month == current_month), None),
            'last_month': next((c for c in compensations if c.month == last_month), None),
            'recent_average': CompensationCalculator.calculate_average_compensation(user, now=now),
        }
