"""
Расчёт ежемесячного вознаграждения и показателей для повышения роли.

Базовый месяц - предыдущий календарный месяц: при N=6 в ноябре
учитываются месяцы с мая по октябрь включительно.
"""
from datetime import datetime
import logging
import re

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from .models import Compensation, Contract, Referral

logger = logging.getLogger(__name__)

MONTH_RE = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')
CONTRACT_ACHIEVEMENT_TARGET = 20

BREAKDOWN_KEYS = ('member_referral', 'fp_referral', 'contract', 'bonus', 'deduction')


def is_valid_month(value) -> bool:
    return bool(value) and bool(MONTH_RE.match(str(value)))


def month_bounds(month: str):
    """'2024-10' -> (начало месяца, начало следующего месяца) в текущей таймзоне."""
    year, month_num = (int(part) for part in month.split('-'))
    start = timezone.make_aware(datetime(year, month_num, 1))
    return start, start + relativedelta(months=1)


def format_month(value) -> str:
    return f'{value.year:04d}-{value.month:02d}'


def base_month_start(now=None):
    """Первое число предыдущего месяца."""
    today = timezone.localtime(now or timezone.now()).date()
    return today.replace(day=1) - relativedelta(months=1)


def target_months(months=6, now=None):
    """Список 'YYYY-MM' за ``months`` месяцев, заканчивая базовым месяцем."""
    base = base_month_start(now)
    start = base - relativedelta(months=months - 1)
    return [format_month(start + relativedelta(months=i)) for i in range(months)]


class CompensationCalculator:
    """Ежемесячные вознаграждения и показатели участника."""

    @staticmethod
    def calculate_monthly(user, month: str) -> dict:
        """
        Разбивка вознаграждения за месяц.

        Реферальные вознаграждения, бонусы и удержания пока не начисляются (0);
        начисляется только вознаграждение за действующие договоры месяца.
        """
        start, end = month_bounds(month)
        contracts = Contract.objects.filter(
            user=user,
            status=Contract.STATUS_ACTIVE,
            signed_at__gte=start,
            signed_at__lt=end,
        )
        contract_total = sum(c.reward_amount or 0 for c in contracts)

        return {
            'member_referral': 0,
            'fp_referral': 0,
            'contract': contract_total,
            'bonus': 0,
            'deduction': 0,
        }

    @staticmethod
    def calculate_total(breakdown: dict) -> int:
        return (
            breakdown.get('member_referral', 0)
            + breakdown.get('fp_referral', 0)
            + breakdown.get('contract', 0)
            + breakdown.get('bonus', 0)
            - breakdown.get('deduction', 0)
        )

    @staticmethod
    def calculate_average_compensation(user, months=6, now=None) -> int:
        """Среднее (с округлением вниз) по подтверждённым/выплаченным месяцам окна."""
        amounts = list(
            Compensation.objects.filter(
                user=user,
                status__in=[Compensation.STATUS_CONFIRMED, Compensation.STATUS_PAID],
                month__in=target_months(months, now),
            ).values_list('amount', flat=True)
        )
        if not amounts:
            return 0
        return sum(amounts) // len(amounts)

    @staticmethod
    def get_referral_stats(user, months=6, now=None) -> dict:
        base = base_month_start(now)
        start = timezone.make_aware(datetime.combine(base - relativedelta(months=months - 1), datetime.min.time()))
        end = timezone.make_aware(datetime.combine(base + relativedelta(months=1), datetime.min.time()))

        approved = Referral.objects.filter(
            referrer=user,
            status=Referral.STATUS_APPROVED,
            created_at__gte=start,
            created_at__lt=end,
        )
        return {
            'member_referrals': approved.filter(referral_type=Referral.TYPE_MEMBER).count(),
            'fp_referrals': approved.filter(referral_type=Referral.TYPE_FP).count(),
        }

    @staticmethod
    def count_active_insurance_contracts(user) -> int:
        return Contract.objects.filter(
            user=user,
            contract_type=Contract.TYPE_INSURANCE,
            status=Contract.STATUS_ACTIVE,
        ).count()

    @staticmethod
    def get_contract_achievement(user) -> bool:
        """Не менее 20 действующих страховых договоров."""
        return CompensationCalculator.count_active_insurance_contracts(user) >= CONTRACT_ACHIEVEMENT_TARGET
