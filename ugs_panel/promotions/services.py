"""
Повышение ролей: условия, заявки, одобрение/отклонение, понижение FP,
полугодовая оценка manager.

Условия для manager (за последние 6 месяцев, см. finance.calculator):
- среднее вознаграждение >= 70 000 JPY
- member-рефералов >= 8, fp-рефералов >= 4
- не менее 20 действующих страховых договоров

Manager сохраняет роль, если сумма подтверждённых вознаграждений за
полугодие не меньше 1 200 000 JPY; иначе становится кандидатом на понижение,
которое подтверждает администратор.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from accounts.chatwork import notify_promotion_application
from accounts.models import Notification
from accounts.notifications import create_notification
from accounts.roles import ROLE_CHOICES, ROLE_FP, ROLE_MANAGER, ROLE_MEMBER, role_at_least
from events.models import EventRegistration
from finance.calculator import CONTRACT_ACHIEVEMENT_TARGET, CompensationCalculator, month_bounds
from finance.models import Compensation, Contract
from ugs_panel.db import db_retry

from .models import FPPromotionApplication, ManagerAssessment, PromotionApplication

logger = logging.getLogger(__name__)

User = get_user_model()

MANAGER_MIN_AVERAGE_COMPENSATION = 70000
MANAGER_MIN_MEMBER_REFERRALS = 8
MANAGER_MIN_FP_REFERRALS = 4

# Полугодовая оценка manager
MANAGER_MAINTAIN_SALES = 1200000
ASSESSMENT_PERIOD_MONTHS = 6

PROMOTION_TARGET_ROLES = (ROLE_FP, ROLE_MANAGER)
ROLE_LABELS = dict(ROLE_CHOICES)


class PromotionError(Exception):
    """Base exception for promotion operations (HTTP 400)."""

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.payload = payload or {}


class NotFoundError(PromotionError):
    pass


class ApplicationNotFoundError(NotFoundError):
    pass


class ConflictError(PromotionError):
    pass


class DuplicateApplicationError(ConflictError):
    pass


class ForbiddenError(PromotionError):
    pass


def _condition(current, target):
    return {'current': current, 'target': target, 'met': current >= target}


def _fp_conditions(user):
    checklist = FPPromotionApplication.objects.filter(user=user).first()
    lp_done = bool(checklist and checklist.lp_meeting_completed)
    survey_done = bool(checklist and checklist.survey_completed)
    return {
        'lp_meeting_completed': {'current': lp_done, 'target': True, 'met': lp_done},
        'survey_completed': {'current': survey_done, 'target': True, 'met': survey_done},
    }


def _manager_conditions(user):
    stats = CompensationCalculator.get_referral_stats(user)
    contracts = CompensationCalculator.count_active_insurance_contracts(user)
    return {
        'average_compensation': _condition(
            CompensationCalculator.calculate_average_compensation(user),
            MANAGER_MIN_AVERAGE_COMPENSATION,
        ),
        'member_referrals': _condition(stats['member_referrals'], MANAGER_MIN_MEMBER_REFERRALS),
        'fp_referrals': _condition(stats['fp_referrals'], MANAGER_MIN_FP_REFERRALS),
        'contract_achievement': _condition(contracts, CONTRACT_ACHIEVEMENT_TARGET),
    }


@db_retry()
def check_eligibility(user, target_role):
    """
    Returns:
        dict: {is_eligible, target_role, conditions}
    """
    if target_role == ROLE_FP:
        conditions = _fp_conditions(user)
    elif user.role != ROLE_FP:
        # В manager можно перейти только из fp
        return {'is_eligible': False, 'target_role': target_role, 'conditions': {}}
    else:
        conditions = _manager_conditions(user)

    return {
        'is_eligible': all(c['met'] for c in conditions.values()),
        'target_role': target_role,
        'conditions': conditions,
    }


class PromotionService:

    @staticmethod
    def apply(user, target_role):
        if target_role not in PROMOTION_TARGET_ROLES:
            raise PromotionError('無効な昇格先ロールです')

        if role_at_least(user.role, target_role):
            raise PromotionError('既に同等以上のロールです')

        if PromotionApplication.objects.filter(user=user, status=PromotionApplication.STATUS_PENDING).exists():
            raise DuplicateApplicationError('既に審査中の申請があります')

        eligibility = check_eligibility(user, target_role)
        if not eligibility['is_eligible']:
            raise PromotionError('昇格条件を満たしていません', payload={'eligibility': eligibility})

        application = PromotionApplication.objects.create(user=user, target_role=target_role)
        logger.info(f'Promotion application created: user={user.id} target={target_role}')
        notify_promotion_application(user, ROLE_LABELS[target_role])
        return application

    @staticmethod
    def _load_pending(application_id):
        application = (
            PromotionApplication.objects.select_for_update()
            .select_related('user')
            .filter(pk=application_id)
            .first()
        )
        if application is None:
            raise ApplicationNotFoundError('申請が見つかりません')
        if application.status != PromotionApplication.STATUS_PENDING:
            raise PromotionError('この申請は既に処理されています')
        return application

    @staticmethod
    @transaction.atomic
    def approve(application_id, reviewer, review_notes=''):
        application = PromotionService._load_pending(application_id)
        now = timezone.now()

        application.status = PromotionApplication.STATUS_APPROVED
        application.reviewed_at = now
        application.reviewed_by = reviewer
        application.review_notes = review_notes or ''
        application.save()

        user = application.user
        user.role = application.target_role
        user.save(update_fields=['role', 'updated_at'])

        if application.target_role == ROLE_FP:
            FPPromotionApplication.objects.update_or_create(
                user=user,
                defaults={'status': FPPromotionApplication.STATUS_APPROVED, 'approved_at': now},
            )

        label = ROLE_LABELS[application.target_role]
        create_notification(
            user,
            Notification.TYPE_PROMOTION_APPROVED,
            f'{label}への昇格が承認されました',
            message=review_notes or f'おめでとうございます。本日より{label}としてご活動いただけます。',
            priority=Notification.PRIORITY_SUCCESS,
            action_url='/dashboard',
        )
        logger.info(f'Promotion approved: application={application.id} user={user.id} by={reviewer.email}')
        return application

    @staticmethod
    @transaction.atomic
    def reject(application_id, reviewer, review_notes=''):
        application = PromotionService._load_pending(application_id)

        application.status = PromotionApplication.STATUS_REJECTED
        application.reviewed_at = timezone.now()
        application.reviewed_by = reviewer
        application.review_notes = review_notes or ''
        application.save()

        label = ROLE_LABELS[application.target_role]
        create_notification(
            application.user,
            Notification.TYPE_PROMOTION_REJECTED,
            f'{label}への昇格申請が却下されました',
            message=review_notes or '詳細は運営までお問い合わせください。',
            priority=Notification.PRIORITY_WARNING,
        )
        logger.info(f'Promotion rejected: application={application.id} by={reviewer.email}')
        return application


class FPChecklistService:

    @staticmethod
    def get_or_create(user):
        checklist, _ = FPPromotionApplication.objects.get_or_create(user=user)
        return checklist

    @staticmethod
    def complete_survey(user):
        checklist = FPChecklistService.get_or_create(user)
        if not checklist.survey_completed:
            checklist.survey_completed = True
            checklist.save(update_fields=['survey_completed', 'updated_at'])
        return checklist

    @staticmethod
    def complete_lp_meeting(user):
        checklist = FPChecklistService.get_or_create(user)
        if not checklist.lp_meeting_completed:
            checklist.lp_meeting_completed = True
            checklist.save(update_fields=['lp_meeting_completed', 'updated_at'])
        logger.info(f'LP meeting completed: user={user.id}')
        return checklist

    @staticmethod
    def apply(user):
        """
        Raises:
            PromotionError: уже подана заявка, которая не отклонена
        """
        checklist = FPPromotionApplication.objects.filter(user=user).first()
        if (
            checklist is not None
            and checklist.applied_at is not None
            and checklist.status != FPPromotionApplication.STATUS_REJECTED
        ):
            raise PromotionError('既に申請が存在します', payload={'status': checklist.status})

        checklist, _ = FPPromotionApplication.objects.update_or_create(
            user=user,
            defaults={'status': FPPromotionApplication.STATUS_PENDING, 'applied_at': timezone.now()},
        )
        logger.info(f'FP promotion applied: user={user.id}')
        return checklist


def demote_flagged_fp_users(month_start, month_end):
    """
    Понижает fp -> member по регистрациям на 全体MTG за период
    с final_approval = demoted.

    Returns:
        dict: {checked, demoted}
    """
    registrations = (
        EventRegistration.objects.select_related('user', 'event')
        .filter(
            event__is_recurring=True,
            event__date__gte=month_start,
            event__date__lt=month_end,
            final_approval=EventRegistration.APPROVAL_DEMOTED,
        )
    )

    checked, demoted = 0, 0
    seen = set()
    for registration in registrations:
        user = registration.user
        if user.id in seen:
            continue
        seen.add(user.id)
        checked += 1
        if user.role != ROLE_FP:
            continue

        user.role = ROLE_MEMBER
        user.save(update_fields=['role', 'updated_at'])
        create_notification(
            user,
            Notification.TYPE_ROLE_CHANGED,
            'ロールが変更されました',
            message=f'{registration.event.title}の出席要件を満たさなかったため、UGS会員に変更されました。',
            priority=Notification.PRIORITY_WARNING,
        )
        demoted += 1
        logger.info(f'[CRON] FP demoted: user={user.id} event={registration.event_id}')

    return {'checked': checked, 'demoted': demoted}


def assessment_period(year, half):
    """
    Полугодие оценки manager: 1 - январь-июнь, 2 - июль-декабрь.

    Returns:
        dict: {year, half, months, start, end, label}
    """
    if half not in (ManagerAssessment.HALF_FIRST, ManagerAssessment.HALF_SECOND):
        raise PromotionError('halfは1または2で指定してください')
    first_month = 1 if half == ManagerAssessment.HALF_FIRST else 7
    months = [f'{year:04d}-{first_month + i:02d}' for i in range(ASSESSMENT_PERIOD_MONTHS)]
    return {
        'year': year,
        'half': half,
        'months': months,
        'start': month_bounds(months[0])[0],
        'end': month_bounds(months[-1])[1],
        'label': f'{year}年{"上期" if half == ManagerAssessment.HALF_FIRST else "下期"}',
    }


def current_assessment_period(now=None):
    now = timezone.localtime(now or timezone.now())
    half = ManagerAssessment.HALF_FIRST if now.month <= 6 else ManagerAssessment.HALF_SECOND
    return assessment_period(now.year, half)


class ManagerAssessmentService:

    @staticmethod
    def calculate_sales(user, period):
        """
        Returns:
            tuple: (сумма подтверждённых вознаграждений, страховые договоры за период)
        """
        total = Compensation.objects.filter(
            user=user,
            status__in=[Compensation.STATUS_CONFIRMED, Compensation.STATUS_PAID],
            month__in=period['months'],
        ).aggregate(total=Sum('amount'))['total'] or 0
        contracts = Contract.objects.filter(
            user=user,
            contract_type=Contract.TYPE_INSURANCE,
            signed_at__gte=period['start'],
            signed_at__lt=period['end'],
        ).count()
        return total, contracts

    @staticmethod
    def is_exempt(user, period):
        # Повышенные в manager внутри периода не оцениваются
        return PromotionApplication.objects.filter(
            user=user,
            target_role=ROLE_MANAGER,
            status=PromotionApplication.STATUS_APPROVED,
            reviewed_at__gte=period['start'],
        ).exists()

    @staticmethod
    @transaction.atomic
    def run(period):
        """
        Оценивает всех manager за период. Уже подтверждённые оценки не пересчитываются.

        Returns:
            dict: {period, processed, demotion_candidates, exempt, skipped, results}
        """
        summary = {'processed': 0, 'demotion_candidates': 0, 'exempt': 0, 'skipped': 0}
        results = []

        for manager in User.objects.filter(role=ROLE_MANAGER).order_by('id'):
            row = {'user_id': manager.id, 'user_name': manager.name, 'member_id': manager.member_id}

            if ManagerAssessmentService.is_exempt(manager, period):
                summary['exempt'] += 1
                results.append({**row, 'status': 'exempt'})
                continue

            existing = ManagerAssessment.objects.filter(
                user=manager, period_year=period['year'], period_half=period['half']
            ).first()
            if existing is not None and existing.status != ManagerAssessment.STATUS_PENDING:
                summary['skipped'] += 1
                results.append({**row, 'status': existing.status, 'assessment_id': existing.id})
                continue

            total_sales, contract_count = ManagerAssessmentService.calculate_sales(manager, period)
            is_candidate = total_sales < MANAGER_MAINTAIN_SALES
            assessment, _ = ManagerAssessment.objects.update_or_create(
                user=manager,
                period_year=period['year'],
                period_half=period['half'],
                defaults={
                    'total_sales': total_sales,
                    'contract_count': contract_count,
                    'is_demotion_candidate': is_candidate,
                    'status': ManagerAssessment.STATUS_PENDING,
                },
            )
            summary['processed'] += 1
            if is_candidate:
                summary['demotion_candidates'] += 1
            results.append({
                **row,
                'total_sales': total_sales,
                'contract_count': contract_count,
                'is_demotion_candidate': is_candidate,
                'status': 'demotion_candidate' if is_candidate else 'maintained',
                'assessment_id': assessment.id,
            })

        logger.info(
            f'Manager assessment {period["label"]}: processed={summary["processed"]} '
            f'candidates={summary["demotion_candidates"]} exempt={summary["exempt"]}'
        )
        return {'period': period['label'], **summary, 'results': results}

    @staticmethod
    def _load_pending(assessment_id):
        assessment = (
            ManagerAssessment.objects.select_for_update()
            .select_related('user')
            .filter(pk=assessment_id)
            .first()
        )
        if assessment is None:
            raise NotFoundError('査定結果が見つかりません')
        if assessment.status != ManagerAssessment.STATUS_PENDING:
            raise PromotionError('この査定は既に確定済みです')
        return assessment

    @staticmethod
    @transaction.atomic
    def confirm(assessment_id, reviewer):
        assessment = ManagerAssessmentService._load_pending(assessment_id)
        assessment.status = ManagerAssessment.STATUS_CONFIRMED
        assessment.confirmed_by = reviewer
        assessment.confirmed_at = timezone.now()
        assessment.save()
        logger.info(f'Manager assessment confirmed: assessment={assessment.id} by={reviewer.email}')
        return assessment

    @staticmethod
    @transaction.atomic
    def demote(assessment_id, reviewer):
        """manager -> fp по оценке-кандидату."""
        assessment = ManagerAssessmentService._load_pending(assessment_id)
        if not assessment.is_demotion_candidate:
            raise PromotionError('この査定は降格候補ではありません')

        user = assessment.user
        if user.role != ROLE_MANAGER:
            raise PromotionError('対象ユーザーはマネージャーではありません')

        assessment.status = ManagerAssessment.STATUS_DEMOTED
        assessment.confirmed_by = reviewer
        assessment.confirmed_at = timezone.now()
        assessment.save()

        user.role = ROLE_FP
        user.save(update_fields=['role', 'updated_at'])
        create_notification(
            user,
            Notification.TYPE_ROLE_CHANGED,
            'ロールが変更されました',
            message=(
                f'{assessment.period_year}年{assessment.get_period_half_display()}の査定で維持条件'
                f'（{MANAGER_MAINTAIN_SALES:,}円）を満たさなかったため、FPエイドに変更されました。'
            ),
            priority=Notification.PRIORITY_WARNING,
        )
        logger.info(f'Manager demoted: user={user.id} assessment={assessment.id} by={reviewer.email}')
        return assessment
