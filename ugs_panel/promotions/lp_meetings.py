"""
LP-встречи кандидатов в fp.

Участник (member) подаёт заявку с пятью вариантами даты, администратор
назначает дату и fp-ведущего. Завершённая встреча отмечает пункт
lp_meeting_completed в чек-листе FP.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from accounts.email_service import email_service
from accounts.models import Notification
from accounts.notifications import create_notification
from accounts.roles import ROLE_ADMIN, ROLE_FP

from .models import LPMeeting
from .services import ConflictError, FPChecklistService, ForbiddenError, NotFoundError, PromotionError

logger = logging.getLogger(__name__)

User = get_user_model()

PREFERRED_DATES_COUNT = 5


def _format(value):
    return timezone.localtime(value).strftime('%Y年%m月%d日 %H:%M') if value else ''


def _append_note(notes, label, text):
    if not text:
        return notes
    line = f'{label}: {text}'
    return f'{notes}\n{line}' if notes else line


class LPMeetingService:

    @staticmethod
    def current_for(member):
        """Последняя встреча участника или None."""
        return LPMeeting.objects.filter(member=member).select_related('fp').first()

    @staticmethod
    def statistics():
        counts = dict(LPMeeting.objects.order_by().values_list('status').annotate(total=Count('id')))
        stats = {key: counts.get(key, 0) for key, _ in LPMeeting.STATUS_CHOICES}
        stats['total'] = sum(counts.values())
        return stats

    @staticmethod
    @transaction.atomic
    def request(member, preferred_dates, meeting_location, member_notes='', now=None):
        """
        Raises:
            PromotionError: неверное место или даты
            ConflictError: у участника уже есть незакрытая встреча
        """
        location = (meeting_location or '').strip().lower()
        if location not in dict(LPMeeting.LOCATION_CHOICES):
            raise PromotionError('無効な面談場所が指定されました')

        if len(preferred_dates) != PREFERRED_DATES_COUNT:
            raise PromotionError(f'希望日時は{PREFERRED_DATES_COUNT}つ選択してください')
        now = now or timezone.now()
        if any(value <= now for value in preferred_dates):
            raise PromotionError('希望日時は未来の日時を選択してください')

        # Параллельные заявки одного участника сериализуются блокировкой
        User.objects.select_for_update().filter(pk=member.pk).first()
        if LPMeeting.objects.filter(member=member).exclude(status__in=LPMeeting.CLOSED_STATUSES).exists():
            raise ConflictError(
                '既にアクティブな面談予約があります。現在の面談が完了、キャンセル、'
                'またはノーショーになるまで再申請できません。'
            )

        meeting = LPMeeting.objects.create(
            member=member,
            preferred_dates=[value.isoformat() for value in preferred_dates],
            meeting_location=location,
            member_notes=member_notes or '',
        )

        for admin in User.objects.filter(role=ROLE_ADMIN, is_active=True):
            create_notification(
                admin,
                Notification.TYPE_LP_MEETING,
                'LP面談の予約申請がありました',
                message=f'{member.name}さんからLP面談の予約申請がありました。希望日時を確認して面談を確定してください。',
                action_url='/dashboard/admin/lp-meetings',
            )
        logger.info(f'LP meeting requested: meeting={meeting.id} member={member.id}')
        return meeting

    @staticmethod
    def _load(meeting_id):
        meeting = (
            LPMeeting.objects.select_for_update()
            .select_related('member', 'fp')
            .filter(pk=meeting_id)
            .first()
        )
        if meeting is None:
            raise NotFoundError('面談が見つかりません')
        return meeting

    @staticmethod
    @transaction.atomic
    def schedule(meeting_id, admin, scheduled_at, fp_id, meeting_url, meeting_platform):
        """
        Raises:
            NotFoundError: нет встречи или fp
            PromotionError: встреча уже назначена / дата не из вариантов участника
        """
        meeting = LPMeetingService._load(meeting_id)
        if meeting.status != LPMeeting.STATUS_REQUESTED:
            raise PromotionError('この面談は既に確定済みまたはキャンセル済みです')

        platform = (meeting_platform or '').strip().lower()
        if platform not in dict(LPMeeting.PLATFORM_CHOICES):
            raise PromotionError('無効なプラットフォームが指定されました')

        scheduled_day = timezone.localtime(scheduled_at).date()
        preferred_days = set()
        for value in meeting.preferred_dates:
            parsed = parse_datetime(value)
            if parsed is not None:
                preferred_days.add(timezone.localtime(parsed).date())
        if scheduled_day not in preferred_days:
            raise PromotionError('確定日時は希望日時のいずれかから選択してください')

        fp = User.objects.filter(pk=fp_id, role=ROLE_FP).first()
        if fp is None:
            raise NotFoundError('FPエイドが見つかりません')

        meeting.status = LPMeeting.STATUS_SCHEDULED
        meeting.scheduled_at = scheduled_at
        meeting.fp = fp
        meeting.meeting_url = meeting_url
        meeting.meeting_platform = platform
        meeting.assigned_by = admin
        meeting.save()

        when = _format(scheduled_at)
        create_notification(
            meeting.member,
            Notification.TYPE_LP_MEETING,
            'LP面談が確定しました',
            message=f'{when}に{fp.name}さんとのLP面談が確定しました。オンライン面談のURL: {meeting_url}',
            action_url='/dashboard/lp-meeting/request',
        )
        create_notification(
            fp,
            Notification.TYPE_LP_MEETING,
            'LP面談が確定しました',
            message=f'{when}に{meeting.member.name}さんとのLP面談が確定しました。オンライン面談のURL: {meeting_url}',
            action_url='/dashboard/lp-meeting/manage',
        )
        logger.info(f'LP meeting scheduled: meeting={meeting.id} fp={fp.id} by={admin.email}')
        return meeting

    @staticmethod
    @transaction.atomic
    def complete(meeting_id, actor, notes='', as_admin=False):
        """
        Завершает встречу и отмечает LP-встречу в чек-листе FP участника.

        Raises:
            ForbiddenError: fp завершает чужую встречу
        """
        meeting = LPMeetingService._load(meeting_id)
        if not as_admin and meeting.fp_id != actor.id:
            raise ForbiddenError('担当外の面談です')
        if meeting.status != LPMeeting.STATUS_SCHEDULED:
            raise PromotionError('この面談は確定済みステータスではありません')

        meeting.status = LPMeeting.STATUS_COMPLETED
        meeting.completed_at = timezone.now()
        meeting.notes = notes or meeting.notes
        meeting.save()

        member = meeting.member
        FPChecklistService.complete_lp_meeting(member)
        create_notification(
            member,
            Notification.TYPE_LP_MEETING,
            'LP面談が完了しました',
            message='FPエイド昇格の条件の一つであるLP面談が完了しました。',
            priority=Notification.PRIORITY_SUCCESS,
            action_url='/dashboard/promotion',
        )
        when = _format(meeting.scheduled_at)
        transaction.on_commit(lambda: email_service.send_lp_meeting_completed(member.email, member.name, when))
        logger.info(f'LP meeting completed: meeting={meeting.id} by={actor.email}')
        return meeting

    @staticmethod
    @transaction.atomic
    def mark_no_show(meeting_id, admin, notes=''):
        meeting = LPMeetingService._load(meeting_id)
        if meeting.status != LPMeeting.STATUS_SCHEDULED:
            raise PromotionError('この面談は確定済みステータスではありません')

        meeting.status = LPMeeting.STATUS_NO_SHOW
        meeting.notes = _append_note(meeting.notes, 'ノーショー備考', notes)
        meeting.save()

        member = meeting.member
        create_notification(
            member,
            Notification.TYPE_LP_MEETING,
            'LP面談に出席されませんでした',
            message='予定されていたLP面談に出席が確認できませんでした。再度申請される場合は、LP面談申請ページからお申し込みください。',
            priority=Notification.PRIORITY_CRITICAL,
            action_url='/dashboard/lp-meeting/request',
        )
        when = _format(meeting.scheduled_at)
        transaction.on_commit(lambda: email_service.send_lp_meeting_no_show(member.email, member.name, when))
        logger.info(f'LP meeting no-show: meeting={meeting.id} by={admin.email}')
        return meeting

    @staticmethod
    @transaction.atomic
    def cancel(meeting_id, admin, reason=''):
        meeting = LPMeetingService._load(meeting_id)
        if meeting.is_closed:
            raise PromotionError('この面談は既に完了、キャンセル、またはノーショー状態です')

        meeting.status = LPMeeting.STATUS_CANCELLED
        meeting.cancelled_at = timezone.now()
        meeting.notes = _append_note(meeting.notes, 'キャンセル理由', reason)
        meeting.save()

        member = meeting.member
        reason_text = f'理由: {reason}' if reason else ''
        create_notification(
            member,
            Notification.TYPE_LP_MEETING,
            'LP面談がキャンセルされました',
            message=f'LP面談がキャンセルされました。{reason_text}再度申請する場合は、LP面談申請ページからお申し込みください。',
            action_url='/dashboard/lp-meeting/request',
        )
        when = _format(meeting.scheduled_at)
        transaction.on_commit(
            lambda: email_service.send_lp_meeting_canceled(member.email, member.name, when, reason)
        )
        logger.info(f'LP meeting cancelled: meeting={meeting.id} by={admin.email}')
        return meeting
