"""
Events API.

Участник:
- GET  /api/events/ - список доступных мероприятий
- POST /api/events/{id}/register|unregister|cancel/
- POST /api/events/{id}/checkout|refund/ - платные мероприятия
- POST /api/events/{id}/mark-video-watched|mark-survey-completed|submit-attendance-code/

Администратор:
- /api/events/admin/events/ - CRUD, сеансы, участники, CSV
- PATCH /api/events/admin/registrations/{id}/
"""
import csv
import logging

from django.db.models import Count
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin
from accounts.roles import ROLE_ADMIN
from accounts.stripe_service import StripeServiceError

from .models import Event, EventRegistration, EventSchedule
from .price_service import EventPriceService
from .serializers import (
    AdminEventSerializer,
    AdminRegistrationUpdateSerializer,
    AttendanceCodeSerializer,
    EventScheduleSerializer,
    EventSerializer,
    MyRegistrationSerializer,
    ParticipantSerializer,
    RegisterEventSerializer,
)
from .services import (
    AttendanceService,
    EventPaymentError,
    EventPaymentService,
    EventRegistrationService,
    EventServiceError,
    RegistrationNotFoundError,
)

logger = logging.getLogger(__name__)

EVENT_LIST_LIMIT = 100


def _error_response(error):
    if isinstance(error, RegistrationNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, EventPaymentError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({'detail': str(error)}, status=code)


def _visible_events(user):
    qs = Event.objects.prefetch_related('schedules').order_by('date')
    if user.role == ROLE_ADMIN or user.is_superuser:
        return qs
    # JSONField __contains по списку не поддерживается на SQLite
    return [event for event in qs if event.is_visible_to(user)]


class EventViewSet(viewsets.GenericViewSet):
    lookup_value_regex = r'\d+'
    permission_classes = [IsAuthenticated]
    serializer_class = EventSerializer

    def get_queryset(self):
        return Event.objects.all()

    def list(self, request):
        events = list(_visible_events(request.user))[:EVENT_LIST_LIMIT]
        event_ids = [event.id for event in events]
        registrations = {
            r.event_id: r
            for r in EventRegistration.objects.filter(user=request.user, event_id__in=event_ids)
        }
        counts = dict(
            EventRegistration.objects.filter(event_id__in=event_ids)
            .values('event_id')
            .annotate(total=Count('id'))
            .values_list('event_id', 'total')
        )
        serializer = EventSerializer(
            events,
            many=True,
            context={'request': request, 'registrations': registrations, 'counts': counts},
        )
        return Response({'events': serializer.data})

    def _load(self, pk):
        event = Event.objects.filter(pk=pk).first()
        # Недоступное по роли мероприятие отвечает так же, как несуществующее
        if event is None or not event.is_visible_to(self.request.user):
            return None, Response({'detail': 'イベントが見つかりません'}, status=status.HTTP_404_NOT_FOUND)
        return event, None

    @action(detail=True, methods=['post'])
    def register(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        serializer = RegisterEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            registration, created = EventRegistrationService.register(
                request.user, event, serializer.validated_data.get('schedule_id')
            )
        except EventServiceError as e:
            return _error_response(e)

        message = 'イベントに参加登録しました' if created else '既に参加登録済みです'
        return Response({
            'message': message,
            'registration': MyRegistrationSerializer(registration).data,
            'current_participants': event.participants_count(),
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=True, methods=['post'])
    def unregister(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        try:
            removed = EventRegistrationService.unregister(request.user, event)
        except EventServiceError as e:
            return _error_response(e)
        return Response({
            'message': '参加登録を取り消しました' if removed else '参加登録されていません',
            'current_participants': event.participants_count(),
        })

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        try:
            EventRegistrationService.cancel(request.user, event)
        except EventServiceError as e:
            return _error_response(e)
        return Response({'message': '参加をキャンセルしました'})

    @action(detail=True, methods=['post'])
    def checkout(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        try:
            session = EventPaymentService.create_checkout(request.user, event)
        except EventServiceError as e:
            return _error_response(e)
        return Response({'session_id': session.id, 'url': session.url})

    @action(detail=True, methods=['post'])
    def refund(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        try:
            refund = EventPaymentService.refund(request.user, event)
        except EventServiceError as e:
            return _error_response(e)
        return Response({'message': '返金処理を受け付けました', 'refund_id': refund.id})

    @action(detail=True, methods=['post'], url_path='mark-video-watched')
    def mark_video_watched(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        try:
            registration = AttendanceService.mark_video_watched(request.user, event)
        except EventServiceError as e:
            return _error_response(e)
        return Response({'registration': MyRegistrationSerializer(registration).data})

    @action(detail=True, methods=['post'], url_path='mark-survey-completed')
    def mark_survey_completed(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        try:
            registration = AttendanceService.mark_survey_completed(request.user, event)
        except EventServiceError as e:
            return _error_response(e)
        return Response({'registration': MyRegistrationSerializer(registration).data})

    @action(detail=True, methods=['post'], url_path='submit-attendance-code')
    def submit_attendance_code(self, request, pk=None):
        event, error = self._load(pk)
        if error:
            return error
        serializer = AttendanceCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            registration, already = AttendanceService.submit_attendance_code(
                request.user, event, serializer.validated_data['code']
            )
        except EventServiceError as e:
            return _error_response(e)
        return Response({
            'message': '既に出席登録済みです' if already else '出席を登録しました',
            'registration': MyRegistrationSerializer(registration).data,
        })


class AdminEventViewSet(viewsets.ModelViewSet):
    """
    CRUD мероприятий. Цена платного мероприятия синхронизируется со Stripe
    через EventPriceService после сохранения.
    """
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = AdminEventSerializer
    queryset = Event.objects.prefetch_related('schedules').order_by('-date')

    def _sync_price(self, event, previous_price):
        try:
            EventPriceService.sync(event, previous_price=previous_price)
        except StripeServiceError as e:
            return Response(
                {'detail': f'Stripe価格の同期に失敗しました: {e}', 'event': AdminEventSerializer(event).data},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return None

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = serializer.save()
        error = self._sync_price(event, previous_price=None)
        if error:
            return error
        logger.info(f'Admin {request.user.email} created event {event.id}')
        return Response(AdminEventSerializer(event).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        event = self.get_object()
        previous_price = event.price if event.is_paid else None
        serializer = self.get_serializer(event, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        event = serializer.save()
        error = self._sync_price(event, previous_price=previous_price)
        if error:
            return error
        return Response(AdminEventSerializer(event).data)

    def perform_destroy(self, instance):
        if instance.stripe_price_id:
            instance.is_paid = False
            try:
                EventPriceService.sync(instance)
            except StripeServiceError as e:
                logger.warning(f'Failed to archive price of deleted event {instance.id}: {e}')
        instance.delete()

    @action(detail=True, methods=['post'])
    def schedules(self, request, pk=None):
        event = self.get_object()
        serializer = EventScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(event=event)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete'], url_path=r'schedules/(?P<schedule_id>\d+)')
    def delete_schedule(self, request, pk=None, schedule_id=None):
        event = self.get_object()
        schedule = get_object_or_404(EventSchedule, pk=schedule_id, event=event)
        schedule.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _participants(self, event):
        return event.registrations.select_related('user').order_by('created_at')

    @action(detail=True, methods=['get'])
    def participants(self, request, pk=None):
        event = self.get_object()
        registrations = self._participants(event)
        return Response({
            'event_id': event.id,
            'total': registrations.count(),
            'participants': ParticipantSerializer(registrations, many=True).data,
        })

    @action(detail=True, methods=['get'], url_path='participants/export')
    def export_participants(self, request, pk=None):
        event = self.get_object()
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="event_{event.id}_participants.csv"'
        response.write('\ufeff')

        writer = csv.writer(response)
        writer.writerow([
            '会員番号', '氏名', 'メールアドレス', 'ロール', '支払い状況',
            '録画視聴', 'アンケート', '出席方法', '出席完了日時', '期限超過', '最終判定',
        ])
        for registration in self._participants(event):
            user = registration.user
            completed_at = registration.attendance_completed_at
            writer.writerow([
                user.member_id or '',
                user.name,
                user.email,
                user.role,
                registration.payment_status,
                'はい' if registration.video_watched else 'いいえ',
                'はい' if registration.survey_completed else 'いいえ',
                registration.attendance_method,
                timezone.localtime(completed_at).strftime('%Y-%m-%d %H:%M') if completed_at else '',
                'はい' if registration.is_overdue else 'いいえ',
                registration.final_approval or '',
            ])
        return response


class AdminRegistrationUpdateView(APIView):
    """PATCH /api/events/admin/registrations/{id}/"""
    permission_classes = [IsAuthenticated, IsAdmin]

    def patch(self, request, pk):
        registration = get_object_or_404(EventRegistration.objects.select_related('user', 'event'), pk=pk)
        serializer = AdminRegistrationUpdateSerializer(registration, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        registration = serializer.save()

        if registration.video_watched and registration.survey_completed and not registration.attendance_completed_at:
            registration.attendance_method = EventRegistration.ATTENDANCE_VIDEO_SURVEY
            registration.attendance_completed_at = timezone.now()
            registration.save(update_fields=['attendance_method', 'attendance_completed_at'])

        logger.info(f'Admin {request.user.email} updated registration {registration.id}: {request.data}')
        return Response(ParticipantSerializer(registration).data)
