"""
Promotions API.

Участник:
- GET  /api/promotions/eligibility/?target_role=manager
- POST /api/promotions/apply/
- GET  /api/promotions/applications/ - история своих заявок
- GET  /api/promotions/fp/, POST /api/promotions/fp/survey/, POST /api/promotions/fp/apply/
- GET|POST /api/promotions/lp-meetings/request/ - своя LP-встреча / заявка
- GET  /api/promotions/lp-meetings/my-scheduled/ - встречи fp-ведущего
- POST /api/promotions/lp-meetings/{id}/complete/

Администратор:
- POST /api/promotions/admin/fp/{user_id}/lp-meeting-complete/
- GET  /api/promotions/admin/applications/?status=
- POST /api/promotions/admin/applications/{id}/approve|reject/
- GET  /api/promotions/admin/lp-meetings/?status=&fp_id=&member_id=
- POST /api/promotions/admin/lp-meetings/{id}/schedule|complete|no-show|cancel/
- GET  /api/promotions/admin/manager-assessments/?year=&half=&status=
- POST /api/promotions/admin/manager-assessments/run/
- POST /api/promotions/admin/manager-assessments/{id}/confirm|demote/
"""
import logging

from django.contrib.auth import get_user_model
from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsFPOrAbove, IsMember

from .lp_meetings import LPMeetingService
from .models import LPMeeting, ManagerAssessment, PromotionApplication
from .serializers import (
    ApplySerializer,
    AssessmentRunSerializer,
    FPChecklistSerializer,
    LPMeetingCancelSerializer,
    LPMeetingNotesSerializer,
    LPMeetingRequestSerializer,
    LPMeetingScheduleSerializer,
    LPMeetingSerializer,
    ManagerAssessmentSerializer,
    PromotionApplicationSerializer,
    ReviewSerializer,
)
from .services import (
    PROMOTION_TARGET_ROLES,
    ConflictError,
    FPChecklistService,
    ForbiddenError,
    ManagerAssessmentService,
    NotFoundError,
    PromotionError,
    PromotionService,
    assessment_period,
    check_eligibility,
    current_assessment_period,
)

logger = logging.getLogger(__name__)

User = get_user_model()


def _error_response(error):
    if isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, ForbiddenError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({'detail': str(error), **error.payload}, status=code)


class EligibilityView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        target_role = (request.query_params.get('target_role') or 'manager').strip().lower()
        if target_role not in PROMOTION_TARGET_ROLES:
            return Response({'detail': '無効な昇格先ロールです'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(check_eligibility(request.user, target_role))


class ApplyView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target_role = serializer.validated_data['target_role'].strip().lower()
        try:
            application = PromotionService.apply(request.user, target_role)
        except PromotionError as e:
            return _error_response(e)
        return Response(PromotionApplicationSerializer(application).data, status=status.HTTP_201_CREATED)


class MyApplicationsView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PromotionApplicationSerializer
    pagination_class = None

    def get_queryset(self):
        return PromotionApplication.objects.filter(user=self.request.user).select_related('user', 'reviewed_by')


class FPChecklistView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        checklist = FPChecklistService.get_or_create(request.user)
        return Response(FPChecklistSerializer(checklist).data)


class FPSurveyView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        checklist = FPChecklistService.complete_survey(request.user)
        return Response(FPChecklistSerializer(checklist).data)


class FPApplyView(APIView):
    permission_classes = [IsAuthenticated, IsMember]

    def post(self, request):
        try:
            checklist = FPChecklistService.apply(request.user)
        except PromotionError as e:
            return _error_response(e)
        return Response({'success': True, 'application': FPChecklistSerializer(checklist).data})


class AdminLPMeetingCompleteView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, user_id):
        user = get_object_or_404(User, pk=user_id)
        checklist = FPChecklistService.complete_lp_meeting(user)
        logger.info(f'Admin {request.user.email} marked LP meeting for user {user.id}')
        return Response(FPChecklistSerializer(checklist).data)


class AdminApplicationListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = PromotionApplicationSerializer

    def get_queryset(self):
        qs = PromotionApplication.objects.select_related('user', 'reviewed_by')
        status_filter = self.request.query_params.get('status')
        if status_filter:
            qs = qs.filter(status=status_filter.lower())
        return qs


class AdminApplicationApproveView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            application = PromotionService.approve(pk, request.user, serializer.validated_data['review_notes'])
        except PromotionError as e:
            return _error_response(e)
        return Response(PromotionApplicationSerializer(application).data)


class AdminApplicationRejectView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            application = PromotionService.reject(pk, request.user, serializer.validated_data['review_notes'])
        except PromotionError as e:
            return _error_response(e)
        return Response(PromotionApplicationSerializer(application).data)


class LPMeetingRequestView(APIView):
    """Заявка участника на LP-встречу и её текущее состояние."""
    permission_classes = [IsAuthenticated, IsMember]

    def get(self, request):
        meeting = LPMeetingService.current_for(request.user)
        return Response({'meeting': LPMeetingSerializer(meeting).data if meeting else None})

    def post(self, request):
        serializer = LPMeetingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            meeting = LPMeetingService.request(
                request.user, data['preferred_dates'], data['meeting_location'], data['member_notes']
            )
        except PromotionError as e:
            return _error_response(e)
        return Response(LPMeetingSerializer(meeting).data, status=status.HTTP_201_CREATED)


class MyScheduledLPMeetingsView(generics.ListAPIView):
    """Встречи, назначенные текущему fp."""
    permission_classes = [IsAuthenticated, IsFPOrAbove]
    serializer_class = LPMeetingSerializer
    pagination_class = None

    def get_queryset(self):
        return (
            LPMeeting.objects.filter(
                fp=self.request.user,
                status__in=[LPMeeting.STATUS_SCHEDULED, LPMeeting.STATUS_COMPLETED],
            )
            .select_related('member', 'fp')
            .order_by('scheduled_at')
        )


class LPMeetingCompleteView(APIView):
    permission_classes = [IsAuthenticated, IsFPOrAbove]

    def post(self, request, pk):
        serializer = LPMeetingNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            meeting = LPMeetingService.complete(pk, request.user, serializer.validated_data['notes'])
        except PromotionError as e:
            return _error_response(e)
        return Response(LPMeetingSerializer(meeting).data)


class AdminLPMeetingListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = LPMeetingSerializer

    def get_queryset(self):
        qs = LPMeeting.objects.select_related('member', 'fp')
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'].lower())
        for param, field in (('fp_id', 'fp_id'), ('member_id', 'member_id')):
            value = params.get(param)
            if value:
                if not value.isdigit():
                    raise ValidationError({param: f'{param}は数値で指定してください'})
                qs = qs.filter(**{field: int(value)})
        return qs

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        response.data['statistics'] = LPMeetingService.statistics()
        return response


class AdminLPMeetingScheduleView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        serializer = LPMeetingScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            meeting = LPMeetingService.schedule(
                pk,
                request.user,
                scheduled_at=data['scheduled_at'],
                fp_id=data['fp_id'],
                meeting_url=data['meeting_url'],
                meeting_platform=data['meeting_platform'],
            )
        except PromotionError as e:
            return _error_response(e)
        return Response(LPMeetingSerializer(meeting).data)


class AdminLPMeetingCompleteByIdView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        serializer = LPMeetingNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            meeting = LPMeetingService.complete(pk, request.user, serializer.validated_data['notes'], as_admin=True)
        except PromotionError as e:
            return _error_response(e)
        return Response(LPMeetingSerializer(meeting).data)


class AdminLPMeetingNoShowView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        serializer = LPMeetingNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            meeting = LPMeetingService.mark_no_show(pk, request.user, serializer.validated_data['notes'])
        except PromotionError as e:
            return _error_response(e)
        return Response(LPMeetingSerializer(meeting).data)


class AdminLPMeetingCancelView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        serializer = LPMeetingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            meeting = LPMeetingService.cancel(pk, request.user, serializer.validated_data['reason'])
        except PromotionError as e:
            return _error_response(e)
        return Response(LPMeetingSerializer(meeting).data)


class AdminManagerAssessmentListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = ManagerAssessmentSerializer

    def _period_filter(self):
        period = {}
        for param, field in (('year', 'period_year'), ('half', 'period_half')):
            value = self.request.query_params.get(param)
            if value:
                if not value.isdigit():
                    raise ValidationError({param: f'{param}は数値で指定してください'})
                period[field] = int(value)
        return period

    def get_queryset(self):
        qs = ManagerAssessment.objects.select_related('user', 'confirmed_by').filter(**self._period_filter())
        status_filter = self.request.query_params.get('status')
        if status_filter:
            qs = qs.filter(status=status_filter.lower())
        return qs

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        counts = (
            ManagerAssessment.objects.filter(**self._period_filter())
            .order_by()
            .values_list('status')
            .annotate(total=Count('id'))
        )
        response.data['status_counts'] = dict(counts)
        return response


class AdminManagerAssessmentRunView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = AssessmentRunSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            if 'year' in data:
                period = assessment_period(data['year'], int(data['half']))
            else:
                period = current_assessment_period()
            result = ManagerAssessmentService.run(period)
        except PromotionError as e:
            return _error_response(e)
        logger.info(f'Admin {request.user.email} ran manager assessment {period["label"]}')
        return Response(result)


class AdminManagerAssessmentConfirmView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        try:
            assessment = ManagerAssessmentService.confirm(pk, request.user)
        except PromotionError as e:
            return _error_response(e)
        return Response(ManagerAssessmentSerializer(assessment).data)


class AdminManagerAssessmentDemoteView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request, pk):
        try:
            assessment = ManagerAssessmentService.demote(pk, request.user)
        except PromotionError as e:
            return _error_response(e)
        return Response(ManagerAssessmentSerializer(assessment).data)
