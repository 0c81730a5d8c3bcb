"""
Finance API views.

Endpoints:
- /api/finance/referrals/ - мои рефералы (+ register, approve/reject для админа)
- /api/finance/compensations/ - мои вознаграждения (fp и выше)
- /api/finance/contracts/ - мои договоры
- /api/finance/admin/compensations/ - управление вознаграждениями, генерация, CSV
- /api/finance/admin/contracts/upload/{preview,confirm}/ - импорт договоров из CSV
"""
import logging

from django.db.models import Sum
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsFPOrAbove
from ugs_panel.csv_utils import CsvUploadError, read_csv_upload

from . import csv_import
from .calculator import CONTRACT_ACHIEVEMENT_TARGET, CompensationCalculator
from .models import Compensation, Contract, Referral
from .serializers import (
    CompensationSerializer,
    CompensationStatusSerializer,
    CompensationsConfirmSerializer,
    ContractSerializer,
    ContractsConfirmSerializer,
    GenerateCompensationSerializer,
    ReferralRegisterSerializer,
    ReferralSerializer,
)
from .services import (
    CompensationService,
    DuplicateReferralError,
    FinanceServiceError,
    ReferralNotFoundError,
    ReferralService,
)

logger = logging.getLogger(__name__)


def _service_error_response(error):
    if isinstance(error, ReferralNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, DuplicateReferralError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({'detail': str(error)}, status=code)


class ReferralViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    GET  /api/finance/referrals/ - мои рефералы с итогами
    POST /api/finance/referrals/register/ - регистрация по реферальному коду
    POST /api/finance/referrals/{id}/approve/ - одобрение (админ)
    POST /api/finance/referrals/{id}/reject/ - отклонение (админ)
    """
    serializer_class = ReferralSerializer
    pagination_class = None

    def get_permissions(self):
        if self.action in ('approve', 'reject'):
            return [IsAuthenticated(), IsAdmin()]
        return [IsAuthenticated()]

    def get_queryset(self):
        qs = Referral.objects.select_related('referrer', 'referred')
        if self.action in ('approve', 'reject'):
            return qs
        qs = qs.filter(referrer=self.request.user)
        referral_type = self.request.query_params.get('type')
        if referral_type:
            qs = qs.filter(referral_type=referral_type.lower())
        return qs

    def list(self, request, *args, **kwargs):
        qs = self.get_queryset()
        approved = qs.filter(status=Referral.STATUS_APPROVED)
        return Response({
            'referrals': self.get_serializer(qs, many=True).data,
            'totals': {
                'count': qs.count(),
                'approved': approved.count(),
                'pending': qs.filter(status=Referral.STATUS_PENDING).count(),
                'member': qs.filter(referral_type=Referral.TYPE_MEMBER).count(),
                'fp': qs.filter(referral_type=Referral.TYPE_FP).count(),
                'total_reward': approved.aggregate(total=Sum('reward_amount'))['total'] or 0,
            },
        })

    @action(detail=False, methods=['post'])
    def register(self, request):
        serializer = ReferralRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            referral = ReferralService.register(
                serializer.validated_data['referral_code'],
                serializer.validated_data['referred_user_id'],
            )
        except FinanceServiceError as e:
            return _service_error_response(e)
        return Response(ReferralSerializer(referral).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        referral = self.get_object()
        try:
            referral = ReferralService.approve(referral)
        except FinanceServiceError as e:
            return _service_error_response(e)
        return Response(ReferralSerializer(referral).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        referral = self.get_object()
        try:
            referral = ReferralService.reject(referral)
        except FinanceServiceError as e:
            return _service_error_response(e)
        return Response(ReferralSerializer(referral).data)


class MyCompensationsView(APIView):
    """GET /api/finance/compensations/?month=2024-10"""
    permission_classes = [IsAuthenticated, IsFPOrAbove]

    def get(self, request):
        summary = CompensationService.summary_for_user(request.user, request.query_params.get('month'))

        def _one(obj):
            return CompensationSerializer(obj).data if obj else None

        return Response({
            'compensations': CompensationSerializer(summary['compensations'], many=True).data,
            'stats': {
                'total': summary['total'],
                'total_by_role': summary['total_by_role'],
                'current_month': _one(summary['current_month']),
                'last_month': _one(summary['last_month']),
                'recent_average': summary['recent_average'],
            },
        })


class MyContractsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        contracts = Contract.objects.filter(user=request.user)
        active_insurance = CompensationCalculator.count_active_insurance_contracts(request.user)
        return Response({
            'contracts': ContractSerializer(contracts, many=True).data,
            'active_insurance_count': active_insurance,
            'target': CONTRACT_ACHIEVEMENT_TARGET,
            'achieved': active_insurance >= CONTRACT_ACHIEVEMENT_TARGET,
        })


class AdminCompensationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    GET   /api/finance/admin/compensations/?month=&status=&user_id=
    POST  /api/finance/admin/compensations/generate/
    PATCH /api/finance/admin/compensations/{id}/status/
    POST  /api/finance/admin/compensations/upload/preview/
    POST  /api/finance/admin/compensations/upload/confirm/
    """
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = CompensationSerializer

    def get_queryset(self):
        qs = Compensation.objects.select_related('user').order_by('-month', 'user_id')
        params = self.request.query_params
        if params.get('month'):
            qs = qs.filter(month=params['month'])
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        user_id = params.get('user_id')
        if user_id:
            if not user_id.isdigit():
                raise ValidationError({'user_id': 'user_idは数値で指定してください'})
            qs = qs.filter(user_id=int(user_id))
        return qs

    @action(detail=False, methods=['post'])
    def generate(self, request):
        serializer = GenerateCompensationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = CompensationService.generate(
                serializer.validated_data['month'],
                serializer.validated_data.get('user_ids') or None,
            )
        except FinanceServiceError as e:
            return _service_error_response(e)
        return Response(result)

    @action(detail=True, methods=['patch'], url_path='status')
    def set_status(self, request, pk=None):
        compensation = self.get_object()
        serializer = CompensationStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            compensation = CompensationService.update_status(compensation, serializer.validated_data['status'])
        except FinanceServiceError as e:
            return _service_error_response(e)
        return Response(CompensationSerializer(compensation).data)

    @action(detail=False, methods=['post'], url_path='upload/preview')
    def upload_preview(self, request):
        try:
            rows = read_csv_upload(request.FILES.get('file'), csv_import.COMPENSATION_COLUMNS)
        except CsvUploadError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(csv_import.preview_compensations(rows))

    @action(detail=False, methods=['post'], url_path='upload/confirm')
    def upload_confirm(self, request):
        serializer = CompensationsConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = csv_import.confirm_compensations(serializer.validated_data['compensations'])
        logger.info(f'Admin {request.user.email} imported compensation details: {result["added"]}/{result["updated"]}')
        return Response(result)


class AdminContractsPreviewView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request):
        try:
            rows = read_csv_upload(request.FILES.get('file'), csv_import.CONTRACT_COLUMNS)
        except CsvUploadError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(csv_import.preview_contracts(rows))


class AdminContractsConfirmView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = ContractsConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = csv_import.confirm_contracts(serializer.validated_data['contracts'])
        logger.info(f'Admin {request.user.email} imported contracts: {result["added"]}/{result["updated"]}')
        return Response(result)
