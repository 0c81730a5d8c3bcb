"""
Администрирование пользователей: список, карточка, массовые операции, CSV.
"""
import csv
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ugs_panel.csv_utils import CsvUploadError, read_csv_upload

from .member_ids import assign_member_id, generate_referral_code
from .permissions import IsAdmin
from .roles import MEMBERSHIP_ACTIVE, normalize_role
from .serializers import AdminUserSerializer, AdminUserUpdateSerializer, BulkMembershipStatusSerializer

User = get_user_model()
logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['member_id', 'email', 'name', 'role', 'membership_status', 'created_at']
BULK_CREATE_COLUMNS = ('email', 'name', 'role')


def _truthy(value):
    return str(value).lower() in ('1', 'true', 'yes', 'on')


class AdminUserListView(ListAPIView):
    """GET /api/auth/admin/users/?role=fp&membership_status=active&search=..."""
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = AdminUserSerializer

    def get_queryset(self):
        qs = User.objects.all().order_by('-created_at')
        params = self.request.query_params

        role = params.get('role')
        if role:
            try:
                qs = qs.filter(role=normalize_role(role))
            except ValueError:
                return qs.none()

        membership_status = params.get('membership_status')
        if membership_status:
            qs = qs.filter(membership_status=membership_status)

        search = (params.get('search') or '').strip()
        if search:
            qs = qs.filter(
                Q(email__icontains=search) | Q(name__icontains=search) | Q(member_id__icontains=search)
            )
        return qs


class AdminUserDetailView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        return Response(AdminUserSerializer(user).data)

    def patch(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        serializer = AdminUserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if 'name' in data:
            user.name = data['name']
        if 'role' in data and data['role'] != user.role:
            logger.info(f'Admin {request.user.email} changed role of {user.email}: {user.role} -> {data["role"]}')
            user.role = data['role']
        if 'is_active' in data:
            user.is_active = data['is_active']
        if 'membership_status' in data and data['membership_status'] != user.membership_status:
            user.set_membership_status(
                data['membership_status'],
                data.get('membership_status_reason') or '管理者による変更',
                save=False,
            )
        user.save()
        return Response(AdminUserSerializer(user).data)


class AdminBulkMembershipStatusView(APIView):
    """POST {"user_ids": [1, 2], "membership_status": "suspended", "reason": "..."}"""
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = BulkMembershipStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        now = timezone.now()
        updated = User.objects.filter(id__in=data['user_ids']).update(
            membership_status=data['membership_status'],
            membership_status_changed_at=now,
            membership_status_reason=data['reason'] or '管理者による一括変更',
            updated_at=now,
        )
        logger.info(f'Admin {request.user.email} bulk-updated {updated} users to {data["membership_status"]}')
        return Response({'updated': updated})


class AdminUsersExportView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        filename = f'users_{timezone.localdate().strftime("%Y%m%d")}.csv'
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        # BOM для Excel
        response.write('\ufeff')

        writer = csv.writer(response)
        writer.writerow(EXPORT_COLUMNS)
        for user in User.objects.all().order_by('member_id', 'id').iterator():
            writer.writerow([
                user.member_id or '',
                user.email,
                user.name,
                user.role,
                user.membership_status,
                timezone.localtime(user.created_at).strftime('%Y-%m-%d %H:%M'),
            ])
        return response


class AdminUsersBulkCreateView(APIView):
    """
    POST /api/auth/admin/users/bulk-create/  (multipart: file, dry_run)

    CSV: email,name,role. При dry_run=true ничего не создаётся, только проверка.
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request):
        dry_run = _truthy(request.data.get('dry_run', False))
        try:
            rows = read_csv_upload(request.FILES.get('file'), BULK_CREATE_COLUMNS)
        except CsvUploadError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        valid, errors, skipped = self._validate_rows(rows)

        created = []
        if not dry_run:
            with transaction.atomic():
                for row_number, email, name, role in valid:
                    user = User(email=email, name=name, role=role, referral_code=generate_referral_code())
                    user.set_unusable_password()
                    user.set_membership_status(MEMBERSHIP_ACTIVE, 'CSV一括登録', save=False)
                    user.save()
                    assign_member_id(user)
                    created.append({'row': row_number, 'email': email, 'member_id': user.member_id})
            logger.info(f'Admin {request.user.email} bulk-created {len(created)} users')
        else:
            created = [{'row': row_number, 'email': email, 'member_id': None} for row_number, email, _, _ in valid]

        return Response({
            'dry_run': dry_run,
            'created': created,
            'skipped': skipped,
            'errors': errors,
        })

    @staticmethod
    def _validate_rows(rows):
        valid, errors, skipped = [], [], []
        seen = set()
        existing = set(
            User.objects.filter(email__in=[row.get('email', '').lower() for _, row in rows])
            .values_list('email', flat=True)
        )
        existing = {email.lower() for email in existing}

        for row_number, row in rows:
            email = row.get('email', '').lower()
            name = row.get('name', '')
            try:
                validate_email(email)
            except ValidationError:
                errors.append({'row': row_number, 'email': email, 'error': 'メールアドレスの形式が正しくありません'})
                continue
            if not name:
                errors.append({'row': row_number, 'email': email, 'error': '名前が入力されていません'})
                continue
            try:
                role = normalize_role(row.get('role') or 'member')
            except ValueError:
                errors.append({'row': row_number, 'email': email, 'error': f'無効なロールです: {row.get("role")}'})
                continue
            if email in seen:
                skipped.append({'row': row_number, 'email': email, 'reason': 'ファイル内で重複しています'})
                continue
            if email in existing:
                skipped.append({'row': row_number, 'email': email, 'reason': '既に登録されています'})
                continue
            seen.add(email)
            valid.append((row_number, email, name, role))
        return valid, errors, skipped
