from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import exceptions, serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Subscription, Notification
from .roles import ROLE_CHOICES, MEMBERSHIP_STATUS_CHOICES, normalize_role

User = get_user_model()


class RoleField(serializers.ChoiceField):
    """Принимает роль в любом регистре ('FP', 'fp')."""

    def __init__(self, **kwargs):
        super().__init__(choices=ROLE_CHOICES, **kwargs)

    def to_internal_value(self, data):
        try:
            return normalize_role(str(data))
        except ValueError:
            self.fail('invalid_choice', input=data)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT с ролью и статусом членства; email без учёта регистра."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)

        # Роль берем ТОЛЬКО из БД
        token['role'] = user.role
        token['email'] = user.email
        token['member_id'] = user.member_id or ''
        token['membership_status'] = user.membership_status
        return token

    def validate(self, attrs):
        email = (attrs.get(self.username_field) or '').strip()
        password = attrs.get('password') or ''

        user = User.objects.filter(email__iexact=email).first()
        if user is None or not user.check_password(password):
            raise exceptions.AuthenticationFailed('メールアドレスまたはパスワードが正しくありません')
        if not user.is_active:
            raise exceptions.AuthenticationFailed('アカウントが無効化されています')

        refresh = self.get_token(user)
        return {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        }


class UserProfileSerializer(serializers.ModelSerializer):
    """Сериализатор для профиля текущего пользователя"""

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'name',
            'phone_number',
            'role',
            'member_id',
            'referral_code',
            'membership_status',
            'membership_status_changed_at',
            'suspension_end_date',
            'created_at',
        ]
        read_only_fields = [
            'email', 'role', 'member_id', 'referral_code', 'membership_status',
            'membership_status_changed_at', 'suspension_end_date', 'created_at',
        ]
        extra_kwargs = {
            'name': {'required': False},
            'phone_number': {'allow_blank': True, 'required': False},
        }


class AdminUserSerializer(serializers.ModelSerializer):
    """Полная карточка пользователя для админки."""

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'name',
            'phone_number',
            'role',
            'member_id',
            'referral_code',
            'membership_status',
            'membership_status_changed_at',
            'membership_status_reason',
            'delinquent_since',
            'canceled_at',
            'cancellation_reason',
            'suspension_start_date',
            'suspension_end_date',
            'is_active',
            'created_at',
        ]
        read_only_fields = fields


class AdminUserUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, required=False)
    role = RoleField(required=False)
    membership_status = serializers.ChoiceField(choices=MEMBERSHIP_STATUS_CHOICES, required=False)
    membership_status_reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)


class BulkMembershipStatusSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    membership_status = serializers.ChoiceField(choices=MEMBERSHIP_STATUS_CHOICES)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True, min_length=8)
    referral_code = serializers.CharField(max_length=8, required=False, allow_blank=True, default='')

    def validate_password(self, value):
        validate_password(value)
        return value


class VerifyEmailSerializer(serializers.Serializer):
    token = serializers.CharField()


class EmailSerializer(serializers.Serializer):
    email = serializers.EmailField()


class CheckoutSessionSerializer(serializers.Serializer):
    email = serializers.EmailField()
    promotion_code = serializers.CharField(required=False, allow_blank=True)


class PromoCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField()
    new_password = serializers.CharField(min_length=8)

    def validate_new_password(self, value):
        validate_password(value, user=self.context.get('user'))
        return value


class CancellationSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    immediate = serializers.BooleanField(required=False, default=False)


class SuspensionSerializer(serializers.Serializer):
    suspension_end_date = serializers.DateTimeField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class SubscriptionSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)

    class Meta:
        model = Subscription
        fields = [
            'id',
            'user',
            'user_email',
            'user_name',
            'stripe_customer_id',
            'stripe_subscription_id',
            'status',
            'current_period_end',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id',
            'notification_type',
            'priority',
            'title',
            'message',
            'action_url',
            'is_read',
            'read_at',
            'created_at',
        ]
        read_only_fields = fields

