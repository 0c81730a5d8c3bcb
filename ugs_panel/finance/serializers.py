"""
DRF serializers for finance API.
"""
from rest_framework import serializers

from .calculator import is_valid_month
from .models import Compensation, Contract, Referral


class ContractSerializer(serializers.ModelSerializer):
    """Сериализатор договора (только чтение)."""

    contract_type_display = serializers.CharField(source='get_contract_type_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Contract
        fields = [
            'id',
            'user',
            'contract_number',
            'product_name',
            'contract_type',
            'contract_type_display',
            'status',
            'status_display',
            'signed_at',
            'amount',
            'reward_amount',
            'created_at',
        ]
        read_only_fields = fields


class ReferredUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    email = serializers.EmailField()
    role = serializers.CharField()
    created_at = serializers.DateTimeField()


class ReferralSerializer(serializers.ModelSerializer):
    referred = ReferredUserSerializer(read_only=True)
    referrer_email = serializers.EmailField(source='referrer.email', read_only=True)

    class Meta:
        model = Referral
        fields = [
            'id',
            'referrer',
            'referrer_email',
            'referred',
            'referral_type',
            'status',
            'reward_amount',
            'approved_at',
            'created_at',
        ]
        read_only_fields = fields


class ReferralRegisterSerializer(serializers.Serializer):
    referral_code = serializers.CharField(max_length=8)
    referred_user_id = serializers.IntegerField()


class CompensationSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)
    member_id = serializers.CharField(source='user.member_id', read_only=True, default=None)

    class Meta:
        model = Compensation
        fields = [
            'id',
            'user',
            'user_email',
            'user_name',
            'member_id',
            'month',
            'amount',
            'breakdown',
            'earned_as_role',
            'status',
            'gross_amount',
            'withholding_tax',
            'transfer_fee',
            'net_amount',
            'paid_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class GenerateCompensationSerializer(serializers.Serializer):
    month = serializers.CharField()
    user_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)

    def validate_month(self, value):
        if not is_valid_month(value):
            raise serializers.ValidationError('無効な月形式です。YYYY-MM形式で指定してください')
        return value


class CompensationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Compensation.STATUS_CHOICES)


class ContractsConfirmSerializer(serializers.Serializer):
    """Строки договоров из preview, подтверждённые админом."""
    contracts = serializers.ListField(child=serializers.DictField(), allow_empty=False)


class CompensationsConfirmSerializer(serializers.Serializer):
    compensations = serializers.ListField(child=serializers.DictField(), allow_empty=False)
