from rest_framework import serializers

from .models import FPPromotionApplication, LPMeeting, ManagerAssessment, PromotionApplication


class FPChecklistSerializer(serializers.ModelSerializer):
    checklist_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = FPPromotionApplication
        fields = [
            'id',
            'lp_meeting_completed',
            'survey_completed',
            'checklist_completed',
            'status',
            'applied_at',
            'approved_at',
        ]
        read_only_fields = fields


class PromotionApplicationSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)
    member_id = serializers.CharField(source='user.member_id', read_only=True, default=None)
    current_role = serializers.CharField(source='user.role', read_only=True)
    reviewed_by_email = serializers.EmailField(source='reviewed_by.email', read_only=True, default=None)

    class Meta:
        model = PromotionApplication
        fields = [
            'id',
            'user_id',
            'user_name',
            'user_email',
            'member_id',
            'current_role',
            'target_role',
            'status',
            'reviewed_at',
            'reviewed_by_email',
            'review_notes',
            'created_at',
        ]
        read_only_fields = fields


class ApplySerializer(serializers.Serializer):
    # Проверка роли - в PromotionService.apply
    target_role = serializers.CharField()


class ReviewSerializer(serializers.Serializer):
    review_notes = serializers.CharField(required=False, allow_blank=True, default='')


class UserBriefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    email = serializers.EmailField()


class LPMeetingSerializer(serializers.ModelSerializer):
    member = UserBriefSerializer(read_only=True)
    fp = UserBriefSerializer(read_only=True)

    class Meta:
        model = LPMeeting
        fields = [
            'id',
            'member',
            'fp',
            'status',
            'preferred_dates',
            'meeting_location',
            'member_notes',
            'scheduled_at',
            'meeting_url',
            'meeting_platform',
            'notes',
            'completed_at',
            'cancelled_at',
            'assigned_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class LPMeetingRequestSerializer(serializers.Serializer):
    # Количество и будущие даты проверяет LPMeetingService.request
    preferred_dates = serializers.ListField(child=serializers.DateTimeField(), allow_empty=False)
    meeting_location = serializers.CharField()
    member_notes = serializers.CharField(required=False, allow_blank=True, default='')


class LPMeetingScheduleSerializer(serializers.Serializer):
    scheduled_at = serializers.DateTimeField()
    fp_id = serializers.IntegerField()
    meeting_url = serializers.URLField(max_length=500)
    meeting_platform = serializers.CharField()


class LPMeetingNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class LPMeetingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ManagerAssessmentSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)
    member_id = serializers.CharField(source='user.member_id', read_only=True, default=None)
    current_role = serializers.CharField(source='user.role', read_only=True)
    confirmed_by_email = serializers.EmailField(source='confirmed_by.email', read_only=True, default=None)

    class Meta:
        model = ManagerAssessment
        fields = [
            'id',
            'user_id',
            'user_name',
            'user_email',
            'member_id',
            'current_role',
            'period_year',
            'period_half',
            'total_sales',
            'contract_count',
            'is_demotion_candidate',
            'status',
            'confirmed_by_email',
            'confirmed_at',
            'created_at',
        ]
        read_only_fields = fields


class AssessmentRunSerializer(serializers.Serializer):
    # Без параметров - текущее полугодие
    year = serializers.IntegerField(required=False, min_value=2000, max_value=2100)
    half = serializers.ChoiceField(choices=ManagerAssessment.HALF_CHOICES, required=False)

    def validate(self, attrs):
        if ('year' in attrs) != ('half' in attrs):
            raise serializers.ValidationError('yearとhalfは両方指定してください')
        return attrs
