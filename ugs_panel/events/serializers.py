from rest_framework import serializers

from .models import Event, EventRegistration, EventSchedule


class EventScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = EventSchedule
        fields = ['id', 'date', 'start_time', 'end_time', 'location', 'online_url']


class MyRegistrationSerializer(serializers.ModelSerializer):
    attendance_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = EventRegistration
        fields = [
            'id',
            'schedule',
            'payment_status',
            'paid_amount',
            'paid_at',
            'video_watched',
            'survey_completed',
            'attendance_method',
            'attendance_completed',
            'attendance_completed_at',
            'is_overdue',
            'final_approval',
        ]
        read_only_fields = fields


class EventSerializer(serializers.ModelSerializer):
    """
    Мероприятие для участника.

    Ожидает в context словарь ``registrations`` {event_id: EventRegistration}
    и ``counts`` {event_id: int}, чтобы не делать запрос на каждую строку.
    """
    schedules = EventScheduleSerializer(many=True, read_only=True)
    current_participants = serializers.SerializerMethodField()
    is_registered = serializers.SerializerMethodField()
    registration = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            'id',
            'title',
            'description',
            'date',
            'time',
            'event_type',
            'target_roles',
            'venue_type',
            'location',
            'online_url',
            'max_participants',
            'status',
            'is_paid',
            'price',
            'vimeo_url',
            'survey_url',
            'attendance_deadline',
            'is_recurring',
            'schedules',
            'current_participants',
            'is_registered',
            'registration',
        ]
        read_only_fields = fields

    def _registration(self, obj):
        return self.context.get('registrations', {}).get(obj.id)

    def get_current_participants(self, obj):
        counts = self.context.get('counts')
        if counts is not None:
            return counts.get(obj.id, 0)
        return obj.participants_count()

    def get_is_registered(self, obj):
        return self._registration(obj) is not None

    def get_registration(self, obj):
        registration = self._registration(obj)
        return MyRegistrationSerializer(registration).data if registration else None


class RegisterEventSerializer(serializers.Serializer):
    schedule_id = serializers.IntegerField(required=False, allow_null=True)


class AttendanceCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)


class AdminEventSerializer(serializers.ModelSerializer):
    schedules = EventScheduleSerializer(many=True, required=False)
    current_participants = serializers.IntegerField(source='participants_count', read_only=True)

    class Meta:
        model = Event
        fields = [
            'id',
            'title',
            'description',
            'date',
            'time',
            'event_type',
            'target_roles',
            'venue_type',
            'location',
            'online_url',
            'max_participants',
            'status',
            'is_paid',
            'price',
            'stripe_product_id',
            'stripe_price_id',
            'attendance_code',
            'vimeo_url',
            'survey_url',
            'attendance_deadline',
            'is_recurring',
            'recurrence_pattern',
            'schedules',
            'current_participants',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['stripe_product_id', 'stripe_price_id', 'created_at', 'updated_at']

    def validate_target_roles(self, value):
        invalid = [role for role in value if role not in Event.TARGET_ROLE_CHOICES]
        if invalid:
            raise serializers.ValidationError(f'無効な対象ロール: {", ".join(map(str, invalid))}')
        return value

    def validate(self, attrs):
        is_paid = attrs.get('is_paid', getattr(self.instance, 'is_paid', False))
        price = attrs.get('price', getattr(self.instance, 'price', None))
        if is_paid and not price:
            raise serializers.ValidationError({'price': '有料イベントには価格を設定してください'})
        return attrs

    def create(self, validated_data):
        schedules = validated_data.pop('schedules', [])
        event = Event.objects.create(**validated_data)
        for schedule in schedules:
            EventSchedule.objects.create(event=event, **schedule)
        return event

    def update(self, instance, validated_data):
        # Сеансы меняются через отдельные эндпоинты
        validated_data.pop('schedules', None)
        return super().update(instance, validated_data)


class ParticipantSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    member_id = serializers.CharField(source='user.member_id', read_only=True, default=None)
    name = serializers.CharField(source='user.name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    role = serializers.CharField(source='user.role', read_only=True)
    attendance_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = EventRegistration
        fields = [
            'id',
            'user_id',
            'member_id',
            'name',
            'email',
            'role',
            'schedule',
            'payment_status',
            'paid_amount',
            'video_watched',
            'survey_completed',
            'attendance_method',
            'attendance_completed',
            'attendance_completed_at',
            'is_overdue',
            'final_approval',
            'created_at',
        ]
        read_only_fields = fields


class AdminRegistrationUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = EventRegistration
        fields = ['final_approval', 'video_watched', 'survey_completed', 'is_overdue']
