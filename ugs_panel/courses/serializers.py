"""
Сериализаторы курсов.

Для участника прогресс передаётся через context:
``completed_lesson_ids`` - множество id пройденных уроков.
"""
from rest_framework import serializers

from .models import Course, CourseProgress, Lesson


def calculate_progress(completed, total):
    if not total:
        return 0
    return round(completed / total * 100)


class LessonSerializer(serializers.ModelSerializer):
    is_completed = serializers.SerializerMethodField()

    class Meta:
        model = Lesson
        fields = ['id', 'title', 'description', 'video_url', 'duration', 'order', 'is_completed']

    def get_is_completed(self, obj):
        return obj.id in self.context.get('completed_lesson_ids', set())

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if self.context.get('locked'):
            data['video_url'] = None
        return data


class CourseSerializer(serializers.ModelSerializer):
    lessons = serializers.SerializerMethodField()
    is_locked = serializers.SerializerMethodField()
    progress = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'category', 'level', 'order', 'is_locked', 'progress', 'lessons']

    def _locked(self, obj):
        return obj.is_locked_for(self.context['request'].user)

    def get_is_locked(self, obj):
        return self._locked(obj)

    def get_lessons(self, obj):
        context = dict(self.context, locked=self._locked(obj))
        return LessonSerializer(obj.lessons.all(), many=True, context=context).data

    def get_progress(self, obj):
        completed_ids = self.context.get('completed_lesson_ids', set())
        lesson_ids = [lesson.id for lesson in obj.lessons.all()]
        completed = sum(1 for lesson_id in lesson_ids if lesson_id in completed_ids)
        return calculate_progress(completed, len(lesson_ids))


class CourseProgressSerializer(serializers.ModelSerializer):
    class Meta:
        model = CourseProgress
        fields = ['id', 'course', 'lesson', 'is_completed', 'completed_at', 'updated_at']
        read_only_fields = fields


class ProgressUpdateSerializer(serializers.Serializer):
    lesson_id = serializers.IntegerField()
    is_completed = serializers.BooleanField(default=True)


class AdminLessonSerializer(serializers.ModelSerializer):
    class Meta:
        model = Lesson
        fields = ['id', 'course', 'title', 'description', 'video_url', 'duration', 'order', 'created_at', 'updated_at']
        read_only_fields = ['course', 'created_at', 'updated_at']


class AdminCourseSerializer(serializers.ModelSerializer):
    lessons = AdminLessonSerializer(many=True, read_only=True)
    lesson_count = serializers.IntegerField(source='lessons.count', read_only=True)

    class Meta:
        model = Course
        fields = [
            'id',
            'title',
            'description',
            'category',
            'level',
            'is_locked',
            'is_published',
            'order',
            'lesson_count',
            'lessons',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']


class LessonReorderSerializer(serializers.Serializer):
    lesson_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)

    def validate_lesson_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError('レッスンIDが重複しています')
        return value
