"""
Courses API.

- GET  /api/courses/ - опубликованные курсы с уроками и прогрессом
- GET  /api/courses/{id}/ - курс (403 для закрытого курса ниже FP)
- GET/POST /api/courses/progress/
- /api/courses/admin/courses/ - CRUD курсов, уроки, порядок уроков
- /api/courses/admin/lessons/{id}/ - изменение и удаление урока
"""
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin

from .models import Course, CourseProgress, Lesson
from .serializers import (
    AdminCourseSerializer,
    AdminLessonSerializer,
    CourseProgressSerializer,
    CourseSerializer,
    LessonReorderSerializer,
    ProgressUpdateSerializer,
)

logger = logging.getLogger(__name__)

LOCKED_MESSAGE = 'このコースはFPエイド以上のみ閲覧できます'


def _completed_lesson_ids(user):
    return set(
        CourseProgress.objects.filter(user=user, is_completed=True).values_list('lesson_id', flat=True)
    )


class CourseListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        courses = Course.objects.filter(is_published=True).prefetch_related('lessons')
        context = {'request': request, 'completed_lesson_ids': _completed_lesson_ids(request.user)}
        return Response({'courses': CourseSerializer(courses, many=True, context=context).data})


class CourseDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        course = get_object_or_404(Course.objects.prefetch_related('lessons'), pk=pk, is_published=True)
        if course.is_locked_for(request.user):
            return Response({'detail': LOCKED_MESSAGE}, status=status.HTTP_403_FORBIDDEN)
        context = {'request': request, 'completed_lesson_ids': _completed_lesson_ids(request.user)}
        return Response(CourseSerializer(course, context=context).data)


class CourseProgressView(APIView):
    """
    GET  ?course_id= - строки прогресса текущего пользователя
    POST {lesson_id, is_completed} - upsert по (user, lesson)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = CourseProgress.objects.filter(user=request.user).order_by('course_id', 'lesson__order')
        course_id = request.query_params.get('course_id')
        if course_id:
            if not course_id.isdigit():
                return Response({'detail': 'course_idは数値で指定してください'}, status=status.HTTP_400_BAD_REQUEST)
            qs = qs.filter(course_id=int(course_id))
        return Response({'progress': CourseProgressSerializer(qs, many=True).data})

    def post(self, request):
        serializer = ProgressUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lesson = Lesson.objects.select_related('course').filter(pk=serializer.validated_data['lesson_id']).first()
        if lesson is None:
            return Response({'detail': 'レッスンが見つかりません'}, status=status.HTTP_404_NOT_FOUND)
        if lesson.course.is_locked_for(request.user):
            return Response({'detail': LOCKED_MESSAGE}, status=status.HTTP_403_FORBIDDEN)

        is_completed = serializer.validated_data['is_completed']
        progress, created = CourseProgress.objects.update_or_create(
            user=request.user,
            lesson=lesson,
            defaults={
                'course': lesson.course,
                'is_completed': is_completed,
                'completed_at': timezone.now() if is_completed else None,
            },
        )
        return Response(
            CourseProgressSerializer(progress).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class AdminCourseViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = AdminCourseSerializer
    queryset = Course.objects.prefetch_related('lessons').order_by('order', 'id')

    @action(detail=True, methods=['get', 'post'])
    def lessons(self, request, pk=None):
        course = self.get_object()
        # prefetch из queryset не видит изменений в этом запросе
        lessons = Lesson.objects.filter(course=course)
        if request.method == 'GET':
            return Response(AdminLessonSerializer(lessons, many=True).data)

        serializer = AdminLessonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if 'order' not in request.data:
            lesson = serializer.save(course=course, order=lessons.count())
        else:
            lesson = serializer.save(course=course)
        return Response(AdminLessonSerializer(lesson).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='lessons/reorder')
    def reorder_lessons(self, request, pk=None):
        course = self.get_object()
        serializer = LessonReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        lesson_ids = serializer.validated_data['lesson_ids']

        lessons = {lesson.id: lesson for lesson in Lesson.objects.filter(course=course, id__in=lesson_ids)}
        foreign = [lesson_id for lesson_id in lesson_ids if lesson_id not in lessons]
        if foreign:
            return Response(
                {'detail': 'このコースに属さないレッスンが含まれています', 'invalid_ids': foreign},
                status=status.HTTP_400_BAD_REQUEST,
            )

        with transaction.atomic():
            for index, lesson_id in enumerate(lesson_ids):
                lessons[lesson_id].order = index
            Lesson.objects.bulk_update(lessons.values(), ['order'])

        logger.info(f'Admin {request.user.email} reordered lessons of course {course.id}')
        return Response(AdminLessonSerializer(Lesson.objects.filter(course=course), many=True).data)


class AdminLessonDetailView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = AdminLessonSerializer
    queryset = Lesson.objects.all()
