from django.contrib import admin

from .models import Course, CourseProgress, Lesson


class LessonInline(admin.TabularInline):
    model = Lesson
    extra = 0
    ordering = ['order']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'level', 'is_locked', 'is_published', 'order']
    list_filter = ['category', 'level', 'is_locked', 'is_published']
    list_editable = ['order', 'is_published']
    search_fields = ['title']
    inlines = [LessonInline]


@admin.register(CourseProgress)
class CourseProgressAdmin(admin.ModelAdmin):
    list_display = ['user', 'course', 'lesson', 'is_completed', 'completed_at']
    list_filter = ['is_completed', 'course']
    search_fields = ['user__email', 'lesson__title']
    raw_id_fields = ['user', 'course', 'lesson']
