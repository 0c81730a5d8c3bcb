from django.contrib import admin

from .models import FPPromotionApplication, LPMeeting, ManagerAssessment, PromotionApplication


@admin.register(FPPromotionApplication)
class FPPromotionApplicationAdmin(admin.ModelAdmin):
    list_display = ['user', 'lp_meeting_completed', 'survey_completed', 'status', 'applied_at', 'approved_at']
    list_filter = ['status', 'lp_meeting_completed', 'survey_completed']
    search_fields = ['user__email', 'user__member_id']
    raw_id_fields = ['user']


@admin.register(PromotionApplication)
class PromotionApplicationAdmin(admin.ModelAdmin):
    list_display = ['user', 'target_role', 'status', 'created_at', 'reviewed_at', 'reviewed_by']
    list_filter = ['status', 'target_role']
    search_fields = ['user__email', 'user__member_id']
    raw_id_fields = ['user', 'reviewed_by']
    readonly_fields = ['created_at']


@admin.register(LPMeeting)
class LPMeetingAdmin(admin.ModelAdmin):
    list_display = ['member', 'fp', 'status', 'meeting_location', 'scheduled_at', 'completed_at', 'created_at']
    list_filter = ['status', 'meeting_location', 'meeting_platform']
    search_fields = ['member__email', 'member__member_id', 'fp__email']
    raw_id_fields = ['member', 'fp', 'assigned_by']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(ManagerAssessment)
class ManagerAssessmentAdmin(admin.ModelAdmin):
    list_display = ['user', 'period_year', 'period_half', 'total_sales', 'is_demotion_candidate', 'status']
    list_filter = ['status', 'period_year', 'period_half', 'is_demotion_candidate']
    search_fields = ['user__email', 'user__member_id']
    raw_id_fields = ['user', 'confirmed_by']
    readonly_fields = ['created_at', 'updated_at']
