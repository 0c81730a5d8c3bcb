from django.contrib import admin

from .models import Event, EventRegistration, EventSchedule


class EventScheduleInline(admin.TabularInline):
    model = EventSchedule
    extra = 0


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ['title', 'date', 'event_type', 'venue_type', 'status', 'is_paid', 'price', 'is_recurring']
    list_filter = ['status', 'event_type', 'venue_type', 'is_paid', 'is_recurring']
    search_fields = ['title', 'description']
    readonly_fields = ['stripe_product_id', 'stripe_price_id', 'created_at', 'updated_at']
    inlines = [EventScheduleInline]
    date_hierarchy = 'date'


@admin.register(EventRegistration)
class EventRegistrationAdmin(admin.ModelAdmin):
    list_display = [
        'user', 'event', 'payment_status', 'video_watched', 'survey_completed',
        'attendance_method', 'is_overdue', 'final_approval', 'created_at',
    ]
    list_filter = ['payment_status', 'attendance_method', 'is_overdue', 'final_approval']
    search_fields = ['user__email', 'user__member_id', 'event__title']
    raw_id_fields = ['user', 'event', 'schedule']
    readonly_fields = ['stripe_session_id', 'stripe_payment_intent_id', 'paid_at', 'created_at']
