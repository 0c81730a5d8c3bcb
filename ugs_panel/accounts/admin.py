from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser, Notification, PendingUser, Subscription


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    """Админ-панель для кастомной модели пользователя"""

    model = CustomUser
    list_display = ('email', 'name', 'member_id', 'role', 'membership_status', 'is_active', 'created_at')
    list_filter = ('role', 'membership_status', 'is_staff', 'is_active')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Личная информация', {'fields': ('name', 'phone_number', 'member_id', 'referral_code')}),
        ('Роль и права', {'fields': ('role', 'is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Членство', {'fields': (
            'membership_status', 'membership_status_changed_at', 'membership_status_reason',
            'delinquent_since', 'canceled_at', 'cancellation_reason',
            'suspension_start_date', 'suspension_end_date', 'reactivated_at',
        )}),
        ('Важные даты', {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'password1', 'password2', 'is_staff', 'is_active')
        }),
    )

    search_fields = ('email', 'name', 'member_id', 'phone_number')
    ordering = ('-created_at',)


@admin.register(PendingUser)
class PendingUserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'email_verified', 'referral_code', 'created_at')
    list_filter = ('email_verified',)
    search_fields = ('email', 'name')
    exclude = ('password',)


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('user', 'status', 'stripe_subscription_id', 'current_period_end', 'updated_at')
    list_filter = ('status',)
    search_fields = ('user__email', 'stripe_customer_id', 'stripe_subscription_id')
    raw_id_fields = ('user',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'notification_type', 'priority', 'title', 'is_read', 'created_at')
    list_filter = ('notification_type', 'priority', 'is_read')
    search_fields = ('user__email', 'title')
    raw_id_fields = ('user',)
