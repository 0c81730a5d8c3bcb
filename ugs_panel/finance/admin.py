"""
Django admin configuration for finance models.
"""
from django.contrib import admin

from .models import Compensation, Contract, Referral


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ['contract_number', 'user', 'product_name', 'contract_type', 'status', 'amount', 'reward_amount', 'signed_at']
    list_filter = ['status', 'contract_type']
    search_fields = ['contract_number', 'product_name', 'user__email', 'user__member_id']
    raw_id_fields = ['user']
    ordering = ['-signed_at']


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ['id', 'referrer', 'referred', 'referral_type', 'status', 'reward_amount', 'created_at']
    list_filter = ['status', 'referral_type']
    search_fields = ['referrer__email', 'referred__email']
    raw_id_fields = ['referrer', 'referred']
    readonly_fields = ['created_at', 'approved_at']


@admin.register(Compensation)
class CompensationAdmin(admin.ModelAdmin):
    """Админка для ежемесячных вознаграждений."""

    list_display = ['user', 'month', 'amount', 'earned_as_role', 'status', 'net_amount', 'paid_at']
    list_filter = ['status', 'month', 'earned_as_role']
    search_fields = ['user__email', 'user__member_id']
    raw_id_fields = ['user']
    readonly_fields = ['created_at', 'updated_at']

    fieldsets = (
        (None, {
            'fields': ('user', 'month', 'amount', 'earned_as_role', 'status', 'paid_at')
        }),
        ('Разбивка', {
            'fields': ('breakdown',),
            'classes': ('collapse',)
        }),
        ('Детализация (CSV)', {
            'fields': ('gross_amount', 'withholding_tax', 'transfer_fee', 'net_amount'),
        }),
        ('Даты', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
