"""
Django admin configuration for users and transaction rooms.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Room, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.
    """

    list_display = [
        'email',
        'username',
        'full_name',
        'role',
        'auth_provider',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'auth_provider',
        'is_staff',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'full_name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': ('email', 'full_name', 'phone', 'profile_picture')
        }),
        (_('Role & Payout'), {
            'fields': ('role', 'bank_account_number', 'bank_code')
        }),
        (_('OAuth'), {
            'fields': ('auth_provider', 'google_id'),
            'classes': ('collapse',),
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'password1',
                'password2',
                'role',
            ),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    """
    Read-mostly admin for transaction rooms.

    Status changes go through the API so the transition rules apply; the
    admin only exposes item details for correction.
    """

    list_display = [
        'room_code',
        'item_title',
        'status',
        'payment_status',
        'total_cents',
        'currency',
        'creator',
        'buyer',
        'seller',
        'created_at',
    ]

    list_filter = ['status', 'payment_status', 'currency', 'created_at']

    search_fields = [
        'room_code',
        'item_title',
        'creator__email',
        'buyer__email',
        'seller__email',
    ]

    raw_id_fields = ['creator', 'buyer', 'seller', 'payment_verified_by', 'cancelled_by']

    readonly_fields = [
        'room_code',
        'status',
        'payment_status',
        'total_cents',
        'paid_at',
        'payment_verified_at',
        'payment_verified_by',
        'shipped_at',
        'completed_at',
        'cancelled_at',
        'cancelled_by',
        'closed_at',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        (None, {
            'fields': ('room_code', 'status', 'payment_status')
        }),
        (_('Participants'), {
            'fields': ('creator', 'buyer', 'seller')
        }),
        (_('Item'), {
            'fields': ('item_title', 'item_description', 'quantity', 'item_images')
        }),
        (_('Amounts'), {
            'fields': (
                'item_price_cents',
                'shipping_fee_cents',
                'platform_fee_cents',
                'total_cents',
                'currency',
            )
        }),
        (_('Lifecycle'), {
            'fields': (
                'tracking_number',
                'paid_at',
                'payment_verified_at',
                'payment_verified_by',
                'shipped_at',
                'completed_at',
                'cancelled_at',
                'cancelled_by',
                'cancellation_reason',
                'expires_at',
                'closed_at',
                'created_at',
                'updated_at',
            ),
            'classes': ('collapse',),
        }),
    )

    date_hierarchy = 'created_at'

    list_per_page = 25

    def has_add_permission(self, request):
        # Rooms need a generated code; they are created through the API
        return False
