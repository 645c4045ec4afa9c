"""
Django admin configuration for marketplace models.

Trips and bids are read-mostly here: status and money fields change only
through the award and delivery coordinators.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Bid, Message, Review, Trip, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = [
        'email',
        'role',
        'payout_account_id',
        'avg_rating',
        'review_count',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'first_name',
        'last_name',
        'external_id',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': ('first_name', 'last_name', 'email', 'external_id')
        }),
        (_('Marketplace'), {
            'fields': ('role', 'payout_account_id', 'push_token', 'avg_rating', 'review_count')
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

    readonly_fields = ['avg_rating', 'review_count', 'created_at', 'updated_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        """Role is fixed once the account exists."""
        if obj:
            return self.readonly_fields + ['role']
        return []


class BidInline(admin.TabularInline):
    model = Bid
    extra = 0
    fields = ['transporter', 'amount_cents', 'eta_hours', 'status', 'platform_fee_cents',
              'transporter_earnings_cents', 'created_at']
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Trip)
class TripAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'owner',
        'transporter',
        'pickup_location',
        'dropoff_location',
        'status',
        'total_amount_cents',
        'created_at',
    ]

    list_filter = ['status', 'created_at']

    search_fields = [
        'owner__email',
        'transporter__email',
        'pickup_location',
        'dropoff_location',
        'payment_intent_id',
    ]

    readonly_fields = [
        'status',
        'transporter',
        'winning_bid',
        'total_amount_cents',
        'platform_fee_cents',
        'transporter_earnings_cents',
        'payment_intent_id',
        'created_at',
        'accepted_at',
        'updated_at',
    ]

    inlines = [BidInline]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ['id', 'trip', 'transporter', 'amount_cents', 'status', 'created_at']

    list_filter = ['status', 'created_at']

    search_fields = ['transporter__email', 'note']

    readonly_fields = ['status', 'platform_fee_cents', 'transporter_earnings_cents', 'last_message_at', 'created_at']

    ordering = ['-created_at']

    list_per_page = 25


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'reviewer',
        'reviewee',
        'trip',
        'rating',
        'created_at',
    ]

    list_filter = [
        'rating',
        'created_at',
    ]

    search_fields = [
        'reviewer__email',
        'reviewee__email',
        'comment',
    ]

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('reviewer', 'reviewee', 'trip')
        }),
        (_('Review Content'), {
            'fields': ('rating', 'comment')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'bid', 'sender', 'created_at']

    search_fields = ['sender__email', 'body']

    readonly_fields = ['bid', 'sender', 'body', 'created_at']

    ordering = ['-created_at']

    list_per_page = 50
