"""Stampman admin.

Balances and counters are only changed through the services, so account,
card and progress screens are read-only on those fields. Audit trails
(transactions, stamp transactions, scan history) cannot be added or deleted.
"""

from django.contrib import admin
from django.utils.html import format_html

from stampman.models import (
    LoyaltyAccount,
    LoyaltyTransaction,
    RewardDefinition,
    RewardRedemption,
    ScanHistoryRecord,
    StampCard,
    StampTransaction,
    StampTransactionCode,
    UserRewardProgress,
)


class ReadOnlyAuditMixin:
    """Audit rows are append-only."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Points
# ===========================================


class LoyaltyTransactionInline(ReadOnlyAuditMixin, admin.TabularInline):
    model = LoyaltyTransaction
    extra = 0
    fields = ["transaction_type", "points", "balance_before", "balance_after", "description", "store_id", "created_at"]
    readonly_fields = fields
    ordering = ["-created_at"]


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = [
        "loyalty_number",
        "tenant_id",
        "customer_id",
        "current_points",
        "total_earned",
        "level_badge",
        "is_active",
        "enrolled_at",
    ]
    list_filter = ["level", "is_active", "tenant_id"]
    search_fields = ["loyalty_number", "customer_id"]
    readonly_fields = [
        "loyalty_number",
        "current_points",
        "total_earned",
        "total_redeemed",
        "level",
        "last_activity_at",
        "enrolled_at",
        "updated_at",
    ]
    inlines = [LoyaltyTransactionInline]

    def level_badge(self, obj):
        colors = {
            "bronze": "#cd7f32",
            "silver": "#c0c0c0",
            "gold": "#ffd700",
            "platinum": "#e5e4e2",
        }
        color = colors.get(obj.level, "#6c757d")
        text_color = "#fff" if obj.level == "bronze" else "#000"
        return format_html(
            '<span style="background:{}; color:{}; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            color,
            text_color,
            obj.get_level_display(),
        )

    level_badge.short_description = "Nível"


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(ReadOnlyAuditMixin, admin.ModelAdmin):
    list_display = [
        "created_at",
        "account",
        "transaction_type",
        "points_display",
        "balance_after",
        "description",
        "store_id",
    ]
    list_filter = ["transaction_type", "tenant_id"]
    search_fields = ["account__loyalty_number", "account__customer_id", "description"]
    date_hierarchy = "created_at"

    def points_display(self, obj):
        if obj.points > 0:
            return format_html('<span style="color:green">+{}</span>', obj.points)
        return format_html('<span style="color:red">{}</span>', obj.points)

    points_display.short_description = "Pontos"


# ===========================================
# Stamp cards
# ===========================================


class StampTransactionInline(ReadOnlyAuditMixin, admin.TabularInline):
    model = StampTransaction
    extra = 0
    fields = ["stamps_added", "stamps_before", "stamps_after", "reason", "store_id", "created_at"]
    readonly_fields = fields


@admin.register(StampCard)
class StampCardAdmin(admin.ModelAdmin):
    list_display = ["card_name", "account", "stamps_display", "is_completed", "expires_at", "is_active"]
    list_filter = ["is_completed", "is_active", "tenant_id"]
    search_fields = ["card_name", "account__loyalty_number", "account__customer_id"]
    readonly_fields = ["current_stamps", "is_completed", "completed_at", "created_at", "updated_at"]
    inlines = [StampTransactionInline]

    def stamps_display(self, obj):
        return format_html(
            "{}/{} ({}%)",
            obj.current_stamps,
            obj.total_stamps,
            obj.progress_percent,
        )

    stamps_display.short_description = "Carimbos"


@admin.register(StampTransaction)
class StampTransactionAdmin(ReadOnlyAuditMixin, admin.ModelAdmin):
    list_display = ["created_at", "card", "stamps_added", "stamps_before", "stamps_after", "reason"]
    list_filter = ["tenant_id"]
    search_fields = ["card__card_name", "reason"]
    date_hierarchy = "created_at"


# ===========================================
# Rewards
# ===========================================


@admin.register(RewardDefinition)
class RewardDefinitionAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "tenant_id",
        "reward_type",
        "points_cost",
        "value_description",
        "redemptions_display",
        "is_active",
    ]
    list_filter = ["reward_type", "is_active", "tenant_id"]
    search_fields = ["name", "description"]
    readonly_fields = ["current_redemptions", "created_at", "updated_at"]

    def redemptions_display(self, obj):
        if obj.max_redemptions is None:
            return f"{obj.current_redemptions}/∞"
        return f"{obj.current_redemptions}/{obj.max_redemptions}"

    redemptions_display.short_description = "Resgates"


@admin.register(RewardRedemption)
class RewardRedemptionAdmin(ReadOnlyAuditMixin, admin.ModelAdmin):
    list_display = ["created_at", "reward", "account", "points_spent", "status", "store_id", "used_at"]
    list_filter = ["status", "tenant_id"]
    search_fields = ["reward__name", "account__loyalty_number"]
    date_hierarchy = "created_at"


# ===========================================
# QR flow
# ===========================================


@admin.register(StampTransactionCode)
class StampTransactionCodeAdmin(ReadOnlyAuditMixin, admin.ModelAdmin):
    list_display = ["code", "customer_id", "reward", "status", "expires_at", "consumed_by", "consumed_at"]
    list_filter = ["status", "tenant_id"]
    search_fields = ["code", "customer_id"]


class ScanHistoryInline(ReadOnlyAuditMixin, admin.TabularInline):
    model = ScanHistoryRecord
    extra = 0
    fields = ["action", "stamps_before", "stamps_after", "scanned_by", "store_id", "created_at"]
    readonly_fields = fields


@admin.register(UserRewardProgress)
class UserRewardProgressAdmin(admin.ModelAdmin):
    list_display = ["customer_id", "reward", "progress_display", "status", "completed_at", "redeemed_at"]
    list_filter = ["status", "tenant_id"]
    search_fields = ["customer_id", "reward__name"]
    readonly_fields = ["stamps_collected", "status", "completed_at", "redeemed_at", "created_at", "updated_at"]
    inlines = [ScanHistoryInline]

    def progress_display(self, obj):
        return f"{obj.stamps_collected}/{obj.stamps_required} ({obj.completion_percentage:.0f}%)"

    progress_display.short_description = "Progresso"


@admin.register(ScanHistoryRecord)
class ScanHistoryRecordAdmin(ReadOnlyAuditMixin, admin.ModelAdmin):
    list_display = ["created_at", "action", "customer_id", "reward", "stamps_before", "stamps_after", "scanned_by", "store_id"]
    list_filter = ["action", "store_id", "tenant_id"]
    search_fields = ["customer_id", "transaction_code", "scanned_by"]
    date_hierarchy = "created_at"
