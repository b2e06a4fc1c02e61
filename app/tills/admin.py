"""
Till admin configuration.

Admin pages are for audit visibility. State changes (open, close, void,
daily close) go through the service layer, so ledger rows and shortage
logs are read-only here.
"""

from django.contrib import admin

from tills.models import (
    DailyClose,
    ExchangeRate,
    ShortageLog,
    TillDenominationCount,
    TillSession,
    TillTransaction,
)


class ReadOnlyAdminMixin:
    """Disable add, change and delete for append-only records."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class TillTransactionInline(admin.TabularInline):
    model = TillTransaction
    fk_name = "session"
    extra = 0
    can_delete = False
    show_change_link = True
    fields = [
        "transaction_time",
        "transaction_type",
        "direction",
        "amount",
        "currency",
        "amount_in_base_currency",
        "is_voided",
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(TillSession)
class TillSessionAdmin(admin.ModelAdmin):
    """
    Admin configuration for TillSession.

    Status is managed by django-fsm transitions and shown read-only.
    """

    list_display = [
        "id",
        "shop_id",
        "staff_username",
        "status",
        "opened_at",
        "closed_at",
        "variance",
        "has_variance",
    ]
    list_filter = ["status", "has_variance", "custody", "is_force_close", "shop_id"]
    search_fields = ["id", "staff_username", "staff_display_name"]
    date_hierarchy = "opened_at"
    ordering = ["-opened_at"]
    inlines = [TillTransactionInline]
    readonly_fields = [
        "id",
        "status",
        "custody",
        "currency_balances",
        "total_cash_in",
        "total_cash_out",
        "total_card_payments",
        "total_bank_transfers",
        "total_mobile_wallet_payments",
        "total_dropped",
        "total_topped_up",
        "actual_cash",
        "variance",
        "actual_balances",
        "closing_variances",
        "has_variance",
        "version",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "shop_id", "staff_username", "staff_display_name", "status", "custody"),
            },
        ),
        (
            "Balances",
            {
                "fields": (
                    "opening_float",
                    "currency_balances",
                    "total_cash_in",
                    "total_cash_out",
                    "total_card_payments",
                    "total_bank_transfers",
                    "total_mobile_wallet_payments",
                    "total_dropped",
                    "total_topped_up",
                ),
            },
        ),
        (
            "Close",
            {
                "fields": (
                    "closed_at",
                    "closed_by_username",
                    "actual_cash",
                    "variance",
                    "actual_balances",
                    "closing_variances",
                    "has_variance",
                    "is_force_close",
                    "force_close_approved_by",
                    "is_late_close",
                    "closing_notes",
                ),
            },
        ),
        (
            "Verification",
            {
                "fields": ("verified_by_username", "verified_at", "verification_notes"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("opened_at", "created_at", "updated_at", "version"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(TillTransaction)
class TillTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for TillTransaction.

    Entries are immutable; corrections are voids with a reversal entry.
    """

    list_display = [
        "id",
        "session",
        "transaction_type",
        "direction",
        "amount",
        "currency",
        "amount_in_base_currency",
        "is_voided",
        "transaction_time",
    ]
    list_filter = ["transaction_type", "direction", "currency", "is_voided", "is_verified"]
    search_fields = ["id", "description", "recorded_by_username", "receipt_number"]
    date_hierarchy = "transaction_time"
    ordering = ["-transaction_time"]


@admin.register(TillDenominationCount)
class TillDenominationCountAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "session", "count_type", "total_in_base", "is_final", "counted_at"]
    list_filter = ["count_type", "is_final"]
    search_fields = ["session__id", "counted_by_username"]


@admin.register(DailyClose)
class DailyCloseAdmin(admin.ModelAdmin):
    list_display = [
        "shop_id",
        "date",
        "status",
        "session_count",
        "sessions_with_variance",
        "total_variance",
        "was_reopened",
    ]
    list_filter = ["status", "was_reopened", "shop_id"]
    date_hierarchy = "date"
    ordering = ["-date"]
    readonly_fields = [
        "id",
        "status",
        "total_cash_in",
        "total_cash_out",
        "total_dropped",
        "total_variance",
        "total_electronic_payments",
        "session_count",
        "sessions_with_variance",
        "reopen_history",
        "version",
        "created_at",
        "updated_at",
    ]


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    list_display = ["currency", "buy_rate", "source", "shop_id", "effective_date", "is_active"]
    list_filter = ["currency", "source", "is_active"]
    ordering = ["currency", "-effective_date"]


@admin.register(ShortageLog)
class ShortageLogAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Shortage logs are accountability records and cannot be edited."""

    list_display = [
        "staff_username",
        "shop_id",
        "amount",
        "currency",
        "amount_in_base",
        "logged_by_username",
        "logged_at",
    ]
    list_filter = ["currency", "shop_id"]
    search_fields = ["staff_username", "reason", "logged_by_username"]
    date_hierarchy = "logged_at"
    ordering = ["-logged_at"]
