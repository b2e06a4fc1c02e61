"""
DRF serializers for the tills app.

This module provides serializers for:
- Sessions, ledger entries, counts, daily closes, shortages and rates (output)
- Session and day summaries (output, from the read-model dataclasses)
- Request bodies of the till actions (input)

Related files:
    - models/: Till models
    - views.py: Till API views

Usage:
    serializer = OpenSessionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    TillSessionService.open_session(**serializer.validated_data, staff_username=...)
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from rest_framework import serializers

from tills.models import (
    DailyClose,
    ExchangeRate,
    ShortageLog,
    TillDenominationCount,
    TillSession,
    TillTransaction,
)
from tills.state_machines import (
    DenominationCountType,
    ExchangeRateSource,
    TransactionDirection,
    TransactionType,
)
from tills.types import CurrencyAmount, CurrencyDenominationBreakdown

MONEY = {"max_digits": 14, "decimal_places": 2}
RATE = {"max_digits": 14, "decimal_places": 6}


# =============================================================================
# Output serializers
# =============================================================================


class TillSessionSerializer(serializers.ModelSerializer):
    """Read-only serializer for TillSession, with derived balances."""

    expected_cash = serializers.DecimalField(read_only=True, **MONEY)
    total_electronic_payments = serializers.DecimalField(read_only=True, **MONEY)

    class Meta:
        model = TillSession
        fields = [
            "id",
            "shop_id",
            "staff_username",
            "staff_display_name",
            "status",
            "custody",
            "opened_at",
            "closed_at",
            "closed_by_username",
            "opening_float",
            "currency_balances",
            "total_cash_in",
            "total_cash_out",
            "total_card_payments",
            "total_bank_transfers",
            "total_mobile_wallet_payments",
            "total_dropped",
            "total_topped_up",
            "expected_cash",
            "total_electronic_payments",
            "actual_cash",
            "variance",
            "actual_balances",
            "closing_variances",
            "has_variance",
            "is_force_close",
            "force_close_approved_by",
            "is_late_close",
            "verified_by_username",
            "verified_at",
            "version",
        ]
        read_only_fields = fields


class TillTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TillTransaction
        fields = [
            "id",
            "session",
            "transaction_type",
            "direction",
            "amount",
            "currency",
            "exchange_rate",
            "amount_in_base_currency",
            "exchange_rate_source",
            "description",
            "category",
            "recipient_name",
            "receipt_number",
            "notes",
            "transaction_time",
            "recorded_by_username",
            "payment_id",
            "deposit_id",
            "rental_id",
            "is_voided",
            "voided_at",
            "voided_by_username",
            "void_reason",
            "void_approved_by_username",
            "original_transaction",
            "related_transaction",
            "is_verified",
            "verified_by_username",
            "verified_at",
        ]
        read_only_fields = fields


class TillDenominationCountSerializer(serializers.ModelSerializer):
    class Meta:
        model = TillDenominationCount
        fields = [
            "id",
            "session",
            "count_type",
            "currency_breakdowns",
            "total_in_base",
            "rate_fallback_currencies",
            "is_final",
            "counted_by_username",
            "counted_at",
            "notes",
        ]
        read_only_fields = fields


class DailyCloseSerializer(serializers.ModelSerializer):
    class Meta:
        model = DailyClose
        fields = [
            "id",
            "shop_id",
            "date",
            "status",
            "total_cash_in",
            "total_cash_out",
            "total_dropped",
            "total_variance",
            "total_electronic_payments",
            "session_count",
            "sessions_with_variance",
            "closed_at",
            "closed_by_username",
            "reconciled_at",
            "reconciled_by_username",
            "was_reopened",
            "reopen_reason",
            "reopened_at",
            "reopened_by_username",
            "reopen_history",
        ]
        read_only_fields = fields


class ShortageLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShortageLog
        fields = [
            "id",
            "shop_id",
            "session",
            "daily_close",
            "staff_username",
            "staff_display_name",
            "currency",
            "amount",
            "amount_in_base",
            "exchange_rate_used",
            "exchange_rate_source",
            "reason",
            "logged_by_username",
            "logged_at",
        ]
        read_only_fields = fields


class ExchangeRateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExchangeRate
        fields = [
            "id",
            "currency",
            "buy_rate",
            "source",
            "shop_id",
            "effective_date",
            "expires_on",
            "api_rate",
            "notes",
            "is_active",
            "created_by_username",
        ]
        read_only_fields = fields


class TillSessionSummarySerializer(serializers.Serializer):
    """Serializer for the TillSessionSummary read model."""

    session_id = serializers.UUIDField()
    shop_id = serializers.IntegerField()
    staff_username = serializers.CharField()
    staff_display_name = serializers.CharField()
    status = serializers.CharField()
    opened_at = serializers.DateTimeField()
    closed_at = serializers.DateTimeField(allow_null=True)
    opening_float = serializers.DecimalField(**MONEY)
    total_cash_in = serializers.DecimalField(**MONEY)
    total_cash_out = serializers.DecimalField(**MONEY)
    total_card_payments = serializers.DecimalField(**MONEY)
    total_bank_transfers = serializers.DecimalField(**MONEY)
    total_mobile_wallet_payments = serializers.DecimalField(**MONEY)
    total_electronic_payments = serializers.DecimalField(**MONEY)
    total_dropped = serializers.DecimalField(**MONEY)
    total_topped_up = serializers.DecimalField(**MONEY)
    expected_cash = serializers.DecimalField(**MONEY)
    actual_cash = serializers.DecimalField(allow_null=True, **MONEY)
    variance = serializers.DecimalField(allow_null=True, **MONEY)
    currency_balances = serializers.DictField(child=serializers.DecimalField(**MONEY))
    closing_variances = serializers.DictField(child=serializers.DecimalField(**MONEY))
    transaction_count = serializers.IntegerField()
    voided_count = serializers.IntegerField()
    is_verified = serializers.BooleanField()


class DailyTillSummarySerializer(serializers.Serializer):
    """Serializer for the DailyTillSummary read model."""

    shop_id = serializers.IntegerField()
    date = serializers.DateField()
    day_status = serializers.CharField()
    session_count = serializers.IntegerField()
    open_session_count = serializers.IntegerField()
    verified_count = serializers.IntegerField()
    sessions_with_variance = serializers.IntegerField()
    total_cash_in = serializers.DecimalField(**MONEY)
    total_cash_out = serializers.DecimalField(**MONEY)
    net_cash_movement = serializers.DecimalField(**MONEY)
    total_dropped = serializers.DecimalField(**MONEY)
    total_topped_up = serializers.DecimalField(**MONEY)
    total_variance = serializers.DecimalField(**MONEY)
    total_electronic_payments = serializers.DecimalField(**MONEY)
    sessions = TillSessionSummarySerializer(many=True)


# =============================================================================
# Input serializers
# =============================================================================


class OpenSessionSerializer(serializers.Serializer):
    shop_id = serializers.IntegerField(min_value=1)
    opening_float = serializers.DecimalField(min_value=Decimal("0"), **MONEY)
    staff_display_name = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CloseSessionSerializer(serializers.Serializer):
    """
    Close request. Without actual_balances the final closing count is used.
    """

    actual_balances = serializers.DictField(
        child=serializers.DecimalField(min_value=Decimal("0"), **MONEY),
        required=False,
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, min_value=1)

    def validate_actual_balances(self, value):
        return {currency.upper(): amount for currency, amount in value.items()}


class ForceCloseSessionSerializer(serializers.Serializer):
    closed_by = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class VerifySessionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class RecordTransactionSerializer(serializers.Serializer):
    """
    A single ledger entry.

    direction picks record_in or record_out; foreign-currency payments
    are inflows with a non-base currency.
    """

    direction = serializers.ChoiceField(choices=TransactionDirection.choices)
    transaction_type = serializers.ChoiceField(choices=TransactionType.choices)
    amount = serializers.DecimalField(**MONEY)
    currency = serializers.CharField(required=False, min_length=3, max_length=3)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    category = serializers.CharField(required=False, allow_blank=True, default="")
    recipient_name = serializers.CharField(required=False, allow_blank=True, default="")
    receipt_number = serializers.CharField(required=False, allow_blank=True, default="")
    payment_id = serializers.IntegerField(required=False, min_value=1)
    deposit_id = serializers.IntegerField(required=False, min_value=1)
    rental_id = serializers.IntegerField(required=False, min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, min_value=1)

    def validate_currency(self, value):
        return value.upper()

    def validate(self, attrs):
        if attrs["direction"] == TransactionDirection.OUT and "payment_id" in attrs:
            raise serializers.ValidationError(
                {"payment_id": "Payments can only be linked to money in"}
            )
        return attrs


class CurrencyAmountSerializer(serializers.Serializer):
    currency = serializers.CharField(min_length=3, max_length=3)
    amount = serializers.DecimalField(**MONEY)


class MultiCurrencyDropSerializer(serializers.Serializer):
    drops = CurrencyAmountSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_drops(self, value):
        return [CurrencyAmount(line["currency"], line["amount"]) for line in value]


class VoidTransactionSerializer(serializers.Serializer):
    """The approving manager is the authenticated user."""

    staff_username = serializers.CharField()
    reason = serializers.CharField(allow_blank=True)


class DenominationBreakdownSerializer(serializers.Serializer):
    currency = serializers.CharField(min_length=3, max_length=3)
    denominations = serializers.DictField(child=serializers.IntegerField(min_value=0))

    def validate_denominations(self, value):
        parsed = {}
        for key, quantity in value.items():
            try:
                parsed[Decimal(str(key))] = quantity
            except InvalidOperation:
                raise serializers.ValidationError(f"Invalid denomination: {key}")
        return parsed


class SaveDenominationCountSerializer(serializers.Serializer):
    count_type = serializers.ChoiceField(choices=DenominationCountType.choices)
    breakdowns = DenominationBreakdownSerializer(many=True, allow_empty=False)
    is_final = serializers.BooleanField(required=False, default=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_breakdowns(self, value):
        return [
            CurrencyDenominationBreakdown(
                currency=line["currency"],
                denominations=line["denominations"],
            )
            for line in value
        ]


class ShopDaySerializer(serializers.Serializer):
    shop_id = serializers.IntegerField(min_value=1)
    date = serializers.DateField()


class ReopenDaySerializer(ShopDaySerializer):
    reason = serializers.CharField(allow_blank=True)


class LogShortageSerializer(serializers.Serializer):
    shop_id = serializers.IntegerField(min_value=1)
    session_id = serializers.UUIDField()
    daily_close_id = serializers.UUIDField(required=False)
    staff_username = serializers.CharField()
    staff_display_name = serializers.CharField(required=False, allow_blank=True, default="")
    currency = serializers.CharField(min_length=3, max_length=3)
    amount = serializers.DecimalField(**MONEY)
    reason = serializers.CharField(allow_blank=True)


class SetExchangeRateSerializer(serializers.Serializer):
    currency = serializers.CharField(min_length=3, max_length=3)
    buy_rate = serializers.DecimalField(**RATE)
    source = serializers.ChoiceField(
        choices=ExchangeRateSource.choices,
        required=False,
        default=ExchangeRateSource.MANUAL,
    )
    shop_id = serializers.IntegerField(required=False, min_value=1)
    api_rate = serializers.DecimalField(required=False, **RATE)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
