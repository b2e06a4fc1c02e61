"""
Data types for till operations.

This module defines dataclasses used throughout the till system
for type-safe data transfer between layers, plus the money helpers
every service uses for rounding.

Types:
    CurrencyAmount: An amount in a specific currency
    CurrencyDenominationBreakdown: Counted notes/coins for one currency
    ConversionResult: Outcome of converting an amount to base currency
    TillSessionSummary: Read model of one session
    DailyTillSummary: Read model of one shop-day

Usage:
    from tills.types import CurrencyAmount, to_money

    drops = [CurrencyAmount("USD", to_money("50")), CurrencyAmount("THB", to_money(1000))]
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from core.exceptions import ValidationError

MONEY_QUANTUM = Decimal("0.01")
RATE_QUANTUM = Decimal("0.000001")
ZERO = Decimal("0.00")

RATE_SOURCE_BASE = "Base"
RATE_SOURCE_FALLBACK = "Fallback"


def to_money(value: Any) -> Decimal:
    """
    Coerce a value to a two-place Decimal, rounding half up.

    Strings and ints are parsed exactly; floats go through str() so that
    33.0 becomes Decimal("33.00") rather than its binary expansion.
    None is treated as zero.
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValidationError(
                f"Invalid money amount: {value!r}",
                error_code="INVALID_AMOUNT",
            ) from exc
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_rate(value: Any) -> Decimal:
    """Coerce a value to an exchange-rate Decimal (six places)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


# =============================================================================
# Denomination catalogue
# =============================================================================

DENOMINATIONS: dict[str, tuple[Decimal, ...]] = {
    "THB": tuple(Decimal(v) for v in (1000, 500, 100, 50, 20, 10, 5, 2, 1)),
    "USD": tuple(Decimal(v) for v in (100, 50, 20, 10, 5, 1)),
    "EUR": tuple(Decimal(v) for v in (500, 200, 100, 50, 20, 10, 5)),
    "CNY": tuple(Decimal(v) for v in (100, 50, 20, 10, 5, 1)),
}


def denomination_key(value: Decimal) -> str:
    """Stable string key for a denomination ("1000", "0.5")."""
    text = format(Decimal(value).normalize(), "f")
    return text


# =============================================================================
# Value types
# =============================================================================


@dataclass(frozen=True)
class CurrencyAmount:
    """An amount of money in one currency."""

    currency: str
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "currency", self.currency.upper())
        object.__setattr__(self, "amount", to_money(self.amount))


@dataclass
class CurrencyDenominationBreakdown:
    """
    Counted notes and coins for a single currency.

    Attributes:
        currency: ISO 4217 code
        denominations: Denomination value -> quantity counted
        expected_balance: Ledger balance the count is compared against

    The total and the variance are always derived, never stored.

    Example:
        breakdown = CurrencyDenominationBreakdown(
            currency="THB",
            denominations={Decimal("1000"): 5, Decimal("100"): 3},
            expected_balance=Decimal("5200"),
        )
        breakdown.total     # Decimal("5300.00")
        breakdown.variance  # Decimal("100.00")
    """

    currency: str
    denominations: dict[Decimal, int] = field(default_factory=dict)
    expected_balance: Decimal = ZERO

    def __post_init__(self):
        self.currency = self.currency.upper()
        self.denominations = {
            Decimal(str(value)): int(quantity)
            for value, quantity in self.denominations.items()
        }
        self.expected_balance = to_money(self.expected_balance)

    @property
    def total(self) -> Decimal:
        return to_money(
            sum(
                (value * quantity for value, quantity in self.denominations.items()),
                Decimal("0"),
            )
        )

    @property
    def variance(self) -> Decimal:
        return self.total - self.expected_balance

    def validate(self) -> None:
        """
        Check quantities and, for catalogued currencies, the denominations.

        Raises:
            ValidationError: If a quantity is negative or a denomination is
                not issued for this currency
        """
        allowed = DENOMINATIONS.get(self.currency)
        for value, quantity in self.denominations.items():
            if quantity < 0:
                raise ValidationError(
                    f"Negative quantity for {self.currency} {denomination_key(value)}",
                    error_code="INVALID_DENOMINATION",
                    details={"currency": self.currency, "denomination": denomination_key(value)},
                )
            if value <= 0 or (allowed is not None and value not in allowed):
                raise ValidationError(
                    f"Unknown denomination {denomination_key(value)} for {self.currency}",
                    error_code="INVALID_DENOMINATION",
                    details={"currency": self.currency, "denomination": denomination_key(value)},
                )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation used for storage."""
        return {
            "currency": self.currency,
            "denominations": {
                denomination_key(value): quantity
                for value, quantity in sorted(self.denominations.items(), reverse=True)
            },
            "expected_balance": str(self.expected_balance),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CurrencyDenominationBreakdown:
        return cls(
            currency=data["currency"],
            denominations={
                Decimal(value): int(quantity)
                for value, quantity in (data.get("denominations") or {}).items()
            },
            expected_balance=to_money(data.get("expected_balance")),
        )


@dataclass(frozen=True)
class ConversionResult:
    """
    Outcome of converting a foreign amount to the base currency.

    Attributes:
        converted_amount: Amount in base currency
        rate_used: Base-currency units per one foreign unit
        rate_source: "Base", "Fallback" or the rate's own source
        rate_id: ExchangeRate primary key for audit linkage
    """

    converted_amount: Decimal
    rate_used: Decimal
    rate_source: str
    rate_id: uuid.UUID | None = None

    @property
    def is_fallback(self) -> bool:
        return self.rate_source == RATE_SOURCE_FALLBACK


# =============================================================================
# Read models
# =============================================================================


@dataclass
class TillSessionSummary:
    """Point-in-time view of a till session for reports and the UI."""

    session_id: uuid.UUID
    shop_id: int
    staff_username: str
    staff_display_name: str
    status: str
    opened_at: datetime.datetime
    closed_at: datetime.datetime | None
    opening_float: Decimal
    total_cash_in: Decimal
    total_cash_out: Decimal
    total_card_payments: Decimal
    total_bank_transfers: Decimal
    total_mobile_wallet_payments: Decimal
    total_dropped: Decimal
    total_topped_up: Decimal
    expected_cash: Decimal
    actual_cash: Decimal | None
    variance: Decimal | None
    currency_balances: dict[str, Decimal] = field(default_factory=dict)
    closing_variances: dict[str, Decimal] = field(default_factory=dict)
    transaction_count: int = 0
    voided_count: int = 0
    is_verified: bool = False

    @property
    def total_electronic_payments(self) -> Decimal:
        return (
            self.total_card_payments
            + self.total_bank_transfers
            + self.total_mobile_wallet_payments
        )


@dataclass
class DailyTillSummary:
    """Aggregated view of every session opened at a shop on one day."""

    shop_id: int
    date: datetime.date
    day_status: str
    session_count: int = 0
    open_session_count: int = 0
    verified_count: int = 0
    sessions_with_variance: int = 0
    total_cash_in: Decimal = ZERO
    total_cash_out: Decimal = ZERO
    total_dropped: Decimal = ZERO
    total_topped_up: Decimal = ZERO
    total_variance: Decimal = ZERO
    total_electronic_payments: Decimal = ZERO
    sessions: list[TillSessionSummary] = field(default_factory=list)

    @property
    def net_cash_movement(self) -> Decimal:
        return self.total_cash_in - self.total_cash_out
