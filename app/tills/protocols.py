"""
Protocol definitions for services the till engine consumes.

The till services never import a concrete exchange-rate implementation
directly; they hold an ExchangeRateProvider, which defaults to
tills.services.ExchangeRateService and can be swapped (for example by a
stub in tests or an adapter around an external rate feed).

Available Protocols:
    ExchangeRateProvider: Current buy rate lookup and base conversion

Usage:
    from tills.protocols import ExchangeRateProvider
    from tills.services import TillTransactionService

    class FixedRates:
        def get_current_rate(self, currency, shop_id=None): ...
        def convert_to_base(self, currency, amount, shop_id=None): ...

    # FixedRates is a valid ExchangeRateProvider without inheriting from it
    TillTransactionService.set_exchange_rate_provider(FixedRates())
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from decimal import Decimal

    from tills.models import ExchangeRate
    from tills.types import ConversionResult


@runtime_checkable
class ExchangeRateProvider(Protocol):
    """
    Protocol for exchange rate lookups.

    Rates are expressed as base-currency units per one unit of the
    foreign currency. Both methods return None when no rate is
    configured; callers decide whether that is a failure or a fallback.
    """

    def get_current_rate(
        self,
        currency: str,
        shop_id: int | None = None,
    ) -> ExchangeRate | None:
        """
        Get the rate in force for a currency.

        Args:
            currency: ISO 4217 code
            shop_id: Shop whose own rate takes precedence over the
                organization default

        Returns:
            The active rate, or None if none is configured
        """
        ...

    def convert_to_base(
        self,
        currency: str,
        amount: Decimal,
        shop_id: int | None = None,
    ) -> ConversionResult | None:
        """
        Convert an amount to the base currency.

        Returns:
            ConversionResult with the converted amount and the rate used,
            or None if no rate is configured for the currency
        """
        ...
