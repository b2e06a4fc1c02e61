"""
Exchange rate service: buy-rate lookup and conversion to base currency.

Rates are either shop-specific or the organization default (shop_id is
null). A lookup for a shop prefers the shop's own active rate and falls
back to the organization default. Setting a new rate deactivates the
previous active rate of the same scope so exactly one rate is in force
per (currency, scope).

Usage:
    from tills.services import ExchangeRateService

    ExchangeRateService.set_rate("USD", Decimal("33.00"), username="manager")

    conversion = ExchangeRateService.convert_to_base("USD", Decimal("50"))
    conversion.converted_amount  # Decimal("1650.00")
    conversion.rate_id           # ExchangeRate.id, for the audit link
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService, ServiceResult
from tills.models import ExchangeRate
from tills.state_machines import ExchangeRateSource
from tills.types import RATE_SOURCE_BASE, ConversionResult, to_money, to_rate

if TYPE_CHECKING:
    import datetime


class ExchangeRateService(BaseService):
    """
    Default ExchangeRateProvider backed by the ExchangeRate table.

    All methods are class methods - no instance state is maintained, so
    the class itself can be installed as the till services' provider.
    """

    @classmethod
    def get_base_currency(cls) -> str:
        return settings.TILL_BASE_CURRENCY.upper()

    @classmethod
    def get_current_rate(
        cls,
        currency: str,
        shop_id: int | None = None,
        at: datetime.datetime | None = None,
    ) -> ExchangeRate | None:
        """
        Get the rate in force for a currency.

        Args:
            currency: ISO 4217 code
            shop_id: Shop whose own rate takes precedence
            at: Point in time to evaluate (default: now)

        Returns:
            The shop-specific rate if one is active, otherwise the
            organization default, or None
        """
        rates = ExchangeRate.objects.effective(at).filter(currency=currency.upper())
        ordering = ("-effective_date", "-created_at")

        if shop_id is not None:
            rate = rates.for_scope(shop_id).order_by(*ordering).first()
            if rate is not None:
                return rate

        return rates.for_scope(None).order_by(*ordering).first()

    @classmethod
    def convert_to_base(
        cls,
        currency: str,
        amount: Decimal,
        shop_id: int | None = None,
    ) -> ConversionResult | None:
        """
        Convert an amount to base currency at the current buy rate.

        The base currency converts to itself at rate 1 with source
        "Base". Returns None when no rate is configured.
        """
        currency = currency.upper()
        amount = to_money(amount)

        if currency == cls.get_base_currency():
            return ConversionResult(
                converted_amount=amount,
                rate_used=Decimal("1"),
                rate_source=RATE_SOURCE_BASE,
            )

        rate = cls.get_current_rate(currency, shop_id)
        if rate is None:
            return None

        return ConversionResult(
            converted_amount=to_money(amount * rate.buy_rate),
            rate_used=to_rate(rate.buy_rate),
            rate_source=rate.source,
            rate_id=rate.id,
        )

    @classmethod
    def set_rate(
        cls,
        currency: str,
        buy_rate: Decimal,
        username: str,
        source: str = ExchangeRateSource.MANUAL,
        shop_id: int | None = None,
        api_rate: Decimal | None = None,
        notes: str = "",
    ) -> ServiceResult[ExchangeRate]:
        """
        Put a new buy rate in force for a currency.

        The previously active rate of the same scope is deactivated and
        expired in the same transaction.

        Args:
            currency: Foreign currency code (the base currency has no rate)
            buy_rate: Base-currency units paid per one foreign unit
            username: Who set the rate
            source: Manual, API or Adjusted
            shop_id: Shop override, or None for the organization default
            api_rate: Provider rate the buy rate was derived from
            notes: Free text

        Returns:
            ServiceResult containing the new ExchangeRate
        """
        currency = (currency or "").upper()
        if len(currency) != 3:
            return ServiceResult.failure(
                f"Invalid currency code: {currency!r}",
                error_code="INVALID_CURRENCY",
            )
        if currency == cls.get_base_currency():
            return ServiceResult.failure(
                "The base currency does not have an exchange rate",
                error_code="INVALID_CURRENCY",
            )

        buy_rate = to_rate(buy_rate)
        if buy_rate <= 0:
            return ServiceResult.failure(
                "Exchange rate must be positive",
                error_code="INVALID_RATE",
            )

        now = timezone.now()
        with cls.atomic():
            ExchangeRate.objects.filter(
                currency=currency,
                is_active=True,
            ).for_scope(shop_id).update(is_active=False, expires_on=now)

            rate = ExchangeRate.objects.create(
                currency=currency,
                buy_rate=buy_rate,
                source=source,
                shop_id=shop_id,
                effective_date=now,
                api_rate=to_rate(api_rate) if api_rate is not None else None,
                notes=notes or "",
                created_by_username=username,
            )

        cls.get_logger().info(
            "Exchange rate set",
            extra={
                "currency": currency,
                "buy_rate": str(buy_rate),
                "shop_id": shop_id,
                "rate_id": str(rate.id),
                "username": username,
            },
        )
        return ServiceResult.success(rate)

    @classmethod
    def get_all_current_rates(cls, shop_id: int | None = None) -> dict[str, ExchangeRate]:
        """Current rate per currency, resolved the same way as get_current_rate."""
        currencies = (
            ExchangeRate.objects.effective()
            .values_list("currency", flat=True)
            .distinct()
            .order_by("currency")
        )
        rates = {}
        for currency in currencies:
            rate = cls.get_current_rate(currency, shop_id)
            if rate is not None:
                rates[currency] = rate
        return rates

    @classmethod
    def get_rate_history(
        cls,
        currency: str,
        shop_id: int | None = None,
        limit: int = 50,
    ) -> list[ExchangeRate]:
        """Every rate ever set for a currency in one scope, newest first."""
        return list(
            ExchangeRate.objects.filter(currency=currency.upper())
            .for_scope(shop_id)
            .order_by("-effective_date", "-created_at")[:limit]
        )
