"""
Shared plumbing for the till services.

TillServiceBase adds to core.services.BaseService:
- the swappable exchange rate provider every till service converts with
- loading a session row under lock (with an optional version check)
- the two conversion policies: strict for ledger entries, and the
  opt-in, logged fallback for counts and shortages
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult
from tills.exceptions import StaleRecordError
from tills.locks import check_version, lock_for_update
from tills.models import TillSession
from tills.services.exchange_rate_service import ExchangeRateService
from tills.types import (
    RATE_SOURCE_BASE,
    RATE_SOURCE_FALLBACK,
    ConversionResult,
    to_money,
)

if TYPE_CHECKING:
    from tills.protocols import ExchangeRateProvider


class TillServiceBase(BaseService):
    """
    Base class for the till domain services.

    The exchange rate provider is held on this class, so replacing it
    through any subclass replaces it for all of them.
    """

    _exchange_rate_provider: ExchangeRateProvider = ExchangeRateService

    @classmethod
    def get_exchange_rate_provider(cls) -> ExchangeRateProvider:
        return TillServiceBase._exchange_rate_provider

    @classmethod
    def set_exchange_rate_provider(cls, provider: ExchangeRateProvider | None = None) -> None:
        """Install a provider; None restores ExchangeRateService."""
        TillServiceBase._exchange_rate_provider = provider or ExchangeRateService

    @classmethod
    def get_base_currency(cls) -> str:
        return settings.TILL_BASE_CURRENCY.upper()

    # ==========================================================================
    # Session loading
    # ==========================================================================

    @classmethod
    def _load_session_for_update(
        cls,
        session_id: uuid.UUID | str,
        expected_version: int | None = None,
    ) -> tuple[TillSession | None, ServiceResult | None]:
        """
        Re-read a session under select_for_update.

        Must be called inside cls.atomic(). Returns (session, None) or
        (None, failure) when the session is missing or, with
        expected_version, was modified since the caller read it.
        """
        if expected_version is None:
            session = lock_for_update(TillSession, session_id)
            if session is None:
                return None, cls._session_not_found(session_id)
            return session, None

        try:
            return check_version(TillSession, session_id, expected_version), None
        except NotFoundError:
            return None, cls._session_not_found(session_id)
        except StaleRecordError as exc:
            cls.get_logger().warning(
                "Stale session version",
                extra={"session_id": str(session_id), **exc.details},
            )
            return None, ServiceResult.from_exception(exc, "STALE_SESSION")

    @classmethod
    def _session_not_found(cls, session_id) -> ServiceResult:
        return ServiceResult.failure(
            f"Till session {session_id} not found",
            error_code="SESSION_NOT_FOUND",
        )

    @classmethod
    def _session_not_open(cls, session: TillSession) -> ServiceResult:
        return ServiceResult.failure(
            f"Till session is not open (status: {session.status})",
            error_code="SESSION_NOT_OPEN",
        )

    # ==========================================================================
    # Conversion
    # ==========================================================================

    @classmethod
    def _convert(
        cls,
        currency: str,
        amount: Decimal,
        shop_id: int | None = None,
    ) -> ConversionResult | None:
        """Strict conversion: None when a foreign currency has no rate."""
        currency = currency.upper()
        if currency == cls.get_base_currency():
            return ConversionResult(
                converted_amount=to_money(amount),
                rate_used=Decimal("1"),
                rate_source=RATE_SOURCE_BASE,
            )
        return cls.get_exchange_rate_provider().convert_to_base(currency, amount, shop_id)

    @classmethod
    def _convert_for_count(
        cls,
        currency: str,
        amount: Decimal,
        shop_id: int | None = None,
    ) -> ConversionResult | None:
        """
        Conversion used for denomination totals and shortage logs.

        Without a rate, and with TILL_EXCHANGE_RATE_FALLBACK enabled, the
        amount is taken at rate 1 and tagged with the "Fallback" source.
        With the setting disabled this returns None like _convert().
        """
        conversion = cls._convert(currency, amount, shop_id)
        if conversion is not None or not settings.TILL_EXCHANGE_RATE_FALLBACK:
            return conversion

        cls.get_logger().warning(
            "No exchange rate configured, counting at rate 1",
            extra={"currency": currency.upper(), "amount": str(amount), "shop_id": shop_id},
        )
        return ConversionResult(
            converted_amount=to_money(amount),
            rate_used=Decimal("1"),
            rate_source=RATE_SOURCE_FALLBACK,
        )

    @classmethod
    def _no_rate_failure(cls, currency: str) -> ServiceResult:
        return ServiceResult.failure(
            f"No exchange rate configured for {currency.upper()}",
            error_code="NO_EXCHANGE_RATE",
        )
