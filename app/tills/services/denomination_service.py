"""
Denomination counts: counted notes and coins per currency.

Every count compares against the session's own drawer balances;
whatever expected balance the caller sends is replaced. The
base-currency total converts foreign breakdowns at the current buy rate
(shop rate first, then organization default). Without a rate the count
either falls back to rate 1 (TILL_EXCHANGE_RATE_FALLBACK, logged and
recorded in rate_fallback_currencies) or is refused.

Usage:
    from tills.services import DenominationService
    from tills.types import CurrencyDenominationBreakdown

    DenominationService.save_denomination_count(
        session.id,
        DenominationCountType.CLOSING,
        [
            CurrencyDenominationBreakdown(
                currency="THB",
                denominations={Decimal("1000"): 5, Decimal("500"): 1},
            ),
        ],
        counted_by="alice",
    )
"""

from __future__ import annotations

import uuid

from django.utils import timezone

from core.exceptions import ValidationError
from core.services import ServiceResult
from tills.models import TillDenominationCount
from tills.services.base import TillServiceBase
from tills.state_machines import DenominationCountType
from tills.types import DENOMINATIONS, ZERO, CurrencyDenominationBreakdown


class DenominationService(TillServiceBase):
    """
    Service for saving and reading denomination counts.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def save_denomination_count(
        cls,
        session_id: uuid.UUID,
        count_type: str,
        breakdowns: list[CurrencyDenominationBreakdown],
        counted_by: str,
        is_final: bool = True,
        notes: str = "",
    ) -> ServiceResult[TillDenominationCount]:
        """
        Save an opening or closing count for an open session.

        A draft of the same type is replaced; a final one cannot be.

        Args:
            session_id: Counted session
            count_type: DenominationCountType.OPENING or CLOSING
            breakdowns: One breakdown per currency
            counted_by: Username of whoever counted
            is_final: Lock the count (default True)
            notes: Free text

        Returns:
            ServiceResult containing the saved TillDenominationCount
        """
        validation = cls.validate_required(counted_by=counted_by)
        if validation is not None:
            return validation

        if count_type not in DenominationCountType.values:
            return ServiceResult.failure(
                f"Unknown count type: {count_type}",
                error_code="INVALID_COUNT_TYPE",
            )

        currencies = [breakdown.currency for breakdown in breakdowns]
        if len(currencies) != len(set(currencies)):
            return ServiceResult.failure(
                "Each currency may appear only once in a count",
                error_code="DUPLICATE_CURRENCY",
            )
        try:
            for breakdown in breakdowns:
                breakdown.validate()
        except ValidationError as exc:
            return ServiceResult.from_exception(exc)

        with cls.atomic():
            session, failure = cls._load_session_for_update(session_id)
            if failure is not None:
                return failure
            if not session.is_open:
                return cls._session_not_open(session)

            for breakdown in breakdowns:
                breakdown.expected_balance = session.get_currency_balance(breakdown.currency)

            total_in_base = ZERO
            fallback_currencies = []
            for breakdown in breakdowns:
                conversion = cls._convert_for_count(
                    breakdown.currency, breakdown.total, session.shop_id
                )
                if conversion is None:
                    return cls._no_rate_failure(breakdown.currency)
                if conversion.is_fallback:
                    fallback_currencies.append(breakdown.currency)
                total_in_base += conversion.converted_amount

            count = (
                TillDenominationCount.objects.select_for_update()
                .filter(session=session, count_type=count_type)
                .first()
            )
            if count is not None and count.is_final:
                return ServiceResult.failure(
                    f"A final {count_type} count already exists for this session",
                    error_code="FINAL_COUNT_EXISTS",
                )
            if count is None:
                count = TillDenominationCount(session=session, count_type=count_type)

            count.set_breakdowns(breakdowns)
            count.total_in_base = total_in_base
            count.rate_fallback_currencies = fallback_currencies
            count.is_final = is_final
            count.counted_by_username = counted_by
            count.counted_at = timezone.now()
            count.notes = notes or ""
            count.save()

        cls.get_logger().info(
            "Denomination count saved",
            extra={
                "session_id": str(session.id),
                "count_type": count_type,
                "is_final": is_final,
                "total_in_base": str(total_in_base),
                "rate_fallback_currencies": fallback_currencies,
            },
        )
        return ServiceResult.success(count)

    @classmethod
    def get_denomination_count(
        cls,
        session_id: uuid.UUID,
        count_type: str,
        include_drafts: bool = False,
    ) -> TillDenominationCount | None:
        """The session's count of a type; drafts only when asked for."""
        counts = TillDenominationCount.objects.filter(
            session_id=session_id,
            count_type=count_type,
        )
        if not include_drafts:
            counts = counts.filter(is_final=True)
        return counts.order_by("-counted_at").first()

    @classmethod
    def get_denomination_counts(cls, session_id: uuid.UUID) -> list[TillDenominationCount]:
        return list(
            TillDenominationCount.objects.filter(session_id=session_id).order_by("-counted_at")
        )

    @staticmethod
    def get_denominations(currency: str) -> tuple:
        """Notes and coins issued for a currency, largest first (empty if unknown)."""
        return DENOMINATIONS.get(currency.upper(), ())
