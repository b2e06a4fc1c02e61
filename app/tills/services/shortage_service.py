"""
Shortage tracker: accountability entries for missing cash.

A manager logs a shortage against the staff member whose drawer came up
short. The amount is always stored as a positive number together with
its base-currency equivalent; the record can never be edited afterwards.
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

from core.exceptions import ValidationError
from core.services import ServiceResult
from tills.models import DailyClose, ShortageLog, TillSession
from tills.services.base import TillServiceBase
from tills.types import to_money


class ShortageService(TillServiceBase):
    """
    Service for logging and querying shortages.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def log_shortage(
        cls,
        shop_id: int,
        session_id: uuid.UUID,
        staff_username: str,
        currency: str,
        amount: Decimal,
        reason: str,
        logged_by: str,
        daily_close_id: uuid.UUID | None = None,
        staff_display_name: str = "",
    ) -> ServiceResult[ShortageLog]:
        """
        Record a shortage.

        Args:
            shop_id: Shop where the cash went missing
            session_id: Session the shortage was found in
            staff_username: Staff member held accountable
            currency: Currency that was short
            amount: Shortage (the sign is ignored)
            reason: Manager's explanation
            logged_by: Manager logging it
            daily_close_id: Day close the shortage was found during, if any
            staff_display_name: Name for reports

        Returns:
            ServiceResult containing the ShortageLog
        """
        validation = cls.validate_required(
            staff_username=staff_username,
            reason=reason,
            logged_by=logged_by,
        )
        if validation is not None:
            return validation

        try:
            amount = abs(to_money(amount))
        except ValidationError as exc:
            return ServiceResult.from_exception(exc)
        if amount == 0:
            return ServiceResult.failure(
                "Shortage amount must not be zero",
                error_code="INVALID_AMOUNT",
            )

        session = TillSession.objects.filter(pk=session_id, shop_id=shop_id).first()
        if session is None:
            return cls._session_not_found(session_id)

        daily_close = None
        if daily_close_id is not None:
            daily_close = DailyClose.objects.filter(pk=daily_close_id, shop_id=shop_id).first()
            if daily_close is None:
                return ServiceResult.failure(
                    f"Daily close {daily_close_id} not found",
                    error_code="DAILY_CLOSE_NOT_FOUND",
                )

        currency = currency.upper()
        conversion = cls._convert_for_count(currency, amount, shop_id)
        if conversion is None:
            return cls._no_rate_failure(currency)

        with cls.atomic():
            shortage = ShortageLog.objects.create(
                shop_id=shop_id,
                session=session,
                daily_close=daily_close,
                staff_username=staff_username,
                staff_display_name=staff_display_name or session.staff_display_name,
                currency=currency,
                amount=amount,
                amount_in_base=conversion.converted_amount,
                exchange_rate_used=conversion.rate_used,
                exchange_rate_source=conversion.rate_source,
                reason=reason,
                logged_by_username=logged_by,
            )

        cls.get_logger().info(
            "Shortage logged",
            extra={
                "shortage_id": str(shortage.id),
                "session_id": str(session.id),
                "staff": staff_username,
                "amount": str(amount),
                "currency": currency,
                "amount_in_base": str(shortage.amount_in_base),
                "rate_source": conversion.rate_source,
            },
        )
        return ServiceResult.success(shortage)

    @classmethod
    def get_shortage_logs(
        cls,
        shop_id: int,
        from_date: datetime.date | None = None,
        to_date: datetime.date | None = None,
    ) -> list[ShortageLog]:
        """Shortages of a shop, most recent first; date bounds are inclusive."""
        shortages = ShortageLog.objects.filter(shop_id=shop_id)
        if from_date is not None:
            shortages = shortages.filter(logged_at__date__gte=from_date)
        if to_date is not None:
            shortages = shortages.filter(logged_at__date__lte=to_date)
        return list(shortages.order_by("-logged_at"))

    @classmethod
    def get_shortage_logs_by_staff(cls, shop_id: int, staff_username: str) -> list[ShortageLog]:
        return list(
            ShortageLog.objects.filter(
                shop_id=shop_id,
                staff_username__iexact=staff_username,
            ).order_by("-logged_at")
        )
