"""
End-of-day close for a shop.

Closing a day freezes the aggregate of every session opened at the shop
on that date. It is refused while any of those sessions is still open or
being recounted. A closed day can be reopened with a reason; closed but
unverified sessions of the day then go back to RECONCILING for a recount,
and the day can be closed again afterwards.

State Flow:
    OPEN -> CLOSED -> RECONCILED
    CLOSED / RECONCILED -> OPEN (reopen_day)

Usage:
    from tills.services import DailyCloseService

    result = DailyCloseService.perform_daily_close(shop_id=1, date=today, closed_by="manager")
    DailyCloseService.reopen_day(1, today, reason="Late drop found", reopened_by="manager")
"""

from __future__ import annotations

import datetime

from core.services import ServiceResult
from tills.models import DailyClose, TillSession
from tills.services.base import TillServiceBase
from tills.services.report_service import TillReportService
from tills.state_machines import DailyCloseStatus, TillSessionStatus

UNFINISHED_STATUSES = (TillSessionStatus.OPEN, TillSessionStatus.RECONCILING)
RECOUNTABLE_STATUSES = (TillSessionStatus.CLOSED, TillSessionStatus.CLOSED_WITH_VARIANCE)


class DailyCloseService(TillServiceBase):
    """
    Service for closing, reopening and reconciling shop-days.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def get_or_create_daily_close(cls, shop_id: int, date: datetime.date) -> DailyClose:
        """The day's record, created OPEN on first access."""
        daily_close, _ = DailyClose.objects.get_or_create(shop_id=shop_id, date=date)
        return daily_close

    @classmethod
    def get_daily_close(cls, shop_id: int, date: datetime.date) -> DailyClose | None:
        return DailyClose.objects.filter(shop_id=shop_id, date=date).first()

    @classmethod
    def is_day_closed(cls, shop_id: int, date: datetime.date) -> bool:
        return DailyClose.objects.filter(
            shop_id=shop_id,
            date=date,
            status__in=[DailyCloseStatus.CLOSED, DailyCloseStatus.RECONCILED],
        ).exists()

    @classmethod
    def _lock_daily_close(cls, shop_id: int, date: datetime.date) -> DailyClose | None:
        return DailyClose.objects.select_for_update().filter(shop_id=shop_id, date=date).first()

    @classmethod
    def _not_found(cls, shop_id: int, date: datetime.date) -> ServiceResult:
        return ServiceResult.failure(
            f"No daily close record for shop {shop_id} on {date}",
            error_code="DAILY_CLOSE_NOT_FOUND",
        )

    @classmethod
    def perform_daily_close(
        cls,
        shop_id: int,
        date: datetime.date,
        closed_by: str,
    ) -> ServiceResult[DailyClose]:
        """
        Aggregate and close a shop-day.

        Args:
            shop_id: Shop to close
            date: Business date
            closed_by: Manager closing the day

        Returns:
            ServiceResult containing the CLOSED DailyClose
        """
        validation = cls.validate_required(closed_by=closed_by)
        if validation is not None:
            return validation

        with cls.atomic():
            cls.get_or_create_daily_close(shop_id, date)
            daily_close = cls._lock_daily_close(shop_id, date)

            if daily_close.is_closed:
                return ServiceResult.failure(
                    "This day is already closed",
                    error_code="DAY_ALREADY_CLOSED",
                )

            unfinished = TillSession.objects.filter(
                shop_id=shop_id,
                opened_at__date=date,
                status__in=UNFINISHED_STATUSES,
            ).count()
            if unfinished:
                return ServiceResult.failure(
                    f"{unfinished} till session(s) still open for this day",
                    error_code="SESSIONS_STILL_OPEN",
                )

            summary = TillReportService.get_daily_summary(shop_id, date)
            daily_close.total_cash_in = summary.total_cash_in
            daily_close.total_cash_out = summary.total_cash_out
            daily_close.total_dropped = summary.total_dropped
            daily_close.total_variance = summary.total_variance
            daily_close.total_electronic_payments = summary.total_electronic_payments
            daily_close.session_count = summary.session_count
            daily_close.sessions_with_variance = summary.sessions_with_variance

            daily_close.close(closed_by=closed_by)
            daily_close.save()

        cls.get_logger().info(
            "Day closed",
            extra={
                "shop_id": shop_id,
                "date": date.isoformat(),
                "session_count": daily_close.session_count,
                "sessions_with_variance": daily_close.sessions_with_variance,
                "total_variance": str(daily_close.total_variance),
                "closed_by": closed_by,
            },
        )
        return ServiceResult.success(daily_close)

    @classmethod
    def reopen_day(
        cls,
        shop_id: int,
        date: datetime.date,
        reason: str,
        reopened_by: str,
    ) -> ServiceResult[DailyClose]:
        """
        Reopen a closed day.

        Closed sessions of the day that have not been verified move to
        RECONCILING so they can be recounted and closed again.
        """
        with cls.atomic():
            daily_close = cls._lock_daily_close(shop_id, date)
            if daily_close is None:
                return cls._not_found(shop_id, date)

            if daily_close.status == DailyCloseStatus.OPEN:
                return ServiceResult.failure(
                    "This day is already open",
                    error_code="DAY_ALREADY_OPEN",
                )

            if not (reason or "").strip():
                return ServiceResult.failure(
                    "A reason is required to reopen a day",
                    error_code="REASON_REQUIRED",
                )

            daily_close.reopen(reason=reason.strip(), reopened_by=reopened_by)
            daily_close.save()

            recount = TillSession.objects.select_for_update().filter(
                shop_id=shop_id,
                opened_at__date=date,
                status__in=RECOUNTABLE_STATUSES,
            )
            recount_ids = []
            for session in recount:
                session.begin_reconciliation()
                session.save()
                recount_ids.append(str(session.id))

        cls.get_logger().info(
            "Day reopened",
            extra={
                "shop_id": shop_id,
                "date": date.isoformat(),
                "reason": daily_close.reopen_reason,
                "reopened_by": reopened_by,
                "reopen_count": len(daily_close.reopen_history),
                "sessions_to_recount": recount_ids,
            },
        )
        return ServiceResult.success(daily_close)

    @classmethod
    def mark_reconciled(
        cls,
        shop_id: int,
        date: datetime.date,
        reconciled_by: str,
    ) -> ServiceResult[DailyClose]:
        """Settle a closed day once every one of its sessions is verified."""
        with cls.atomic():
            daily_close = cls._lock_daily_close(shop_id, date)
            if daily_close is None:
                return cls._not_found(shop_id, date)

            if daily_close.status != DailyCloseStatus.CLOSED:
                return ServiceResult.failure(
                    f"Only a closed day can be reconciled (status: {daily_close.status})",
                    error_code="DAY_NOT_CLOSED",
                )

            unverified = (
                TillSession.objects.filter(shop_id=shop_id, opened_at__date=date)
                .exclude(status=TillSessionStatus.VERIFIED)
                .count()
            )
            if unverified:
                return ServiceResult.failure(
                    f"{unverified} till session(s) not yet verified",
                    error_code="SESSIONS_NOT_VERIFIED",
                )

            daily_close.mark_reconciled(reconciled_by=reconciled_by)
            daily_close.save()

        cls.get_logger().info(
            "Day reconciled",
            extra={"shop_id": shop_id, "date": date.isoformat(), "reconciled_by": reconciled_by},
        )
        return ServiceResult.success(daily_close)
