"""
Till session lifecycle: open, close, force close, verify.

A staff member opens one session per shop per day. While it is open the
session belongs to them: only they can close it normally, and nobody can
sign off their own drawer. Closing compares the counted cash against the
ledger balances; verification by a different person ends the lifecycle
and passes custody of the drawer contents to the shop.

Usage:
    from tills.services import TillSessionService

    result = TillSessionService.open_session(
        shop_id=1,
        staff_username="alice",
        opening_float=Decimal("5000.00"),
    )
    session = result.data

    TillSessionService.close_session(
        session.id,
        closed_by="alice",
        actual_balances={"THB": Decimal("5500.00")},
    )
    TillSessionService.verify_session(session.id, verified_by="manager")
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError
from django.db.models import QuerySet
from django.utils import timezone

from core.exceptions import ValidationError
from core.services import ServiceResult
from tills.models import DailyClose, TillDenominationCount, TillSession
from tills.services.base import TillServiceBase
from tills.state_machines import (
    DailyCloseStatus,
    DenominationCountType,
    TillSessionStatus,
)
from tills.types import ZERO, to_money

CLOSABLE_STATUSES = (TillSessionStatus.OPEN, TillSessionStatus.RECONCILING)
CLOSED_STATUSES = (TillSessionStatus.CLOSED, TillSessionStatus.CLOSED_WITH_VARIANCE)


class TillSessionService(TillServiceBase):
    """
    Service for till session lifecycle operations.

    All methods are class methods - no instance state is maintained.
    """

    # ==========================================================================
    # Opening
    # ==========================================================================

    @classmethod
    def _open_blocker(cls, shop_id: int, staff_username: str) -> tuple[str, str] | None:
        """(error_code, message) for the first rule that forbids opening."""
        today = timezone.localdate()

        day_closed = DailyClose.objects.filter(
            shop_id=shop_id,
            date=today,
            status__in=[DailyCloseStatus.CLOSED, DailyCloseStatus.RECONCILED],
        ).exists()
        if day_closed:
            return "DAY_CLOSED", "Cannot open a session, this day has been closed"

        existing = cls.get_active_session_for_user(staff_username)
        if existing is not None:
            return (
                "SESSION_ALREADY_OPEN",
                f"{staff_username} already has an open till session at shop "
                f"{existing.shop_id}. Close it first.",
            )

        had_session_today = TillSession.objects.filter(
            shop_id=shop_id,
            staff_username__iexact=staff_username,
            opened_at__date=today,
        ).exists()
        if had_session_today:
            return (
                "SESSION_ALREADY_USED_TODAY",
                f"{staff_username} already had a till session at this shop today",
            )

        return None

    @classmethod
    def can_open_session(cls, shop_id: int, staff_username: str) -> tuple[bool, str]:
        """
        Check whether a staff member may open a session at a shop.

        Returns:
            (True, "") or (False, reason)
        """
        blocker = cls._open_blocker(shop_id, staff_username)
        if blocker is None:
            return True, ""
        return False, blocker[1]

    @classmethod
    def open_session(
        cls,
        shop_id: int,
        staff_username: str,
        opening_float: Decimal,
        staff_display_name: str = "",
        notes: str = "",
    ) -> ServiceResult[TillSession]:
        """
        Open a new till session.

        Every supported currency starts at zero in the drawer except the
        base currency, which starts at the opening float.

        Args:
            shop_id: Shop the drawer belongs to
            staff_username: Staff member taking the drawer
            opening_float: Starting cash in base currency
            staff_display_name: Name for receipts and reports
            notes: Free text

        Returns:
            ServiceResult containing the new TillSession
        """
        validation = cls.validate_required(staff_username=staff_username)
        if validation is not None:
            return validation

        try:
            opening_float = to_money(opening_float)
        except ValidationError as exc:
            return ServiceResult.from_exception(exc)
        if opening_float < 0:
            return ServiceResult.failure(
                "Opening float cannot be negative",
                error_code="INVALID_AMOUNT",
            )

        blocker = cls._open_blocker(shop_id, staff_username)
        if blocker is not None:
            error_code, message = blocker
            cls.get_logger().warning(
                "Session open refused",
                extra={"shop_id": shop_id, "staff": staff_username, "error_code": error_code},
            )
            return ServiceResult.failure(message, error_code=error_code)

        base = cls.get_base_currency()
        balances = {currency.upper(): str(ZERO) for currency in settings.TILL_SUPPORTED_CURRENCIES}
        balances[base] = str(opening_float)

        try:
            with cls.atomic():
                session = TillSession.objects.create(
                    shop_id=shop_id,
                    staff_username=staff_username,
                    staff_display_name=staff_display_name or staff_username,
                    opening_float=opening_float,
                    opening_notes=notes or "",
                    currency_balances=balances,
                )
        except IntegrityError:
            cls.get_logger().warning(
                "Session open refused, concurrent open",
                extra={"shop_id": shop_id, "staff": staff_username},
            )
            return ServiceResult.failure(
                f"{staff_username} already has an open till session. Close it first.",
                error_code="SESSION_ALREADY_OPEN",
            )

        cls.get_logger().info(
            "Till session opened",
            extra={
                "session_id": str(session.id),
                "shop_id": shop_id,
                "staff": staff_username,
                "opening_float": str(opening_float),
            },
        )
        return ServiceResult.success(session)

    # ==========================================================================
    # Closing
    # ==========================================================================

    @classmethod
    def close_session(
        cls,
        session_id: uuid.UUID,
        closed_by: str,
        actual_balances: dict[str, Decimal] | None = None,
        notes: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[TillSession]:
        """
        Close a session against the counted cash.

        Only the owning staff member can close an open session; a session
        being recounted after its day was reopened can be closed by
        whoever does the recount.

        Args:
            session_id: Session to close
            closed_by: Username closing the drawer
            actual_balances: Counted cash per currency. When omitted the
                final closing denomination count supplies it.
            notes: Closing notes
            expected_version: Version the caller read, for conflict detection

        Returns:
            ServiceResult containing the closed TillSession, with status
            CLOSED or CLOSED_WITH_VARIANCE
        """
        with cls.atomic():
            session, failure = cls._load_session_for_update(session_id, expected_version)
            if failure is not None:
                return failure

            if session.status not in CLOSABLE_STATUSES:
                return cls._session_not_open(session)

            if session.is_open and not session.is_owned_by(closed_by):
                return ServiceResult.failure(
                    "You can only close your own session",
                    error_code="NOT_SESSION_OWNER",
                )

            if actual_balances is None:
                count = TillDenominationCount.objects.filter(
                    session=session,
                    count_type=DenominationCountType.CLOSING,
                    is_final=True,
                ).first()
                if count is None:
                    return ServiceResult.failure(
                        "No counted balances given and no final closing count saved",
                        error_code="NO_CLOSING_COUNT",
                    )
                actual = count.totals_by_currency()
            else:
                try:
                    actual = {c.upper(): to_money(a) for c, a in actual_balances.items()}
                except ValidationError as exc:
                    return ServiceResult.from_exception(exc)
                if any(amount < 0 for amount in actual.values()):
                    return ServiceResult.failure(
                        "Counted cash cannot be negative",
                        error_code="INVALID_AMOUNT",
                    )

            actual_cash = ZERO
            for currency, amount in actual.items():
                conversion = cls._convert_for_count(currency, amount, session.shop_id)
                if conversion is None:
                    return cls._no_rate_failure(currency)
                actual_cash += conversion.converted_amount

            session.close(
                closed_by=closed_by,
                actual_balances=actual,
                actual_cash=actual_cash,
                tolerance=to_money(settings.TILL_VARIANCE_TOLERANCE),
                notes=notes,
            )
            session.is_force_close = False
            session.save()

        cls.get_logger().info(
            "Till session closed",
            extra={
                "session_id": str(session.id),
                "status": session.status,
                "variance": str(session.variance),
                "closed_by": closed_by,
                "is_late_close": session.is_late_close,
            },
        )
        return ServiceResult.success(session)

    @classmethod
    def force_close_session(
        cls,
        session_id: uuid.UUID,
        approved_by: str,
        closed_by: str,
        notes: str = "",
    ) -> ServiceResult[TillSession]:
        """
        Close a session without a count, with manager approval.

        Counted cash is taken to be exactly the ledger balance, so the
        session always closes with zero variance.
        """
        validation = cls.validate_required(approved_by=approved_by, closed_by=closed_by)
        if validation is not None:
            return validation

        with cls.atomic():
            session, failure = cls._load_session_for_update(session_id)
            if failure is not None:
                return failure

            if session.is_owned_by(approved_by) or (
                approved_by.casefold() == closed_by.casefold()
            ):
                return ServiceResult.failure(
                    "A force close must be approved by a different person",
                    error_code="SELF_APPROVAL",
                )

            if not session.is_open:
                return cls._session_not_open(session)

            session.close(
                closed_by=closed_by,
                actual_balances=session.get_currency_balances(),
                actual_cash=session.expected_cash,
                notes=notes,
            )
            session.is_force_close = True
            session.force_close_approved_by = approved_by
            session.save()

        cls.get_logger().info(
            "Till session force closed",
            extra={
                "session_id": str(session.id),
                "approved_by": approved_by,
                "closed_by": closed_by,
            },
        )
        return ServiceResult.success(session)

    # ==========================================================================
    # Verification
    # ==========================================================================

    @classmethod
    def verify_session(
        cls,
        session_id: uuid.UUID,
        verified_by: str,
        notes: str = "",
    ) -> ServiceResult[TillSession]:
        """
        Manager sign-off of a closed session. Cannot be undone.

        The verifier must not be the staff member who owns the session.
        """
        validation = cls.validate_required(verified_by=verified_by)
        if validation is not None:
            return validation

        with cls.atomic():
            session, failure = cls._load_session_for_update(session_id)
            if failure is not None:
                return failure

            if session.status not in CLOSED_STATUSES:
                return ServiceResult.failure(
                    "Session must be closed before verification",
                    error_code="SESSION_NOT_CLOSED",
                )

            if session.is_owned_by(verified_by):
                return ServiceResult.failure(
                    "You cannot verify your own session",
                    error_code="SELF_APPROVAL",
                )

            session.verify(verified_by=verified_by, notes=notes)
            session.save()

        cls.get_logger().info(
            "Till session verified",
            extra={"session_id": str(session.id), "verified_by": verified_by},
        )
        return ServiceResult.success(session)

    # ==========================================================================
    # Queries
    # ==========================================================================

    @classmethod
    def get_session(cls, session_id: uuid.UUID) -> TillSession | None:
        return TillSession.objects.filter(pk=session_id).first()

    @classmethod
    def get_active_session(cls, shop_id: int, staff_username: str) -> TillSession | None:
        """The staff member's open session at a shop."""
        return TillSession.objects.filter(
            shop_id=shop_id,
            staff_username__iexact=staff_username,
            status=TillSessionStatus.OPEN,
        ).first()

    @classmethod
    def get_active_session_for_user(cls, staff_username: str) -> TillSession | None:
        """The staff member's open session at any shop."""
        return TillSession.objects.filter(
            staff_username__iexact=staff_username,
            status=TillSessionStatus.OPEN,
        ).first()

    @classmethod
    def get_all_active_sessions_for_user(cls, staff_username: str) -> list[TillSession]:
        return list(
            TillSession.objects.filter(
                staff_username__iexact=staff_username,
                status=TillSessionStatus.OPEN,
            ).order_by("-opened_at")
        )

    @classmethod
    def get_active_sessions(cls, shop_id: int) -> list[TillSession]:
        """Every open drawer at a shop, oldest first."""
        return list(
            TillSession.objects.filter(
                shop_id=shop_id,
                status=TillSessionStatus.OPEN,
            ).order_by("opened_at")
        )

    @classmethod
    def get_sessions_for_date(cls, shop_id: int, date: datetime.date) -> list[TillSession]:
        """Every session opened at a shop on a business date, oldest first."""
        return list(
            TillSession.objects.filter(
                shop_id=shop_id,
                opened_at__date=date,
            ).order_by("opened_at")
        )

    @classmethod
    def get_session_history(
        cls,
        shop_id: int,
        from_date: datetime.date | None = None,
        to_date: datetime.date | None = None,
        staff_username: str | None = None,
        status: str | None = None,
    ) -> QuerySet[TillSession]:
        """
        Sessions of a shop, newest first, with optional filters.

        Date bounds are inclusive business dates.
        """
        sessions = TillSession.objects.filter(shop_id=shop_id)
        if from_date is not None:
            sessions = sessions.filter(opened_at__date__gte=from_date)
        if to_date is not None:
            sessions = sessions.filter(opened_at__date__lte=to_date)
        if staff_username:
            sessions = sessions.filter(staff_username__iexact=staff_username)
        if status:
            sessions = sessions.filter(status=status)
        return sessions.order_by("-opened_at")

    @staticmethod
    def is_session_stale(session: TillSession | None) -> bool:
        """True for a session still open from an earlier business day."""
        if session is None or not session.is_open:
            return False
        return session.opened_on < timezone.localdate()
