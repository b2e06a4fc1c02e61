"""
Read-only till reports: session and daily summaries, variance views.

All totals are in base currency. Per-currency closing variances are
converted at the current rate for the variance alert; a currency without
a rate follows the same fallback policy as denomination counts.
"""

from __future__ import annotations

import datetime
import uuid
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from tills.models import DailyClose, TillSession
from tills.services.base import TillServiceBase
from tills.state_machines import DailyCloseStatus, TillSessionStatus
from tills.types import ZERO, DailyTillSummary, TillSessionSummary, to_money

CLOSED_STATUSES = (TillSessionStatus.CLOSED, TillSessionStatus.CLOSED_WITH_VARIANCE)


class TillReportService(TillServiceBase):
    """
    Service for till read models.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def _sessions_with_counts(cls) -> QuerySet[TillSession]:
        return TillSession.objects.annotate(
            entry_count=Count("transactions"),
            voided_entry_count=Count("transactions", filter=Q(transactions__is_voided=True)),
        )

    @classmethod
    def _summarize(cls, session: TillSession) -> TillSessionSummary:
        return TillSessionSummary(
            session_id=session.id,
            shop_id=session.shop_id,
            staff_username=session.staff_username,
            staff_display_name=session.staff_display_name,
            status=session.status,
            opened_at=session.opened_at,
            closed_at=session.closed_at,
            opening_float=to_money(session.opening_float),
            total_cash_in=to_money(session.total_cash_in),
            total_cash_out=to_money(session.total_cash_out),
            total_card_payments=to_money(session.total_card_payments),
            total_bank_transfers=to_money(session.total_bank_transfers),
            total_mobile_wallet_payments=to_money(session.total_mobile_wallet_payments),
            total_dropped=to_money(session.total_dropped),
            total_topped_up=to_money(session.total_topped_up),
            expected_cash=session.expected_cash,
            actual_cash=session.actual_cash,
            variance=session.variance,
            currency_balances=session.get_currency_balances(),
            closing_variances=session.get_closing_variances(),
            transaction_count=getattr(session, "entry_count", 0),
            voided_count=getattr(session, "voided_entry_count", 0),
            is_verified=session.status == TillSessionStatus.VERIFIED,
        )

    @classmethod
    def get_session_summary(cls, session_id: uuid.UUID) -> TillSessionSummary | None:
        session = cls._sessions_with_counts().filter(pk=session_id).first()
        if session is None:
            return None
        return cls._summarize(session)

    @classmethod
    def get_daily_summary(cls, shop_id: int, date: datetime.date) -> DailyTillSummary:
        """
        Aggregate every session opened at the shop on the date.

        The day status comes from the DailyClose record (OPEN when the
        day has never been looked at).
        """
        day_status = (
            DailyClose.objects.filter(shop_id=shop_id, date=date)
            .values_list("status", flat=True)
            .first()
        ) or DailyCloseStatus.OPEN

        summary = DailyTillSummary(shop_id=shop_id, date=date, day_status=day_status)
        sessions = cls._sessions_with_counts().filter(
            shop_id=shop_id,
            opened_at__date=date,
        ).order_by("opened_at")

        for session in sessions:
            summary.sessions.append(cls._summarize(session))
            summary.session_count += 1
            if session.status in (TillSessionStatus.OPEN, TillSessionStatus.RECONCILING):
                summary.open_session_count += 1
            if session.status == TillSessionStatus.VERIFIED:
                summary.verified_count += 1
            if session.has_variance:
                summary.sessions_with_variance += 1
            summary.total_cash_in += to_money(session.total_cash_in)
            summary.total_cash_out += to_money(session.total_cash_out)
            summary.total_dropped += to_money(session.total_dropped)
            summary.total_topped_up += to_money(session.total_topped_up)
            summary.total_variance += to_money(session.variance)
            summary.total_electronic_payments += session.total_electronic_payments

        return summary

    @classmethod
    def get_sessions_with_variance(
        cls,
        shop_id: int,
        from_date: datetime.date,
        to_date: datetime.date,
    ) -> list[TillSession]:
        """Sessions that closed outside tolerance, newest first; bounds inclusive."""
        return list(
            TillSession.objects.filter(
                shop_id=shop_id,
                has_variance=True,
                opened_at__date__gte=from_date,
                opened_at__date__lte=to_date,
            ).order_by("-opened_at")
        )

    @classmethod
    def get_total_variance_in_base(cls, session: TillSession) -> Decimal:
        """
        Sum of the session's closing variances in base currency.

        Sessions closed without per-currency variances report their
        base-currency variance. A currency with no rate (and the
        fallback disabled) is left out of the sum.
        """
        variances = session.get_closing_variances()
        if not variances:
            return to_money(session.variance)

        total = ZERO
        for currency, variance in variances.items():
            if not variance:
                continue
            conversion = cls._convert_for_count(currency, variance, session.shop_id)
            if conversion is None:
                cls.get_logger().warning(
                    "Variance left out of total, no exchange rate",
                    extra={"session_id": str(session.id), "currency": currency},
                )
                continue
            total += conversion.converted_amount
        return to_money(total)

    @classmethod
    def get_variance_alert_count(cls, shop_id: int, threshold: Decimal | None = None) -> int:
        """
        Unverified sessions closed in the last day whose total variance
        exceeds the threshold (TILL_VARIANCE_ALERT_THRESHOLD by default).
        """
        if threshold is None:
            threshold = settings.TILL_VARIANCE_ALERT_THRESHOLD
        threshold = to_money(threshold)

        recent = TillSession.objects.filter(
            shop_id=shop_id,
            status__in=CLOSED_STATUSES,
            closed_at__gte=timezone.now() - timedelta(days=1),
        )
        return sum(
            1 for session in recent if abs(cls.get_total_variance_in_base(session)) > threshold
        )

    @classmethod
    def get_recent_closed_sessions(cls, shop_id: int, days: int = 7) -> list[TillSession]:
        """Sessions closed in the last `days` days, most recently closed first."""
        return list(
            TillSession.objects.filter(
                shop_id=shop_id,
                closed_at__gte=timezone.now() - timedelta(days=days),
            )
            .exclude(status__in=[TillSessionStatus.OPEN, TillSessionStatus.RECONCILING])
            .order_by("-closed_at")
        )
