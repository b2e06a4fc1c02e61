"""
Tests for TillReportService.

Summaries are read models only; these tests drive the ledger through the
services and check what the reports make of it.
"""

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from tills.services import (
    DailyCloseService,
    TillReportService,
    TillSessionService,
    TillTransactionService,
    TillVoidService,
)
from tills.state_machines import DailyCloseStatus, TillSessionStatus, TransactionType


def _today():
    return timezone.localdate()


class TestSessionSummary:
    def test_summary_counts_entries_and_voids(self, open_session):
        payment = TillTransactionService.record_in(
            open_session.id, TransactionType.RENTAL_PAYMENT, Decimal("1500"), "alice"
        ).data
        TillTransactionService.record_in(
            open_session.id, TransactionType.CARD_PAYMENT, Decimal("800"), "alice"
        )
        TillVoidService.void_transaction(payment.id, "alice", "manager", "Duplicate")

        summary = TillReportService.get_session_summary(open_session.id)

        assert summary.status == TillSessionStatus.OPEN
        assert summary.transaction_count == 3
        assert summary.voided_count == 1
        assert summary.total_cash_in == Decimal("0.00")
        assert summary.total_electronic_payments == Decimal("800.00")
        assert summary.expected_cash == Decimal("5000.00")
        assert summary.is_verified is False

    def test_unknown_session(self, db):
        assert TillReportService.get_session_summary("00000000-0000-0000-0000-000000000000") is None


class TestDailySummary:
    def test_aggregates_every_session_of_the_day(self, open_session):
        TillTransactionService.record_in(
            open_session.id, TransactionType.RENTAL_PAYMENT, Decimal("1500"), "alice"
        )
        TillTransactionService.record_drop(open_session.id, Decimal("1000"), "alice")
        TillSessionService.close_session(
            open_session.id, "alice", actual_balances={"THB": Decimal("5400")}
        )
        bob = TillSessionService.open_session(1, "bob", Decimal("2000")).data
        TillTransactionService.record_in(
            bob.id, TransactionType.BANK_TRANSFER, Decimal("300"), "bob"
        )

        summary = TillReportService.get_daily_summary(1, _today())

        assert summary.day_status == DailyCloseStatus.OPEN
        assert summary.session_count == 2
        assert summary.open_session_count == 1
        assert summary.sessions_with_variance == 1
        assert summary.total_cash_in == Decimal("1500.00")
        assert summary.total_dropped == Decimal("1000.00")
        assert summary.total_variance == Decimal("-100.00")
        assert summary.total_electronic_payments == Decimal("300.00")
        assert [s.staff_username for s in summary.sessions] == ["alice", "bob"]

    def test_day_status_follows_daily_close(self, closed_session):
        DailyCloseService.perform_daily_close(1, _today(), closed_by="manager")

        summary = TillReportService.get_daily_summary(1, _today())

        assert summary.day_status == DailyCloseStatus.CLOSED
        assert summary.session_count == 1

    def test_empty_day(self, db):
        summary = TillReportService.get_daily_summary(1, _today())

        assert summary.session_count == 0
        assert summary.total_variance == Decimal("0.00")


class TestVarianceReports:
    def _close_with_usd_short(self, session):
        TillTransactionService.record_foreign_currency_payment(
            session.id, "USD", Decimal("10"), "alice"
        )
        return TillSessionService.close_session(
            session.id, "alice", actual_balances={"THB": Decimal("5000"), "USD": Decimal("0")}
        ).data

    def test_total_variance_in_base_converts_each_currency(self, open_session, usd_rate):
        session = self._close_with_usd_short(open_session)

        assert session.status == TillSessionStatus.CLOSED_WITH_VARIANCE
        assert TillReportService.get_total_variance_in_base(session) == Decimal("-330.00")

    def test_variance_alert_count_uses_threshold(self, open_session, usd_rate):
        self._close_with_usd_short(open_session)

        assert TillReportService.get_variance_alert_count(1) == 1
        assert TillReportService.get_variance_alert_count(1, threshold=Decimal("500")) == 0
        assert TillReportService.get_variance_alert_count(2) == 0

    def test_missing_rate_left_out_without_fallback(self, open_session, usd_rate, no_rate_fallback):
        session = self._close_with_usd_short(open_session)
        usd_rate.is_active = False
        usd_rate.save()

        assert TillReportService.get_total_variance_in_base(session) == Decimal("0.00")

    def test_sessions_with_variance_between_dates(self, open_session, usd_rate):
        self._close_with_usd_short(open_session)
        TillSessionService.open_session(1, "bob", Decimal("100"))

        sessions = TillReportService.get_sessions_with_variance(1, _today(), _today())

        assert [s.pk for s in sessions] == [open_session.pk]
        assert TillReportService.get_sessions_with_variance(
            1, _today() - timedelta(days=7), _today() - timedelta(days=1)
        ) == []

    def test_recent_closed_sessions(self, closed_session):
        TillSessionService.open_session(1, "bob", Decimal("100"))

        recent = TillReportService.get_recent_closed_sessions(1)

        assert [s.pk for s in recent] == [closed_session.pk]
