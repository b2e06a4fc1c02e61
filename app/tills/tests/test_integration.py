"""
End-to-end shift scenarios driven through the services.

Each test walks one drawer from open to a settled day and checks the
ledger, the session totals and the daily close agree.
"""

from decimal import Decimal

from django.utils import timezone

from tills.models import TillSession, TillTransaction
from tills.services import (
    DailyCloseService,
    DenominationService,
    ShortageService,
    TillReportService,
    TillSessionService,
    TillTransactionService,
    TillVoidService,
)
from tills.state_machines import DailyCloseStatus, DenominationCountType, TillSessionStatus, TransactionType
from tills.types import CurrencyAmount, CurrencyDenominationBreakdown


class TestBalancedShift:
    def test_open_trade_drop_close_reconcile(self, db):
        today = timezone.localdate()
        session = TillSessionService.open_session(1, "alice", Decimal("5000")).data

        TillTransactionService.record_rental_payment(session.id, "cash", Decimal("1500"), "alice")
        TillTransactionService.record_rental_payment(session.id, "card", Decimal("800"), "alice")
        TillTransactionService.record_drop(session.id, Decimal("1000"), "alice")

        closed = TillSessionService.close_session(
            session.id, "alice", actual_balances={"THB": Decimal("5500")}
        ).data
        assert closed.status == TillSessionStatus.CLOSED
        assert closed.expected_cash == Decimal("5500.00")
        assert closed.actual_cash == Decimal("5500.00")
        assert closed.variance == Decimal("0.00")
        assert closed.total_card_payments == Decimal("800.00")

        day = DailyCloseService.perform_daily_close(1, today, "manager").data
        assert day.total_cash_in == Decimal("1500.00")
        assert day.total_dropped == Decimal("1000.00")
        assert day.total_electronic_payments == Decimal("800.00")

        TillSessionService.verify_session(session.id, "manager")
        reconciled = DailyCloseService.mark_reconciled(1, today, "manager").data
        assert reconciled.status == DailyCloseStatus.RECONCILED


class TestMultiCurrencyShift:
    def test_usd_and_thb_drop(self, db, usd_rate):
        session = TillSessionService.open_session(1, "alice", Decimal("5000")).data
        TillTransactionService.record_foreign_currency_payment(
            session.id, "USD", Decimal("100"), "alice"
        )

        drops = TillTransactionService.record_multi_currency_drop(
            session.id,
            [CurrencyAmount("USD", Decimal("50")), CurrencyAmount("THB", Decimal("1000"))],
            recorded_by="alice",
        ).data

        assert sum(d.amount_in_base_currency for d in drops) == Decimal("2650.00")
        session = TillSession.objects.get(pk=session.pk)
        assert session.get_currency_balances()["USD"] == Decimal("50.00")
        assert session.get_currency_balances()["THB"] == Decimal("4000.00")
        assert session.total_dropped == Decimal("2650.00")

        result = DenominationService.save_denomination_count(
            session.id,
            DenominationCountType.CLOSING,
            [
                CurrencyDenominationBreakdown("THB", {Decimal("1000"): 4}),
                CurrencyDenominationBreakdown("USD", {Decimal("50"): 1}),
            ],
            counted_by="alice",
        )
        assert result.data.total_in_base == Decimal("5650.00")

        closed = TillSessionService.close_session(session.id, "alice").data
        assert closed.status == TillSessionStatus.CLOSED
        assert closed.actual_cash == Decimal("5650.00")


class TestShortShiftWithRecount:
    def test_void_short_close_reopen_and_shortage(self, db):
        today = timezone.localdate()
        session = TillSessionService.open_session(1, "alice", Decimal("5000")).data
        duplicate = TillTransactionService.record_in(
            session.id, TransactionType.LATE_FEE, Decimal("200"), "alice"
        ).data
        TillTransactionService.record_in(session.id, TransactionType.LATE_FEE, Decimal("200"), "alice")
        TillVoidService.void_transaction(duplicate.id, "alice", "manager", "Entered twice")

        closed = TillSessionService.close_session(
            session.id, "alice", actual_balances={"THB": Decimal("5100")}
        ).data
        assert closed.status == TillSessionStatus.CLOSED_WITH_VARIANCE
        assert closed.variance == Decimal("-100.00")

        DailyCloseService.perform_daily_close(1, today, "manager")
        DailyCloseService.reopen_day(1, today, "Recount requested", "manager")
        recount = TillSessionService.close_session(
            session.id, "manager", actual_balances={"THB": Decimal("5100")}
        ).data
        assert recount.status == TillSessionStatus.CLOSED_WITH_VARIANCE

        day = DailyCloseService.perform_daily_close(1, today, "manager").data
        shortage = ShortageService.log_shortage(
            1, session.id, "alice", "THB", Decimal("100"), "Short after recount", "manager",
            daily_close_id=day.id,
        ).data

        assert shortage.amount_in_base == Decimal("100.00")
        assert day.sessions_with_variance == 1
        assert TillTransaction.objects.filter(session_id=session.id).count() == 3
        assert TillReportService.get_total_variance_in_base(recount) == Decimal("-100.00")
