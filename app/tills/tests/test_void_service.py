"""
Tests for TillVoidService.

A void flags the original, writes a VOID_REVERSAL in the opposite
direction and restores every balance the original moved.
"""

from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError

from tills.ledger import effect_for
from tills.models import TillSession, TillTransaction
from tills.services import TillSessionService, TillTransactionService, TillVoidService
from tills.state_machines import TransactionDirection, TransactionType


def _reload(session):
    return TillSession.objects.get(pk=session.pk)


class TestVoidTransaction:
    def test_void_writes_reversal_and_restores_balances(self, open_session):
        payment = TillTransactionService.record_in(
            open_session.id, TransactionType.RENTAL_PAYMENT, Decimal("1500"), "alice"
        ).data

        result = TillVoidService.void_transaction(
            payment.id, staff_username="alice", manager_username="bob", reason="Entered twice"
        )

        assert result.success
        reversal = result.data
        assert reversal.transaction_type == TransactionType.VOID_REVERSAL
        assert reversal.direction == TransactionDirection.OUT
        assert reversal.amount == payment.amount
        assert reversal.original_transaction_id == payment.id
        assert reversal.notes == "Voided by bob: Entered twice"

        original = TillTransaction.objects.get(pk=payment.pk)
        assert original.is_voided is True
        assert original.voided_by_username == "alice"
        assert original.void_approved_by_username == "bob"
        assert original.related_transaction_id == reversal.id

        session = _reload(open_session)
        assert session.total_cash_in == Decimal("0.00")
        assert session.get_currency_balance("THB") == Decimal("5000.00")

    def test_void_of_outflow_adds_cash_back(self, open_session):
        drop = TillTransactionService.record_drop(open_session.id, Decimal("1000"), "alice").data

        reversal = TillVoidService.void_transaction(
            drop.id, "alice", "manager", "Wrong amount"
        ).data

        assert reversal.direction == TransactionDirection.IN
        session = _reload(open_session)
        assert session.total_dropped == Decimal("0.00")
        assert session.get_currency_balance("THB") == Decimal("5000.00")

    def test_void_of_card_payment_leaves_drawer_alone(self, open_session):
        card = TillTransactionService.record_in(
            open_session.id, TransactionType.CARD_PAYMENT, Decimal("800"), "alice"
        ).data

        TillVoidService.void_transaction(card.id, "alice", "manager", "Declined")

        session = _reload(open_session)
        assert session.total_card_payments == Decimal("0.00")
        assert session.get_currency_balance("THB") == Decimal("5000.00")

    def test_self_approval_rejected(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data

        result = TillVoidService.void_transaction(payment.id, "alice", "ALICE", "Oops")

        assert result.error_code == "SELF_APPROVAL"
        assert not TillTransaction.objects.get(pk=payment.pk).is_voided

    def test_recorder_cannot_approve_void_requested_by_someone_else(self, open_session):
        payment = TillTransactionService.record_in(
            open_session.id, TransactionType.RENTAL_PAYMENT, Decimal("1500"), "alice"
        ).data

        result = TillVoidService.void_transaction(
            payment.id, staff_username="carol", manager_username="Alice", reason="Wrong rental"
        )

        assert result.error_code == "SELF_APPROVAL"
        assert not TillTransaction.objects.get(pk=payment.pk).is_voided
        assert _reload(open_session).total_cash_in == Decimal("1500.00")

    def test_reason_required(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data

        result = TillVoidService.void_transaction(payment.id, "alice", "manager", "   ")

        assert result.error_code == "REASON_REQUIRED"

    def test_double_void_rejected(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data
        TillVoidService.void_transaction(payment.id, "alice", "manager", "Oops")

        result = TillVoidService.void_transaction(payment.id, "alice", "manager", "Again")

        assert result.error_code == "ALREADY_VOIDED"
        assert _reload(open_session).total_topped_up == Decimal("0.00")

    def test_reversal_cannot_be_voided(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data
        reversal = TillVoidService.void_transaction(payment.id, "alice", "manager", "Oops").data

        result = TillVoidService.void_transaction(reversal.id, "alice", "manager", "Undo")

        assert result.error_code == "CANNOT_VOID_REVERSAL"

    def test_closed_session_rejected(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data
        TillSessionService.close_session(
            open_session.id, "alice", actual_balances={"THB": Decimal("5100")}
        )

        result = TillVoidService.void_transaction(payment.id, "alice", "manager", "Late")

        assert result.error_code == "SESSION_NOT_OPEN"
        assert TillVoidService.can_void_transaction(payment.id) == (False, "Session is closed")

    def test_unknown_transaction(self, db):
        result = TillVoidService.void_transaction(
            "00000000-0000-0000-0000-000000000000", "alice", "manager", "Oops"
        )

        assert result.error_code == "TRANSACTION_NOT_FOUND"

    def test_void_stands_when_linking_fails(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data

        with patch.object(TillVoidService, "_link_reversal", side_effect=DatabaseError("boom")):
            result = TillVoidService.void_transaction(payment.id, "alice", "manager", "Oops")

        assert result.success
        original = TillTransaction.objects.get(pk=payment.pk)
        assert original.is_voided is True
        assert original.related_transaction_id is None
        assert result.data.original_transaction_id == payment.id
        assert _reload(open_session).total_topped_up == Decimal("0.00")


class TestVoidQueries:
    def test_can_void_transaction(self, open_session):
        payment = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data

        assert TillVoidService.can_void_transaction(payment.id) == (True, "")

        reversal = TillVoidService.void_transaction(payment.id, "alice", "manager", "Oops").data

        assert TillVoidService.can_void_transaction(payment.id) == (False, "Already voided")
        assert TillVoidService.can_void_transaction(reversal.id) == (
            False,
            "Cannot void a void reversal",
        )

    def test_get_voided_transactions(self, open_session):
        first = TillTransactionService.record_top_up(open_session.id, Decimal("100"), "alice").data
        TillTransactionService.record_top_up(open_session.id, Decimal("200"), "alice")
        TillVoidService.void_transaction(first.id, "alice", "manager", "Oops")

        voided = TillVoidService.get_voided_transactions(open_session.id)

        assert [entry.pk for entry in voided] == [first.pk]


ROLLUP_FIELDS = [
    "total_cash_in",
    "total_cash_out",
    "total_card_payments",
    "total_bank_transfers",
    "total_mobile_wallet_payments",
    "total_dropped",
    "total_topped_up",
]


def _rollups(session):
    session = _reload(session)
    return {field: getattr(session, field) for field in ROLLUP_FIELDS}, session.get_currency_balances()


class TestDrawerConservation:
    def test_balances_match_live_drawer_entries(self, open_session, usd_rate):
        sid = open_session.id
        TillTransactionService.record_in(sid, TransactionType.RENTAL_PAYMENT, Decimal("1500"), "alice")
        duplicate = TillTransactionService.record_in(
            sid, TransactionType.RENTAL_PAYMENT, Decimal("100"), "alice", currency="USD"
        ).data
        TillTransactionService.record_in(
            sid, TransactionType.SECURITY_DEPOSIT, Decimal("50"), "alice", currency="USD"
        )
        TillTransactionService.record_in(sid, TransactionType.CARD_PAYMENT, Decimal("800"), "alice")
        TillTransactionService.record_out(sid, TransactionType.PETTY_CASH, Decimal("200"), "alice")
        TillTransactionService.record_out(
            sid, TransactionType.DEPOSIT_REFUND, Decimal("20"), "alice", currency="USD"
        )
        TillTransactionService.record_drop(sid, Decimal("1000"), "alice")
        TillTransactionService.record_top_up(sid, Decimal("500"), "alice")
        assert TillVoidService.void_transaction(duplicate.id, "alice", "manager", "Entered twice").success

        expected = {"THB": Decimal("5000.00")}
        live = TillTransaction.objects.filter(session_id=sid, is_voided=False).exclude(
            transaction_type=TransactionType.VOID_REVERSAL
        )
        for entry in live:
            if effect_for(entry.transaction_type).affects_drawer:
                expected[entry.currency] = expected.get(entry.currency, Decimal("0")) + (
                    entry.signed_amount
                )

        balances = _reload(open_session).get_currency_balances()
        for currency, amount in expected.items():
            assert balances[currency] == amount
        assert balances["THB"] == Decimal("5800.00")
        assert balances["USD"] == Decimal("30.00")

    def test_void_restores_every_rollup(self, open_session, usd_rate):
        sid = open_session.id
        TillTransactionService.record_in(sid, TransactionType.RENTAL_PAYMENT, Decimal("1500"), "alice")
        TillTransactionService.record_in(sid, TransactionType.BANK_TRANSFER, Decimal("700"), "alice")
        TillTransactionService.record_in(
            sid, TransactionType.RENTAL_PAYMENT, Decimal("100"), "alice", currency="USD"
        )
        TillTransactionService.record_drop(sid, Decimal("1000"), "alice")
        before = _rollups(open_session)

        entries = [
            TillTransactionService.record_out(
                sid, TransactionType.FUEL_REIMBURSEMENT, Decimal("30"), "alice", currency="USD"
            ).data,
            TillTransactionService.record_in(
                sid, TransactionType.MOBILE_WALLET_PAYMENT, Decimal("250"), "alice"
            ).data,
            TillTransactionService.record_top_up(sid, Decimal("400"), "alice").data,
        ]
        for entry in entries:
            assert TillVoidService.void_transaction(entry.id, "alice", "manager", "Mistake").success

        assert _rollups(open_session) == before
