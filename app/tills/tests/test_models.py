"""
Tests for till models and value types.

Covers balance arithmetic on TillSession, immutability of ledger rows,
final counts and shortage logs, and the money helpers.
"""

from decimal import Decimal

import pytest

from core.exceptions import ValidationError
from tills.exceptions import ImmutableRecordError
from tills.models import TillDenominationCount
from tills.state_machines import DenominationCountType
from tills.tests.factories import (
    ShortageLogFactory,
    TillSessionFactory,
    TillTransactionFactory,
)
from tills.types import CurrencyAmount, CurrencyDenominationBreakdown, to_money


# =============================================================================
# Money Helpers
# =============================================================================


class TestToMoney:
    def test_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money("10.004") == Decimal("10.00")

    def test_float_goes_through_str(self):
        assert to_money(33.1) == Decimal("33.10")

    def test_none_is_zero(self):
        assert to_money(None) == Decimal("0.00")

    def test_garbage_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            to_money("abc")

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_currency_amount_normalizes(self):
        line = CurrencyAmount("usd", "50")

        assert line.currency == "USD"
        assert line.amount == Decimal("50.00")


class TestCurrencyDenominationBreakdown:
    def test_total_and_variance(self):
        breakdown = CurrencyDenominationBreakdown(
            currency="thb",
            denominations={Decimal("1000"): 5, Decimal("100"): 3},
            expected_balance=Decimal("5200"),
        )

        assert breakdown.currency == "THB"
        assert breakdown.total == Decimal("5300.00")
        assert breakdown.variance == Decimal("100.00")

    def test_negative_quantity_rejected(self):
        breakdown = CurrencyDenominationBreakdown(
            currency="THB",
            denominations={Decimal("100"): -1},
        )

        with pytest.raises(ValidationError) as exc_info:
            breakdown.validate()

        assert exc_info.value.error_code == "INVALID_DENOMINATION"

    def test_unknown_denomination_rejected(self):
        breakdown = CurrencyDenominationBreakdown(
            currency="USD",
            denominations={Decimal("3"): 1},
        )

        with pytest.raises(ValidationError):
            breakdown.validate()

    def test_uncatalogued_currency_accepts_any_positive_value(self):
        breakdown = CurrencyDenominationBreakdown(
            currency="JPY",
            denominations={Decimal("10000"): 2},
        )

        breakdown.validate()

        assert breakdown.total == Decimal("20000.00")

    def test_dict_round_trip_keeps_quantities(self):
        breakdown = CurrencyDenominationBreakdown(
            currency="THB",
            denominations={Decimal("500"): 2, Decimal("20"): 1},
            expected_balance=Decimal("1000"),
        )

        restored = CurrencyDenominationBreakdown.from_dict(breakdown.to_dict())

        assert restored.denominations == {Decimal("500"): 2, Decimal("20"): 1}
        assert restored.expected_balance == Decimal("1000.00")


# =============================================================================
# TillSession
# =============================================================================


class TestTillSessionBalances:
    def test_expected_cash_formula(self, db):
        session = TillSessionFactory(
            opening_float=Decimal("5000"),
            total_cash_in=Decimal("1500"),
            total_cash_out=Decimal("200"),
            total_dropped=Decimal("1000"),
            total_topped_up=Decimal("300"),
        )

        assert session.expected_cash == Decimal("5600.00")

    def test_electronic_payments_are_not_cash(self, db):
        session = TillSessionFactory(
            total_card_payments=Decimal("800"),
            total_bank_transfers=Decimal("100"),
            total_mobile_wallet_payments=Decimal("50"),
        )

        assert session.total_electronic_payments == Decimal("950.00")
        assert session.expected_cash == Decimal("5000.00")

    def test_adjust_currency_balance_adds_unknown_currency(self, db):
        session = TillSessionFactory()

        session.adjust_currency_balance("gbp", Decimal("20"))

        assert session.get_currency_balance("GBP") == Decimal("20.00")
        assert session.currency_balances["GBP"] == "20.00"

    def test_compute_variances_covers_both_mappings(self, db):
        session = TillSessionFactory(currency_balances={"THB": "5000.00", "USD": "50.00"})

        variances = session.compute_variances({"THB": Decimal("4900"), "EUR": Decimal("10")})

        assert variances == {
            "EUR": Decimal("10.00"),
            "THB": Decimal("-100.00"),
            "USD": Decimal("-50.00"),
        }

    def test_ownership_is_case_insensitive(self, db):
        session = TillSessionFactory(staff_username="Alice")

        assert session.is_owned_by("alice")
        assert not session.is_owned_by("bob")

    def test_version_increments_on_save(self, db):
        session = TillSessionFactory()
        assert session.version == 1

        session.total_cash_in = Decimal("10")
        session.save()

        assert session.version == 2


# =============================================================================
# Immutable Records
# =============================================================================


class TestTillTransactionImmutability:
    def test_amount_cannot_change(self, db):
        entry = TillTransactionFactory()

        entry.amount = Decimal("999.00")

        with pytest.raises(ImmutableRecordError):
            entry.save()

    def test_cannot_delete(self, db):
        entry = TillTransactionFactory()

        with pytest.raises(ImmutableRecordError):
            entry.delete()

    def test_void_metadata_can_change(self, db):
        entry = TillTransactionFactory()

        entry.mark_voided(voided_by="alice", approved_by="manager", reason="Typo")
        entry.save()

        entry.refresh_from_db()
        assert entry.is_voided
        assert entry.void_approved_by_username == "manager"

    def test_signed_amount(self, db):
        entry = TillTransactionFactory(amount=Decimal("100"))

        assert entry.signed_amount == Decimal("100.00")


class TestShortageLogImmutability:
    def test_cannot_modify(self, db):
        shortage = ShortageLogFactory()

        shortage.amount = Decimal("1.00")

        with pytest.raises(ImmutableRecordError):
            shortage.save()

    def test_cannot_delete(self, db):
        shortage = ShortageLogFactory()

        with pytest.raises(ImmutableRecordError):
            shortage.delete()


class TestDenominationCountImmutability:
    def test_final_count_cannot_be_modified(self, db):
        count = TillDenominationCount.objects.create(
            session=TillSessionFactory(),
            count_type=DenominationCountType.CLOSING,
            is_final=True,
            counted_by_username="alice",
        )

        count.notes = "changed"

        with pytest.raises(ImmutableRecordError):
            count.save()

    def test_draft_count_can_be_modified(self, db):
        count = TillDenominationCount.objects.create(
            session=TillSessionFactory(),
            count_type=DenominationCountType.CLOSING,
            is_final=False,
            counted_by_username="alice",
        )

        count.notes = "recounted"
        count.save()

        count.refresh_from_db()
        assert count.notes == "recounted"
