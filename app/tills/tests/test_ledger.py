"""Tests for the ledger effect table."""

from decimal import Decimal

import pytest

from tills.ledger import LEDGER_EFFECTS, apply_effect, effect_for, types_for_direction
from tills.state_machines import TransactionDirection, TransactionType
from tills.tests.factories import TillSessionFactory, TillTransactionFactory


class TestLedgerEffects:
    def test_every_type_but_reversal_has_an_effect(self):
        expected = set(TransactionType.values) - {TransactionType.VOID_REVERSAL.value}

        assert {str(t) for t in LEDGER_EFFECTS} == expected

    def test_plain_string_lookup(self):
        assert effect_for("card_payment") == effect_for(TransactionType.CARD_PAYMENT)
        assert effect_for("card_payment").affects_drawer is False

    def test_reversal_has_no_effect(self):
        with pytest.raises(KeyError):
            effect_for(TransactionType.VOID_REVERSAL)

    def test_directions_partition_types(self):
        ins = set(types_for_direction(TransactionDirection.IN))
        outs = set(types_for_direction(TransactionDirection.OUT))

        assert TransactionType.TOP_UP in ins
        assert TransactionType.DROP in outs
        assert not ins & outs


@pytest.mark.django_db
class TestApplyEffect:
    def test_record_then_reverse_is_identity(self):
        session = TillSessionFactory()
        entry = TillTransactionFactory(
            session=session,
            transaction_type=TransactionType.DROP,
            direction=TransactionDirection.OUT,
            amount=Decimal("300.00"),
        )

        apply_effect(session, entry)
        assert session.total_dropped == Decimal("300.00")
        assert session.get_currency_balance("THB") == Decimal("4700.00")

        apply_effect(session, entry, sign=-1)
        assert session.total_dropped == Decimal("0.00")
        assert session.get_currency_balance("THB") == Decimal("5000.00")
