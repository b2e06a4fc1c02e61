"""
Ledger effect table for till transactions.

Every TransactionType maps to exactly one LedgerEffect describing:
- its natural direction (money in or out of the drawer)
- whether it moves physical cash (and so the per-currency drawer balance)
- which base-currency rollup field on TillSession it updates

Recording a transaction applies its effect with sign +1; voiding applies
the original's effect with sign -1. Both paths go through apply_effect(),
so a void is always the exact arithmetic inverse of the record.

Usage:
    from tills.ledger import apply_effect, effect_for

    effect = effect_for(TransactionType.CARD_PAYMENT)
    effect.bucket           # "total_card_payments"
    effect.affects_drawer   # False

    apply_effect(session, entry)            # record
    apply_effect(session, original, -1)     # void
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tills.state_machines import TransactionDirection, TransactionType
from tills.types import to_money

if TYPE_CHECKING:
    from tills.models import TillSession, TillTransaction


@dataclass(frozen=True)
class LedgerEffect:
    """How one transaction type moves session balances."""

    direction: str
    affects_drawer: bool
    bucket: str

    @property
    def is_inflow(self) -> bool:
        return self.direction == TransactionDirection.IN


_IN = TransactionDirection.IN
_OUT = TransactionDirection.OUT

CASH_IN = "total_cash_in"
CASH_OUT = "total_cash_out"
CARD = "total_card_payments"
BANK = "total_bank_transfers"
MOBILE_WALLET = "total_mobile_wallet_payments"
DROPPED = "total_dropped"
TOPPED_UP = "total_topped_up"

LEDGER_EFFECTS: dict[str, LedgerEffect] = {
    TransactionType.RENTAL_PAYMENT: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.BOOKING_DEPOSIT: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.SECURITY_DEPOSIT: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.DAMAGE_CHARGE: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.LATE_FEE: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.SURCHARGE: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.MISCELLANEOUS_INCOME: LedgerEffect(_IN, True, CASH_IN),
    TransactionType.TOP_UP: LedgerEffect(_IN, True, TOPPED_UP),
    TransactionType.CARD_PAYMENT: LedgerEffect(_IN, False, CARD),
    TransactionType.BANK_TRANSFER: LedgerEffect(_IN, False, BANK),
    TransactionType.MOBILE_WALLET_PAYMENT: LedgerEffect(_IN, False, MOBILE_WALLET),
    TransactionType.DEPOSIT_REFUND: LedgerEffect(_OUT, True, CASH_OUT),
    TransactionType.OVERPAYMENT_REFUND: LedgerEffect(_OUT, True, CASH_OUT),
    TransactionType.FUEL_REIMBURSEMENT: LedgerEffect(_OUT, True, CASH_OUT),
    TransactionType.AGENT_COMMISSION: LedgerEffect(_OUT, True, CASH_OUT),
    TransactionType.PETTY_CASH: LedgerEffect(_OUT, True, CASH_OUT),
    TransactionType.DROP: LedgerEffect(_OUT, True, DROPPED),
    TransactionType.CASH_SHORTAGE: LedgerEffect(_OUT, True, CASH_OUT),
}

ELECTRONIC_BUCKETS = (CARD, BANK, MOBILE_WALLET)


def effect_for(transaction_type: str) -> LedgerEffect:
    """
    Look up the effect of a transaction type.

    Raises:
        KeyError: For VOID_REVERSAL, which has no effect of its own; a
            reversal undoes its original's effect instead.
    """
    return LEDGER_EFFECTS[TransactionType(transaction_type)]


def types_for_direction(direction: str) -> list[str]:
    """Transaction types whose natural direction is `direction`."""
    return [
        transaction_type
        for transaction_type, effect in LEDGER_EFFECTS.items()
        if effect.direction == direction
    ]


def apply_effect(
    session: TillSession,
    entry: TillTransaction,
    sign: int = 1,
) -> None:
    """
    Apply (sign=+1) or reverse (sign=-1) an entry's effect on a session.

    Mutates the session in memory only; the caller saves it in the same
    atomic block as the ledger row.
    """
    effect = effect_for(entry.transaction_type)
    base_amount = to_money(entry.amount_in_base_currency) * sign

    current = getattr(session, effect.bucket)
    setattr(session, effect.bucket, to_money(current) + base_amount)

    if effect.affects_drawer:
        delta = to_money(entry.amount) * sign
        if not effect.is_inflow:
            delta = -delta
        session.adjust_currency_balance(entry.currency, delta)
