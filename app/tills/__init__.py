"""
Tills app for cash drawer bookkeeping.

This app handles:
- Till sessions: open, close against a count, force close, verify
- Multi-currency ledger of drawer movements (payments, deposits, drops)
- Voids through compensating entries under dual control
- Denomination counts and per-currency variance
- Daily close, reopen and reconciliation per shop
- Shortage accountability and variance reports

Usage:
    from tills.services import TillSessionService, TillTransactionService

    session = TillSessionService.open_session(
        shop_id=1,
        staff_username="alice",
        opening_float=Decimal("5000"),
    ).data

    TillTransactionService.record_rental_payment(
        session.id, "Cash", Decimal("1500"), "alice",
        payment_id=42, rental_id=7, description="Scooter rental",
    )
"""
