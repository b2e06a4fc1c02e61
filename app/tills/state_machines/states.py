"""
State and type enums for till models.

This module defines the enums used by till models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

TillSession States:
    open → closed | closed_with_variance (shift close, force close)
    closed | closed_with_variance → verified (manager sign-off, terminal)
    closed | closed_with_variance → reconciling (daily close reopened)
    reconciling → closed | closed_with_variance (recount close)

DailyClose States:
    open → closed → reconciled
    closed | reconciled → open (reopen with reason)
"""

from django.db import models


class TillSessionStatus(models.TextChoices):
    """
    States for the TillSession lifecycle.

    Terminal state: VERIFIED

    State Flow:
        OPEN → CLOSED → VERIFIED
        OPEN → CLOSED_WITH_VARIANCE → VERIFIED

    Recount Flow:
        CLOSED / CLOSED_WITH_VARIANCE → RECONCILING → CLOSED / CLOSED_WITH_VARIANCE
    """

    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"
    CLOSED_WITH_VARIANCE = "closed_with_variance", "Closed With Variance"
    VERIFIED = "verified", "Verified"
    RECONCILING = "reconciling", "Reconciling"


class SessionCustody(models.TextChoices):
    """
    Who owns the drawer contents.

    STAFF while the opening staff member is accountable for the drawer,
    SHOP once a manager has verified the session.
    """

    STAFF = "staff", "Staff"
    SHOP = "shop", "Shop"


class DailyCloseStatus(models.TextChoices):
    """
    States for the DailyClose lifecycle.

    State Flow:
        OPEN → CLOSED → RECONCILED
        CLOSED / RECONCILED → OPEN (reopen)
    """

    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"
    RECONCILED = "reconciled", "Reconciled"


class TransactionDirection(models.TextChoices):
    """Whether money enters or leaves the drawer."""

    IN = "in", "In"
    OUT = "out", "Out"


class TransactionType(models.TextChoices):
    """
    Kinds of till ledger entries.

    The natural direction and the rollup bucket of each type live in
    tills.ledger.LEDGER_EFFECTS.
    """

    # Inflows
    RENTAL_PAYMENT = "rental_payment", "Rental Payment"
    BOOKING_DEPOSIT = "booking_deposit", "Booking Deposit"
    SECURITY_DEPOSIT = "security_deposit", "Security Deposit"
    DAMAGE_CHARGE = "damage_charge", "Damage Charge"
    LATE_FEE = "late_fee", "Late Fee"
    SURCHARGE = "surcharge", "Surcharge"
    MISCELLANEOUS_INCOME = "miscellaneous_income", "Miscellaneous Income"
    TOP_UP = "top_up", "Top Up"
    CARD_PAYMENT = "card_payment", "Card Payment"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    MOBILE_WALLET_PAYMENT = "mobile_wallet_payment", "Mobile Wallet Payment"

    # Outflows
    DEPOSIT_REFUND = "deposit_refund", "Deposit Refund"
    OVERPAYMENT_REFUND = "overpayment_refund", "Overpayment Refund"
    FUEL_REIMBURSEMENT = "fuel_reimbursement", "Fuel Reimbursement"
    AGENT_COMMISSION = "agent_commission", "Agent Commission"
    PETTY_CASH = "petty_cash", "Petty Cash"
    DROP = "drop", "Drop"
    CASH_SHORTAGE = "cash_shortage", "Cash Shortage"

    # Created only by the void engine
    VOID_REVERSAL = "void_reversal", "Void Reversal"


class DenominationCountType(models.TextChoices):
    """When a denomination count was taken."""

    OPENING = "opening", "Opening"
    CLOSING = "closing", "Closing"


class ExchangeRateSource(models.TextChoices):
    """Where an exchange rate came from."""

    MANUAL = "manual", "Manual"
    API = "api", "API"
    ADJUSTED = "adjusted", "Adjusted"
