"""
TillSession model: one staff member's cash-drawer shift.

A session owns the authoritative running balances of a drawer:
- currency_balances: physical cash per currency (JSON, decimal strings)
- base-currency rollups: cash in/out, card, bank, mobile wallet, dropped,
  topped up

Every ledger entry mutates these balances in the same database
transaction that writes the entry (see tills.ledger.apply_effect).

Usage:
    from tills.models import TillSession

    session = TillSession.objects.create(
        shop_id=1,
        staff_username="alice",
        opening_float=Decimal("5000.00"),
        currency_balances={"THB": "5000.00"},
    )

    session.close(closed_by="alice", actual_balances={"THB": Decimal("5000")},
                  actual_cash=Decimal("5000"))
    session.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone

from django_fsm import RETURN_VALUE, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from tills.state_machines import SessionCustody, TillSessionStatus
from tills.types import ZERO, to_money


def _money_field(help_text: str, **kwargs) -> models.DecimalField:
    return models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=ZERO,
        help_text=help_text,
        **kwargs,
    )


class TillSession(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A cash drawer shift from open to verification.

    State Flow:
        OPEN -> CLOSED / CLOSED_WITH_VARIANCE -> VERIFIED

    Recount Flow (daily close reopened):
        CLOSED / CLOSED_WITH_VARIANCE -> RECONCILING -> CLOSED / CLOSED_WITH_VARIANCE

    Invariants:
        expected_cash = opening_float + total_cash_in - total_cash_out
                        - total_dropped + total_topped_up
        variance = actual_cash - expected_cash

    Note:
        The version field is auto-incremented on save for optimistic
        locking. Use tills.locks.check_version() to safely update with
        concurrency protection.
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    shop_id = models.PositiveIntegerField(
        db_index=True,
        help_text="Shop the drawer belongs to",
    )
    staff_username = models.CharField(
        max_length=150,
        db_index=True,
        help_text="Username of the staff member who opened the drawer",
    )
    staff_display_name = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Staff name as shown on receipts and reports",
    )
    opened_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the shift started",
    )
    closed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the shift was closed (latest close if recounted)",
    )
    closed_by_username = models.CharField(max_length=150, blank=True, default="")

    # ==========================================================================
    # Opening
    # ==========================================================================

    opening_float = _money_field("Starting cash in base currency")
    opening_notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # Running Balances
    # ==========================================================================

    currency_balances = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Physical cash per currency code, as decimal strings",
    )

    total_cash_in = _money_field("Cash received (base currency)")
    total_cash_out = _money_field("Cash paid out (base currency)")
    total_card_payments = _money_field("Card payments (base currency)")
    total_bank_transfers = _money_field("Bank transfers (base currency)")
    total_mobile_wallet_payments = _money_field("Mobile wallet payments (base currency)")
    total_dropped = _money_field("Cash dropped to the safe (base currency)")
    total_topped_up = _money_field("Cash topped up from the safe (base currency)")

    # ==========================================================================
    # Closing
    # ==========================================================================

    actual_cash = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Counted cash converted to base currency",
    )
    variance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="actual_cash - expected_cash at close",
    )
    actual_balances = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Counted cash per currency at close",
    )
    closing_variances = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Counted minus ledger balance per currency at close",
    )
    has_variance = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether any currency variance exceeded the tolerance at close",
    )
    closing_notes = models.TextField(blank=True, default="")
    is_force_close = models.BooleanField(default=False)
    force_close_approved_by = models.CharField(max_length=150, blank=True, default="")
    is_late_close = models.BooleanField(
        default=False,
        help_text="Closed on a later calendar day than it was opened",
    )

    # ==========================================================================
    # State & Ownership
    # ==========================================================================

    status = FSMField(
        default=TillSessionStatus.OPEN,
        choices=TillSessionStatus.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
        help_text="Current state of the session (managed by FSM)",
    )
    custody = models.CharField(
        max_length=10,
        choices=SessionCustody.choices,
        default=SessionCustody.STAFF,
        help_text="Owner of the drawer contents",
    )

    # ==========================================================================
    # Verification
    # ==========================================================================

    verified_by_username = models.CharField(max_length=150, blank=True, default="")
    verified_at = models.DateTimeField(null=True, blank=True)
    verification_notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-opened_at"]
        verbose_name = "Till Session"
        verbose_name_plural = "Till Sessions"
        indexes = [
            models.Index(
                fields=["shop_id", "opened_at"],
                name="till_session_shop_opened_idx",
            ),
            models.Index(
                fields=["staff_username", "status"],
                name="till_session_staff_status_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(opening_float__gte=0),
                name="till_session_opening_float_non_negative",
            ),
            models.UniqueConstraint(
                Lower("staff_username"),
                condition=models.Q(status=TillSessionStatus.OPEN),
                name="unique_open_till_session_per_staff",
            ),
        ]

    def __str__(self) -> str:
        return f"TillSession({self.id}, {self.staff_username}, {self.status})"

    # ==========================================================================
    # Balances
    # ==========================================================================

    @property
    def expected_cash(self) -> Decimal:
        """Cash that should be in the drawer, in base currency."""
        return to_money(
            to_money(self.opening_float)
            + to_money(self.total_cash_in)
            - to_money(self.total_cash_out)
            - to_money(self.total_dropped)
            + to_money(self.total_topped_up)
        )

    @property
    def total_electronic_payments(self) -> Decimal:
        return to_money(
            to_money(self.total_card_payments)
            + to_money(self.total_bank_transfers)
            + to_money(self.total_mobile_wallet_payments)
        )

    def get_currency_balance(self, currency: str) -> Decimal:
        return to_money((self.currency_balances or {}).get(currency.upper()))

    def get_currency_balances(self) -> dict[str, Decimal]:
        return {
            currency: to_money(amount)
            for currency, amount in (self.currency_balances or {}).items()
        }

    def adjust_currency_balance(self, currency: str, delta: Decimal) -> None:
        """Add `delta` to the drawer balance of `currency` (in memory)."""
        currency = currency.upper()
        balances = dict(self.currency_balances or {})
        balances[currency] = str(self.get_currency_balance(currency) + to_money(delta))
        self.currency_balances = balances

    def get_closing_variances(self) -> dict[str, Decimal]:
        return {
            currency: to_money(amount)
            for currency, amount in (self.closing_variances or {}).items()
        }

    def compute_variances(self, actual_balances: dict[str, Decimal]) -> dict[str, Decimal]:
        """Counted minus ledger balance for every currency in either mapping."""
        actual = {c.upper(): to_money(a) for c, a in actual_balances.items()}
        balances = self.get_currency_balances()
        return {
            currency: actual.get(currency, ZERO) - balances.get(currency, ZERO)
            for currency in sorted(set(actual) | set(balances))
        }

    # ==========================================================================
    # Ownership
    # ==========================================================================

    @property
    def is_open(self) -> bool:
        return self.status == TillSessionStatus.OPEN

    @property
    def opened_on(self):
        """Business date the session belongs to (shop-local)."""
        return timezone.localtime(self.opened_at).date()

    def is_owned_by(self, username: str) -> bool:
        return self.staff_username.casefold() == (username or "").casefold()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[TillSessionStatus.OPEN, TillSessionStatus.RECONCILING],
        target=RETURN_VALUE(
            TillSessionStatus.CLOSED,
            TillSessionStatus.CLOSED_WITH_VARIANCE,
        ),
    )
    def close(
        self,
        closed_by: str,
        actual_balances: dict[str, Decimal],
        actual_cash: Decimal,
        tolerance: Decimal = ZERO,
        notes: str = "",
    ):
        """
        Close the shift against counted cash.

        Transition: OPEN / RECONCILING -> CLOSED or CLOSED_WITH_VARIANCE

        Per-currency variance is counted minus ledger balance; the
        session closes with variance when any currency is off by more
        than `tolerance`.
        """
        variances = self.compute_variances(actual_balances)
        now = timezone.now()

        self.actual_balances = {c.upper(): str(to_money(a)) for c, a in actual_balances.items()}
        self.closing_variances = {c: str(v) for c, v in variances.items()}
        self.actual_cash = to_money(actual_cash)
        self.variance = self.actual_cash - self.expected_cash
        self.has_variance = any(abs(v) > tolerance for v in variances.values())
        self.closed_at = now
        self.closed_by_username = closed_by
        self.closing_notes = notes or ""
        self.is_late_close = self.opened_on < timezone.localdate(now)

        if self.has_variance:
            return TillSessionStatus.CLOSED_WITH_VARIANCE
        return TillSessionStatus.CLOSED

    @transition(
        field=status,
        source=[TillSessionStatus.CLOSED, TillSessionStatus.CLOSED_WITH_VARIANCE],
        target=TillSessionStatus.VERIFIED,
    )
    def verify(self, verified_by: str, notes: str = ""):
        """
        Manager sign-off. Terminal; custody passes to the shop.

        Transition: CLOSED / CLOSED_WITH_VARIANCE -> VERIFIED
        """
        self.verified_by_username = verified_by
        self.verified_at = timezone.now()
        self.verification_notes = notes or ""
        self.custody = SessionCustody.SHOP

    @transition(
        field=status,
        source=[TillSessionStatus.CLOSED, TillSessionStatus.CLOSED_WITH_VARIANCE],
        target=TillSessionStatus.RECONCILING,
    )
    def begin_reconciliation(self):
        """
        Pull a closed, unverified session back for a recount.

        Transition: CLOSED / CLOSED_WITH_VARIANCE -> RECONCILING

        Called when the owning daily close is reopened.
        """
        pass
