"""
TillTransaction model: append-only ledger entry of a drawer movement.

Entries are never deleted and their money fields never change. A void
flags the original and writes a new VOID_REVERSAL entry of the opposite
direction; the two are linked both ways:

    original.related_transaction  -> reversal
    reversal.original_transaction -> original
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin
from tills.exceptions import ImmutableRecordError
from tills.state_machines import TransactionDirection, TransactionType
from tills.types import RATE_SOURCE_BASE, to_money


class TillTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    One movement of money recorded against a till session.

    Fields:
        session: Owning TillSession
        transaction_type / direction: What happened and which way money moved
        amount / currency: As entered at the till
        exchange_rate / amount_in_base_currency: Conversion at record time
        exchange_rate_source / exchange_rate_id: Audit link to the rate used
        payment_id / deposit_id / rental_id: Links to calling subsystems
        is_voided ... void_approved_by_username: Void metadata (original)
        original_transaction: Set on a VOID_REVERSAL, points to what it reverses
        related_transaction: Set on a voided original, points to its reversal
        is_verified ... verified_at: Line-level manager sign-off

    Note:
        Only the void and verification metadata may change after insert.
        save() raises ImmutableRecordError for any other change.
    """

    IMMUTABLE_FIELDS = (
        "session_id",
        "transaction_type",
        "direction",
        "amount",
        "currency",
        "exchange_rate",
        "amount_in_base_currency",
        "original_transaction_id",
    )

    # ==========================================================================
    # Ledger
    # ==========================================================================

    session = models.ForeignKey(
        "tills.TillSession",
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    transaction_type = models.CharField(
        max_length=30,
        choices=TransactionType.choices,
        db_index=True,
    )
    direction = models.CharField(
        max_length=3,
        choices=TransactionDirection.choices,
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount in the entered currency (always positive)",
    )
    currency = models.CharField(max_length=3, default="THB")
    exchange_rate = models.DecimalField(
        max_digits=14,
        decimal_places=6,
        default=Decimal("1"),
        help_text="Base-currency units per one unit of `currency`",
    )
    amount_in_base_currency = models.DecimalField(max_digits=14, decimal_places=2)
    exchange_rate_source = models.CharField(
        max_length=20,
        default=RATE_SOURCE_BASE,
    )
    exchange_rate_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="ExchangeRate used for conversion (audit link)",
    )

    # ==========================================================================
    # Details
    # ==========================================================================

    description = models.CharField(max_length=500, blank=True, default="")
    category = models.CharField(max_length=50, blank=True, default="")
    recipient_name = models.CharField(max_length=200, blank=True, default="")
    receipt_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    transaction_time = models.DateTimeField(default=timezone.now, db_index=True)
    recorded_by_username = models.CharField(max_length=150)

    # ==========================================================================
    # Linkage
    # ==========================================================================

    payment_id = models.PositiveBigIntegerField(null=True, blank=True, db_index=True)
    deposit_id = models.PositiveBigIntegerField(null=True, blank=True, db_index=True)
    rental_id = models.PositiveBigIntegerField(null=True, blank=True, db_index=True)

    # ==========================================================================
    # Void
    # ==========================================================================

    is_voided = models.BooleanField(default=False, db_index=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by_username = models.CharField(max_length=150, blank=True, default="")
    void_reason = models.TextField(blank=True, default="")
    void_approved_by_username = models.CharField(max_length=150, blank=True, default="")
    original_transaction = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversals",
        help_text="On a reversal: the entry it cancels",
    )
    related_transaction = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="On a voided entry: its compensating reversal",
    )

    # ==========================================================================
    # Verification
    # ==========================================================================

    is_verified = models.BooleanField(default=False)
    verified_by_username = models.CharField(max_length=150, blank=True, default="")
    verified_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-transaction_time"]
        verbose_name = "Till Transaction"
        verbose_name_plural = "Till Transactions"
        indexes = [
            models.Index(
                fields=["session", "transaction_type"],
                name="till_txn_session_type_idx",
            ),
            models.Index(
                fields=["session", "is_voided"],
                name="till_txn_session_voided_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="till_transaction_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"TillTransaction({self.id}, {self.transaction_type}, "
            f"{self.direction} {self.amount} {self.currency})"
        )

    def save(self, *args, **kwargs):
        """Refuse to rewrite ledger fields of a persisted entry."""
        if not self._state.adding:
            persisted = (
                type(self)
                .objects.filter(pk=self.pk)
                .values(*self.IMMUTABLE_FIELDS)
                .first()
            )
            if persisted is not None:
                changed = [
                    name
                    for name in self.IMMUTABLE_FIELDS
                    if persisted[name] != getattr(self, name)
                ]
                if changed:
                    raise ImmutableRecordError(
                        "Ledger entries cannot be modified; void and re-record instead",
                        details={"pk": str(self.pk), "fields": changed},
                    )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            "Ledger entries cannot be deleted",
            details={"pk": str(self.pk)},
        )

    @property
    def is_reversal(self) -> bool:
        return self.transaction_type == TransactionType.VOID_REVERSAL

    @property
    def signed_amount(self) -> Decimal:
        """Amount with sign by direction (+ in, - out), in entered currency."""
        amount = to_money(self.amount)
        return amount if self.direction == TransactionDirection.IN else -amount

    def mark_voided(self, voided_by: str, approved_by: str, reason: str) -> None:
        self.is_voided = True
        self.voided_at = timezone.now()
        self.voided_by_username = voided_by
        self.void_approved_by_username = approved_by
        self.void_reason = reason

    def mark_verified(self, verified_by: str) -> None:
        self.is_verified = True
        self.verified_by_username = verified_by
        self.verified_at = timezone.now()
