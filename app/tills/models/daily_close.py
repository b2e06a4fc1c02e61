"""
DailyClose model: end-of-day aggregate for one shop on one date.

Created lazily (status OPEN) the first time the day is looked at,
populated by the close operation, and reopenable with a mandatory
reason. Every reopen is appended to reopen_history; the single-slot
reopen_* fields always hold the latest one.
"""

from __future__ import annotations

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from tills.state_machines import DailyCloseStatus
from tills.types import ZERO


class DailyClose(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    End-of-day close record for a shop.

    State Flow:
        OPEN -> CLOSED -> RECONCILED
        CLOSED / RECONCILED -> OPEN (reopen)
    """

    shop_id = models.PositiveIntegerField(db_index=True)
    date = models.DateField(db_index=True)

    status = FSMField(
        default=DailyCloseStatus.OPEN,
        choices=DailyCloseStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the day (managed by FSM)",
    )

    # ==========================================================================
    # Aggregates (base currency)
    # ==========================================================================

    total_cash_in = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_cash_out = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_dropped = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_variance = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_electronic_payments = models.DecimalField(
        max_digits=14, decimal_places=2, default=ZERO
    )
    session_count = models.PositiveIntegerField(default=0)
    sessions_with_variance = models.PositiveIntegerField(default=0)

    # ==========================================================================
    # Close / Reconcile
    # ==========================================================================

    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by_username = models.CharField(max_length=150, blank=True, default="")
    reconciled_at = models.DateTimeField(null=True, blank=True)
    reconciled_by_username = models.CharField(max_length=150, blank=True, default="")

    # ==========================================================================
    # Reopen Audit
    # ==========================================================================

    was_reopened = models.BooleanField(default=False)
    reopen_reason = models.TextField(blank=True, default="")
    reopened_at = models.DateTimeField(null=True, blank=True)
    reopened_by_username = models.CharField(max_length=150, blank=True, default="")
    reopen_history = models.JSONField(
        default=list,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Append-only list of {reason, by, at} for every reopen",
    )

    class Meta:
        ordering = ["-date"]
        verbose_name = "Daily Close"
        verbose_name_plural = "Daily Closes"
        constraints = [
            models.UniqueConstraint(
                fields=["shop_id", "date"],
                name="unique_daily_close_per_shop_date",
            ),
        ]

    def __str__(self) -> str:
        return f"DailyClose(shop={self.shop_id}, {self.date}, {self.status})"

    @property
    def is_closed(self) -> bool:
        return self.status in (DailyCloseStatus.CLOSED, DailyCloseStatus.RECONCILED)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=DailyCloseStatus.OPEN,
        target=DailyCloseStatus.CLOSED,
    )
    def close(self, closed_by: str):
        """
        Close the day. Aggregates are filled in by the caller first.

        Transition: OPEN -> CLOSED
        """
        self.closed_at = timezone.now()
        self.closed_by_username = closed_by

    @transition(
        field=status,
        source=DailyCloseStatus.CLOSED,
        target=DailyCloseStatus.RECONCILED,
    )
    def mark_reconciled(self, reconciled_by: str):
        """
        Mark every session of the day as verified and the books settled.

        Transition: CLOSED -> RECONCILED
        """
        self.reconciled_at = timezone.now()
        self.reconciled_by_username = reconciled_by

    @transition(
        field=status,
        source=[DailyCloseStatus.CLOSED, DailyCloseStatus.RECONCILED],
        target=DailyCloseStatus.OPEN,
    )
    def reopen(self, reason: str, reopened_by: str):
        """
        Reopen a closed day.

        Transition: CLOSED / RECONCILED -> OPEN

        The latest reopen is kept in the single-slot fields and every
        reopen is appended to reopen_history.
        """
        now = timezone.now()
        self.was_reopened = True
        self.reopen_reason = reason
        self.reopened_at = now
        self.reopened_by_username = reopened_by
        self.reopen_history = [
            *(self.reopen_history or []),
            {"reason": reason, "by": reopened_by, "at": now.isoformat()},
        ]
