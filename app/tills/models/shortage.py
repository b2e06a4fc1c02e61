"""
ShortageLog model: immutable record holding a staff member accountable
for missing cash.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin
from tills.exceptions import ImmutableRecordError


class ShortageLog(UUIDPrimaryKeyMixin, BaseModel):
    """
    Accountability entry for a cash shortage.

    The amount is always stored as a positive number; amount_in_base is
    the base-currency equivalent at the rate in exchange_rate_used.
    Records are written once and never updated or deleted.
    """

    shop_id = models.PositiveIntegerField(db_index=True)
    session = models.ForeignKey(
        "tills.TillSession",
        on_delete=models.PROTECT,
        related_name="shortages",
    )
    daily_close = models.ForeignKey(
        "tills.DailyClose",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="shortages",
    )
    staff_username = models.CharField(max_length=150, db_index=True)
    staff_display_name = models.CharField(max_length=200, blank=True, default="")
    currency = models.CharField(max_length=3)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    amount_in_base = models.DecimalField(max_digits=14, decimal_places=2)
    exchange_rate_used = models.DecimalField(
        max_digits=14,
        decimal_places=6,
        default=Decimal("1"),
    )
    exchange_rate_source = models.CharField(max_length=20, blank=True, default="")
    reason = models.TextField()
    logged_by_username = models.CharField(max_length=150)
    logged_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-logged_at"]
        verbose_name = "Shortage Log"
        verbose_name_plural = "Shortage Logs"
        indexes = [
            models.Index(
                fields=["shop_id", "logged_at"],
                name="shortage_shop_logged_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="shortage_log_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"ShortageLog({self.staff_username}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                "ShortageLog records cannot be modified",
                details={"pk": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            "ShortageLog records cannot be deleted",
            details={"pk": str(self.pk)},
        )
