"""
TillDenominationCount model: counted notes and coins for a session.

There is at most one count per (session, count_type). A draft may be
overwritten by the next save of the same type; a final count is locked.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin
from tills.exceptions import ImmutableRecordError
from tills.state_machines import DenominationCountType
from tills.types import ZERO, CurrencyDenominationBreakdown


class TillDenominationCount(UUIDPrimaryKeyMixin, BaseModel):
    """
    A denomination count taken at opening or closing.

    Fields:
        session: Counted TillSession
        count_type: OPENING or CLOSING
        currency_breakdowns: List of CurrencyDenominationBreakdown.to_dict()
        total_in_base: Counted total converted to base currency
        rate_fallback_currencies: Currencies converted without a configured rate
        is_final: Locked once True
    """

    session = models.ForeignKey(
        "tills.TillSession",
        on_delete=models.PROTECT,
        related_name="denomination_counts",
    )
    count_type = models.CharField(
        max_length=10,
        choices=DenominationCountType.choices,
    )
    currency_breakdowns = models.JSONField(
        default=list,
        blank=True,
        encoder=DjangoJSONEncoder,
    )
    total_in_base = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=ZERO,
        help_text="Counted total across currencies in base currency",
    )
    rate_fallback_currencies = models.JSONField(
        default=list,
        blank=True,
        help_text="Currencies counted at rate 1 because no exchange rate was configured",
    )
    is_final = models.BooleanField(default=False)
    counted_by_username = models.CharField(max_length=150)
    counted_at = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-counted_at"]
        verbose_name = "Denomination Count"
        verbose_name_plural = "Denomination Counts"
        constraints = [
            models.UniqueConstraint(
                fields=["session", "count_type"],
                name="unique_denomination_count_per_session_type",
            ),
        ]

    def __str__(self) -> str:
        state = "final" if self.is_final else "draft"
        return f"TillDenominationCount({self.session_id}, {self.count_type}, {state})"

    def save(self, *args, **kwargs):
        """Refuse to overwrite a final count."""
        if not self._state.adding:
            was_final = (
                type(self).objects.filter(pk=self.pk).values_list("is_final", flat=True).first()
            )
            if was_final:
                raise ImmutableRecordError(
                    "Final denomination counts cannot be modified",
                    details={"pk": str(self.pk)},
                )
        super().save(*args, **kwargs)

    def get_breakdowns(self) -> list[CurrencyDenominationBreakdown]:
        return [
            CurrencyDenominationBreakdown.from_dict(data)
            for data in (self.currency_breakdowns or [])
        ]

    def set_breakdowns(self, breakdowns: list[CurrencyDenominationBreakdown]) -> None:
        self.currency_breakdowns = [breakdown.to_dict() for breakdown in breakdowns]

    def get_breakdown(self, currency: str) -> CurrencyDenominationBreakdown | None:
        currency = currency.upper()
        for breakdown in self.get_breakdowns():
            if breakdown.currency == currency:
                return breakdown
        return None

    def totals_by_currency(self) -> dict[str, Decimal]:
        return {b.currency: b.total for b in self.get_breakdowns()}

    def variances_by_currency(self) -> dict[str, Decimal]:
        return {b.currency: b.variance for b in self.get_breakdowns()}
