"""
ExchangeRate model: buy rate for converting foreign cash to base currency.

A rate is either shop-specific (shop_id set) or the organization default
(shop_id null). Lookups prefer the shop's own rate and fall back to the
default.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin
from tills.state_machines import ExchangeRateSource


class ExchangeRateQuerySet(models.QuerySet):
    """QuerySet helpers for rate lookup."""

    def effective(self, at=None):
        """Active rates in force at `at` (default: now)."""
        at = at or timezone.now()
        return self.filter(is_active=True, effective_date__lte=at).filter(
            Q(expires_on__isnull=True) | Q(expires_on__gt=at)
        )

    def for_scope(self, shop_id: int | None):
        if shop_id is None:
            return self.filter(shop_id__isnull=True)
        return self.filter(shop_id=shop_id)


class ExchangeRate(UUIDPrimaryKeyMixin, BaseModel):
    """
    Base-currency units paid per one unit of `currency`.

    Fields:
        currency: ISO 4217 code of the foreign currency
        buy_rate: Rate used when the shop takes in foreign cash
        source: Manual, API or Adjusted
        shop_id: Shop override, or null for the organization default
        effective_date / expires_on: Validity window
        api_rate: Provider rate when the buy rate was adjusted from it
    """

    currency = models.CharField(max_length=3, db_index=True)
    buy_rate = models.DecimalField(max_digits=14, decimal_places=6)
    source = models.CharField(
        max_length=10,
        choices=ExchangeRateSource.choices,
        default=ExchangeRateSource.MANUAL,
    )
    shop_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)
    effective_date = models.DateTimeField(default=timezone.now)
    expires_on = models.DateTimeField(null=True, blank=True)
    api_rate = models.DecimalField(max_digits=14, decimal_places=6, null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True, db_index=True)
    created_by_username = models.CharField(max_length=150, blank=True, default="")

    objects = ExchangeRateQuerySet.as_manager()

    class Meta:
        ordering = ["-effective_date"]
        verbose_name = "Exchange Rate"
        verbose_name_plural = "Exchange Rates"
        indexes = [
            models.Index(
                fields=["currency", "shop_id", "is_active"],
                name="exchange_rate_lookup_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(buy_rate__gt=0),
                name="exchange_rate_buy_rate_positive",
            ),
        ]

    def __str__(self) -> str:
        scope = f"shop {self.shop_id}" if self.shop_id is not None else "default"
        return f"ExchangeRate({self.currency} @ {self.buy_rate}, {scope})"
