"""
Tills app configuration.

This app provides cash drawer bookkeeping:
- Till sessions with multi-currency running balances
- Append-only ledger of drawer movements with compensating voids
- Denomination counts and variance at shift close
- Daily close aggregation and shortage accountability
"""

from django.apps import AppConfig


class TillsConfig(AppConfig):
    """Configuration for the tills application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "tills"
    verbose_name = "Tills"
