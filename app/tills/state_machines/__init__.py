"""
State machine enums for till models.

This module defines the state and type enums used by till models with django-fsm.
"""

from tills.state_machines.states import (
    DailyCloseStatus,
    DenominationCountType,
    ExchangeRateSource,
    SessionCustody,
    TillSessionStatus,
    TransactionDirection,
    TransactionType,
)

__all__ = [
    "DailyCloseStatus",
    "DenominationCountType",
    "ExchangeRateSource",
    "SessionCustody",
    "TillSessionStatus",
    "TransactionDirection",
    "TransactionType",
]
