"""
Till models.

Usage:
    from tills.models import TillSession, TillTransaction
"""

from tills.models.daily_close import DailyClose
from tills.models.denomination import TillDenominationCount
from tills.models.exchange_rate import ExchangeRate
from tills.models.session import TillSession
from tills.models.shortage import ShortageLog
from tills.models.transaction import TillTransaction

__all__ = [
    "DailyClose",
    "ExchangeRate",
    "ShortageLog",
    "TillDenominationCount",
    "TillSession",
    "TillTransaction",
]
