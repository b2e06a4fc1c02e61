"""
Till services.

This module provides:
- TillSessionService: Session lifecycle and session queries
- TillTransactionService: Recording ledger entries
- TillVoidService: Voids through compensating entries
- DenominationService: Opening and closing counts
- DailyCloseService: End-of-day close, reopen and reconciliation
- ShortageService: Shortage accountability records
- TillReportService: Summaries and variance reports
- ExchangeRateService: Exchange rates and base-currency conversion

Usage:
    from tills.services import TillSessionService, TillVoidService

    result = TillSessionService.close_session(session.id, closed_by="alice")
    if not result.success:
        print(result.error_code)

    TillVoidService.void_transaction(entry.id, "alice", "bob", reason="Entered twice")
"""

from tills.services.base import TillServiceBase
from tills.services.daily_close_service import DailyCloseService
from tills.services.denomination_service import DenominationService
from tills.services.exchange_rate_service import ExchangeRateService
from tills.services.report_service import TillReportService
from tills.services.session_service import TillSessionService
from tills.services.shortage_service import ShortageService
from tills.services.transaction_service import TillTransactionService
from tills.services.void_service import TillVoidService

__all__ = [
    "DailyCloseService",
    "DenominationService",
    "ExchangeRateService",
    "ShortageService",
    "TillReportService",
    "TillServiceBase",
    "TillSessionService",
    "TillTransactionService",
    "TillVoidService",
]
