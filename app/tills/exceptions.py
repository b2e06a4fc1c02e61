"""
Till-specific exceptions.

Expected business outcomes (session not open, already voided,
self-approval, missing exchange rate) are returned as ServiceResult
failures. The exceptions here cover the paths that should not happen
in normal operation and are raised from models and locking helpers.

Exception Hierarchy:
    TillError (base for the till domain)
    └── ImmutableRecordError - Attempt to rewrite an append-only record

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)

Usage:
    from tills.exceptions import StaleRecordError

    try:
        session = check_version(TillSession, session_id, expected_version=3)
    except StaleRecordError as e:
        return ServiceResult.from_exception(e, "STALE_SESSION")
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ConflictError


class TillError(BaseApplicationError):
    """
    Base exception for all till operations.

    Inherits from BaseApplicationError for consistent API error responses.
    """

    default_error_code: str = "TILL_ERROR"


class ImmutableRecordError(TillError):
    """
    Raised when code tries to change or delete an append-only record.

    Ledger amounts, directions and currencies, and every shortage log,
    are fixed once written. Corrections go through compensating entries.

    Example:
        raise ImmutableRecordError(
            "ShortageLog records cannot be modified",
            details={"pk": str(self.pk)},
        )
    """

    default_error_code: str = "IMMUTABLE_RECORD"


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record was written by another request between the caller's read
    and its update (for example a second browser tab on the same drawer).
    The caller should reload and retry, or abort.

    Attributes:
        details: Contains pk, expected_version, and current_version
    """

    default_error_code: str = "STALE_RECORD"
