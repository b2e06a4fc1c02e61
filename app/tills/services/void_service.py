"""
Void engine: cancel a ledger entry with a compensating entry.

A void never edits or deletes the original entry's money fields. It
flags the original, writes a VOID_REVERSAL entry in the opposite
direction with the same amount, currency and rate, and reverses the
original's ledger effect on the session. All three happen in one
database transaction.

Linking the original to its reversal (original.related_transaction) is a
second, best-effort update after the void has been written. If it fails
the void stands; the reversal still points back at the original.

Dual control: the approving manager must differ both from the staff
member asking for the void and from whoever recorded the entry.

Usage:
    from tills.services import TillVoidService

    result = TillVoidService.void_transaction(
        transaction_id,
        staff_username="alice",
        manager_username="bob",
        reason="Entered twice",
    )
    reversal = result.data
"""

from __future__ import annotations

import uuid

from django.db import DatabaseError

from core.services import ServiceResult
from tills.ledger import apply_effect
from tills.models import TillSession, TillTransaction
from tills.services.base import TillServiceBase
from tills.state_machines import TillSessionStatus, TransactionDirection, TransactionType

VOID_FIELDS = [
    "is_voided",
    "voided_at",
    "voided_by_username",
    "void_reason",
    "void_approved_by_username",
    "updated_at",
]


class TillVoidService(TillServiceBase):
    """
    Service for voiding ledger entries.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def void_transaction(
        cls,
        transaction_id: uuid.UUID,
        staff_username: str,
        manager_username: str,
        reason: str,
    ) -> ServiceResult[TillTransaction]:
        """
        Void an entry of an open session.

        Args:
            transaction_id: Entry to void
            staff_username: Staff member asking for the void
            manager_username: Manager approving it (must differ from staff and recorder)
            reason: Why the entry is being voided

        Returns:
            ServiceResult containing the VOID_REVERSAL entry
        """
        if (staff_username or "").casefold() == (manager_username or "").casefold():
            cls.get_logger().warning(
                "Void refused, self approval",
                extra={"transaction_id": str(transaction_id), "staff": staff_username},
            )
            return ServiceResult.failure(
                "Staff cannot approve their own void",
                error_code="SELF_APPROVAL",
            )

        with cls.atomic():
            original = (
                TillTransaction.objects.select_for_update()
                .filter(pk=transaction_id)
                .first()
            )
            if original is None:
                return ServiceResult.failure(
                    f"Transaction {transaction_id} not found",
                    error_code="TRANSACTION_NOT_FOUND",
                )
            if original.is_voided:
                return ServiceResult.failure(
                    "Transaction is already voided",
                    error_code="ALREADY_VOIDED",
                )
            if original.is_reversal:
                return ServiceResult.failure(
                    "A void reversal cannot be voided",
                    error_code="CANNOT_VOID_REVERSAL",
                )
            if (manager_username or "").casefold() == original.recorded_by_username.casefold():
                cls.get_logger().warning(
                    "Void refused, approver recorded the entry",
                    extra={"transaction_id": str(original.id), "manager": manager_username},
                )
                return ServiceResult.failure(
                    "The staff member who recorded an entry cannot approve its void",
                    error_code="SELF_APPROVAL",
                )

            session, failure = cls._load_session_for_update(original.session_id)
            if failure is not None:
                return failure
            if not session.is_open:
                return ServiceResult.failure(
                    "Cannot void transactions in a closed session",
                    error_code="SESSION_NOT_OPEN",
                )

            if not (reason or "").strip():
                return ServiceResult.failure(
                    "A reason is required to void a transaction",
                    error_code="REASON_REQUIRED",
                )

            reversal = TillTransaction.objects.create(
                session=session,
                transaction_type=TransactionType.VOID_REVERSAL,
                direction=(
                    TransactionDirection.OUT
                    if original.direction == TransactionDirection.IN
                    else TransactionDirection.IN
                ),
                amount=original.amount,
                currency=original.currency,
                exchange_rate=original.exchange_rate,
                amount_in_base_currency=original.amount_in_base_currency,
                exchange_rate_source=original.exchange_rate_source,
                exchange_rate_id=original.exchange_rate_id,
                description=f"VOID: {original.description}",
                notes=f"Voided by {manager_username}: {reason}",
                original_transaction=original,
                recorded_by_username=staff_username,
                payment_id=original.payment_id,
                deposit_id=original.deposit_id,
                rental_id=original.rental_id,
            )

            original.mark_voided(
                voided_by=staff_username,
                approved_by=manager_username,
                reason=reason,
            )
            original.save(update_fields=VOID_FIELDS)

            apply_effect(session, original, sign=-1)
            session.save()

        try:
            cls._link_reversal(original, reversal)
        except DatabaseError:
            cls.get_logger().exception(
                "Void written but linking the reversal failed",
                extra={
                    "transaction_id": str(original.id),
                    "reversal_id": str(reversal.id),
                },
            )

        cls.get_logger().info(
            "Till transaction voided",
            extra={
                "transaction_id": str(original.id),
                "reversal_id": str(reversal.id),
                "session_id": str(session.id),
                "staff": staff_username,
                "manager": manager_username,
            },
        )
        return ServiceResult.success(reversal)

    @classmethod
    def _link_reversal(cls, original: TillTransaction, reversal: TillTransaction) -> None:
        """Point the voided entry at its reversal."""
        with cls.atomic():
            TillTransaction.objects.filter(pk=original.pk).update(related_transaction=reversal)
        original.related_transaction = reversal

    @classmethod
    def can_void_transaction(cls, transaction_id: uuid.UUID) -> tuple[bool, str]:
        """
        Check whether an entry could be voided right now.

        Returns:
            (True, "") or (False, reason)
        """
        entry = TillTransaction.objects.filter(pk=transaction_id).first()
        if entry is None:
            return False, "Transaction not found"
        if entry.is_voided:
            return False, "Already voided"
        if entry.is_reversal:
            return False, "Cannot void a void reversal"

        status = (
            TillSession.objects.filter(pk=entry.session_id)
            .values_list("status", flat=True)
            .first()
        )
        if status is None:
            return False, "Session not found"
        if status != TillSessionStatus.OPEN:
            return False, "Session is closed"
        return True, ""

    @classmethod
    def get_voided_transactions(cls, session_id: uuid.UUID) -> list[TillTransaction]:
        """Voided entries of a session, most recently voided first."""
        return list(
            TillTransaction.objects.filter(
                session_id=session_id,
                is_voided=True,
            ).order_by("-voided_at")
        )
