"""
Concurrency control utilities for till operations.

A TillSession row is the single point of contention per drawer. Every
read-modify-write of a session happens inside transaction.atomic() on a
row re-read with select_for_update(), so two requests for the same drawer
are serialized at the database. Callers that hold a copy of the session
(a UI form, a second browser tab) can also pass the version they read;
check_version() then rejects the write if anything changed in between.

Usage:
    from tills.locks import check_version, lock_for_update

    with transaction.atomic():
        session = check_version(TillSession, session_id, expected_version=3)
        session.total_cash_in += amount
        session.save()  # Version auto-increments
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction

from core.exceptions import NotFoundError
from tills.exceptions import StaleRecordError

if TYPE_CHECKING:
    from typing import Any

# Type variable for model classes
T = TypeVar("T", bound=models.Model)


def lock_for_update(model_class: type[T], pk: Any) -> T | None:
    """
    Re-read a row and lock it until the surrounding transaction ends.

    Returns:
        The locked instance, or None if the row does not exist

    Note:
        Must be called within a transaction context.
    """
    return model_class.objects.select_for_update().filter(pk=pk).first()


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Atomically check version and lock a record for update.

    Combines optimistic locking (version check) with pessimistic locking
    (select_for_update) for the actual update operation.

    Args:
        model_class: Django model class (must have 'version' field)
        pk: Primary key of the record
        expected_version: Version the caller expects

    Returns:
        The locked model instance (within a transaction)

    Raises:
        StaleRecordError: If version doesn't match (concurrent modification)
        NotFoundError: If record doesn't exist

    Note:
        Must be called within a transaction context. The lock is held
        until the transaction commits or rolls back.
    """
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )

        if instance is None:
            model_name = model_class.__name__
            current = model_class.objects.filter(pk=pk).values("version").first()
            if current is None:
                raise NotFoundError(
                    f"{model_name} {pk} not found",
                    error_code=f"{model_name.upper()}_NOT_FOUND",
                    details={"pk": str(pk)},
                )

            raise StaleRecordError(
                f"{model_name} {pk} has been modified "
                f"(expected version {expected_version}, current {current['version']})",
                details={
                    "pk": str(pk),
                    "expected_version": expected_version,
                    "current_version": current["version"],
                },
            )

        return instance


__all__ = [
    "check_version",
    "lock_for_update",
]
