"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic.

    Carries the rejection reason when raised from a validation result.
    """

    def __init__(self, message: str, reason: Optional[object] = None):
        super().__init__(message)
        self.reason = reason


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as an id that is already taken."""


class RestoreError(DomainError):
    """Restore aborted before any live data was replaced."""


class RestoreInProgressError(DomainError):
    """Operation blocked because a restore is replacing the live data."""


def entity_not_found(kind: str, entity_id: str) -> str:
    """Return message for a missing entity of the given kind."""
    return f"{kind} {entity_id} not found"


def duplicate_id(kind: str, entity_id: str) -> str:
    """Return message when an id is already present in a collection."""
    return f"{kind} with id '{entity_id}' already exists"


def safety_snapshot_failed(error: Exception) -> str:
    """Return message when the pre-restore safety copy could not be written."""
    return f"Restore aborted: could not write safety snapshot ({error})"


def orphaned_records(entry_count: int, payment_count: int, message_count: int) -> str:
    """Return message describing records that reference deleted workers."""
    parts = []
    if entry_count > 0:
        parts.append(f"{entry_count} entr{'ies' if entry_count != 1 else 'y'}")
    if payment_count > 0:
        parts.append(f"{payment_count} payment{'s' if payment_count != 1 else ''}")
    if message_count > 0:
        parts.append(f"{message_count} message{'s' if message_count != 1 else ''}")
    return f"Found {', '.join(parts)} referencing deleted workers"
