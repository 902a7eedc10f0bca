"""Validation rules gating every write to the entity store.

Validators never raise and never touch the store; they return a
ValidationResult whose reason is a RejectionReason member, so callers can
branch on it.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from workledger.domain.entities import (
    AttendanceStatus,
    WorkType,
    Worker,
    Category,
    Subcategory,
    Entry,
    Payment,
)
from workledger.domain.errors import ValidationError
from workledger.domain.store import (
    EntityStore,
    get_worker,
    get_category,
    get_subcategory,
    get_entry,
)


class RejectionReason(str, Enum):
    """Closed set of reasons a candidate mutation can be rejected."""

    MISSING_WORKER = "MissingWorker"
    MISSING_DATE = "MissingDate"
    INVALID_STATUS = "InvalidStatus"
    DUPLICATE_ATTENDANCE = "DuplicateAttendance"
    MISSING_CATEGORY = "MissingCategory"
    MISSING_SUBCATEGORY = "MissingSubcategory"
    SUBCATEGORY_NOT_ASSOCIATED = "SubcategoryNotAssociated"
    MISSING_WORK_NAME = "MissingWorkName"
    INVALID_UNITS = "InvalidUnits"
    INVALID_RATE = "InvalidRate"
    INVALID_AMOUNT = "InvalidAmount"
    MISSING_PAYMENT_TYPE = "MissingPaymentType"
    MISSING_NAME = "MissingName"
    DUPLICATE_NAME = "DuplicateName"
    IMMUTABLE_FIELD = "ImmutableField"
    MALFORMED_BACKUP = "MalformedBackup"


@dataclass(frozen=True)
class ValidationResult:
    """Accept/reject outcome of a validation."""

    accepted: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.accepted

    def raise_for_rejection(self) -> None:
        """Raise ValidationError if the result is a rejection."""
        if not self.accepted:
            raise ValidationError(self.message or str(self.reason), reason=self.reason)


ACCEPTED = ValidationResult(accepted=True)

_STATUS_CODES = {status.value for status in AttendanceStatus}


def reject(reason: RejectionReason, message: str) -> ValidationResult:
    """Build a rejection result."""
    return ValidationResult(accepted=False, reason=reason, message=message)


def _normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def _is_positive(value: Optional[Decimal]) -> bool:
    return value is not None and value.is_finite() and value > 0


def validate_entry(entry: Entry, store: EntityStore) -> ValidationResult:
    """Validate an entry being added, or edited in place by id.

    Args:
        entry: Candidate entry
        store: Current store snapshot

    Returns:
        ValidationResult
    """
    if not entry.worker_id or get_worker(store, entry.worker_id) is None:
        return reject(RejectionReason.MISSING_WORKER, "Worker is required")

    if entry.date is None:
        return reject(RejectionReason.MISSING_DATE, "Date is required")

    if entry.status not in _STATUS_CODES:
        return reject(RejectionReason.INVALID_STATUS, "Invalid attendance status")

    existing = get_entry(store, entry.id)
    if existing is not None and existing.worker_id != entry.worker_id:
        return reject(
            RejectionReason.IMMUTABLE_FIELD, "An entry cannot be moved to another worker"
        )

    for other in store.entries:
        if (
            other.worker_id == entry.worker_id
            and other.date == entry.date
            and other.id != entry.id
        ):
            return reject(
                RejectionReason.DUPLICATE_ATTENDANCE,
                "Attendance already recorded for this worker and date",
            )

    if entry.status == AttendanceStatus.ABSENT:
        return ACCEPTED

    if entry.work_type == WorkType.UNIT_BASED:
        if not (entry.work_name or "").strip():
            return reject(
                RejectionReason.MISSING_WORK_NAME, "Work name is required for Work B entries"
            )
        if not _is_positive(entry.units):
            return reject(
                RejectionReason.INVALID_UNITS,
                "Valid units completed is required for Work B entries",
            )
        if not _is_positive(entry.rate_per_unit):
            return reject(
                RejectionReason.INVALID_RATE,
                "Valid rate per unit is required for Work B entries",
            )
        if entry.amount != entry.units * entry.rate_per_unit:
            return reject(
                RejectionReason.INVALID_AMOUNT,
                "Amount must equal units completed times rate per unit",
            )
    else:
        if not entry.category_id:
            return reject(
                RejectionReason.MISSING_CATEGORY, "Category is required for Work A entries"
            )
        if not entry.subcategory_id:
            return reject(
                RejectionReason.MISSING_SUBCATEGORY,
                "Subcategory is required for Work A entries",
            )
        sub = get_subcategory(store, entry.subcategory_id)
        if sub is None:
            return reject(
                RejectionReason.MISSING_SUBCATEGORY, "Selected subcategory not found"
            )
        if entry.category_id not in sub.category_ids:
            return reject(
                RejectionReason.SUBCATEGORY_NOT_ASSOCIATED,
                "Subcategory is not associated with selected category",
            )

    if not _is_positive(entry.amount):
        return reject(
            RejectionReason.INVALID_AMOUNT, "Valid amount is required for non-absent entries"
        )

    return ACCEPTED


def validate_payment(payment: Payment, store: EntityStore) -> ValidationResult:
    """Validate a payment being added or edited."""
    if not payment.worker_id or get_worker(store, payment.worker_id) is None:
        return reject(RejectionReason.MISSING_WORKER, "Worker is required")
    if payment.date is None:
        return reject(RejectionReason.MISSING_DATE, "Date is required")
    if not _is_positive(payment.amount):
        return reject(RejectionReason.INVALID_AMOUNT, "Valid amount is required")
    if not (payment.payment_type or "").strip():
        return reject(RejectionReason.MISSING_PAYMENT_TYPE, "Payment type is required")
    return ACCEPTED


def validate_worker(worker: Worker, store: EntityStore) -> ValidationResult:
    """Validate a worker form.

    Names are unique across all workers, ignoring case and surrounding
    whitespace. The opening balance cannot change once the worker exists.
    """
    name = _normalize_name(worker.name)
    if not name:
        return reject(RejectionReason.MISSING_NAME, "Worker name is required")
    if worker.opening_balance is None or not worker.opening_balance.is_finite():
        return reject(RejectionReason.INVALID_AMOUNT, "Opening balance must be a number")

    existing = get_worker(store, worker.id)
    if existing is not None and existing.opening_balance != worker.opening_balance:
        return reject(
            RejectionReason.IMMUTABLE_FIELD, "Opening balance cannot be changed"
        )

    for other in store.workers:
        if other.id != worker.id and _normalize_name(other.name) == name:
            return reject(RejectionReason.DUPLICATE_NAME, "Worker name already exists")
    return ACCEPTED


def validate_category(category: Category, store: EntityStore) -> ValidationResult:
    """Validate a category form. Names are unique across all categories."""
    name = _normalize_name(category.name)
    if not name:
        return reject(RejectionReason.MISSING_NAME, "Category name is required")
    for other in store.categories:
        if other.id != category.id and _normalize_name(other.name) == name:
            return reject(RejectionReason.DUPLICATE_NAME, "Category name already exists")
    return ACCEPTED


def validate_subcategory(subcategory: Subcategory, store: EntityStore) -> ValidationResult:
    """Validate a subcategory form.

    Unlike workers and categories, a subcategory name only has to be unique
    among subcategories sharing at least one category with it.
    """
    name = _normalize_name(subcategory.name)
    if not name:
        return reject(RejectionReason.MISSING_NAME, "Subcategory name is required")

    if not subcategory.category_ids:
        return reject(
            RejectionReason.MISSING_CATEGORY, "Select at least one category"
        )
    for category_id in subcategory.category_ids:
        if get_category(store, category_id) is None:
            return reject(
                RejectionReason.MISSING_CATEGORY, f"Category {category_id} not found"
            )

    selected = set(subcategory.category_ids)
    for other in store.subcategories:
        if other.id == subcategory.id or _normalize_name(other.name) != name:
            continue
        if selected.intersection(other.category_ids):
            return reject(
                RejectionReason.DUPLICATE_NAME,
                "Subcategory name already exists in one of the selected categories",
            )
    return ACCEPTED


Candidate = Union[Entry, Payment, Worker, Category, Subcategory]

_VALIDATORS = {
    Entry: validate_entry,
    Payment: validate_payment,
    Worker: validate_worker,
    Category: validate_category,
    Subcategory: validate_subcategory,
}


def validate(candidate: Candidate, store: EntityStore) -> ValidationResult:
    """Validate any candidate entity against the current store."""
    validator = _VALIDATORS.get(type(candidate))
    if validator is None:
        raise TypeError(f"No validator for {type(candidate).__name__}")
    return validator(candidate, store)
