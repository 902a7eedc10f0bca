"""Workforce domain service.

Holds the live entity store for one session, gates writes through the
validators and persists every committed change under the primary key.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

from workledger.domain import store as reducers
from workledger.domain.backup import BackupRestoreManager, parse_backup_text
from workledger.domain.entities import (
    AttendanceStatus,
    AttendanceSummary,
    BackupDocument,
    BackupHistoryItem,
    Category,
    Entry,
    LedgerRecord,
    OrphanReport,
    OutboxMessage,
    Payment,
    RestoreReport,
    Subcategory,
    WorkType,
    Worker,
)
from workledger.domain.errors import RestoreInProgressError
from workledger.domain.ledger import (
    all_balances,
    attendance_summary,
    build_ledger,
    worker_balance,
)
from workledger.domain.migration import PRIMARY_KEY, SchemaMigrationGate
from workledger.domain.store import EntityStore
from workledger.domain.validation import (
    ACCEPTED,
    ValidationResult,
    validate,
)
from workledger.storage.base import KeyValueStore
from workledger.storage.mappers import store_to_blob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a validated write, with the entity that was written."""

    validation: ValidationResult
    entity: Optional[Any] = None

    @property
    def accepted(self) -> bool:
        return self.validation.accepted

    @property
    def reason(self):
        return self.validation.reason

    @property
    def message(self) -> Optional[str]:
        return self.validation.message

    def __bool__(self) -> bool:
        return self.accepted


def new_id() -> str:
    """Generate an opaque unique entity id."""
    return uuid.uuid4().hex


def build_entry(
    entry_id: str,
    worker_id: str,
    entry_date: Optional[date],
    status: AttendanceStatus | str,
    work_type: WorkType = WorkType.CATEGORY_BASED,
    amount: Optional[Decimal] = None,
    category_id: Optional[str] = None,
    subcategory_id: Optional[str] = None,
    work_name: Optional[str] = None,
    units: Optional[Decimal] = None,
    rate_per_unit: Optional[Decimal] = None,
    narration: Optional[str] = None,
) -> Entry:
    """Build an entry the way the entry form fills it in.

    Absent entries carry no amount and no work details. Unit-based entries
    always take their amount from units times rate. Fields that do not
    belong to the chosen work type are cleared.
    """
    if status == AttendanceStatus.ABSENT:
        return Entry(
            id=entry_id,
            worker_id=worker_id,
            date=entry_date,
            status=status,
            work_type=work_type,
            amount=Decimal("0"),
            narration="",
        )

    if work_type == WorkType.UNIT_BASED:
        category_id = subcategory_id = None
        if units is not None and rate_per_unit is not None:
            amount = units * rate_per_unit
    else:
        work_name = units = rate_per_unit = None

    return Entry(
        id=entry_id,
        worker_id=worker_id,
        date=entry_date,
        status=status,
        work_type=work_type,
        amount=amount if amount is not None else Decimal("0"),
        category_id=category_id,
        subcategory_id=subcategory_id,
        work_name=work_name.strip() if work_name else work_name,
        units=units,
        rate_per_unit=rate_per_unit,
        narration=narration or "",
    )


class WorkforceService:
    """Service for managing workers, their work records and backups."""

    def __init__(
        self,
        kv: KeyValueStore,
        backups: Optional[BackupRestoreManager] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize workforce service.

        Args:
            kv: Key-value store holding the persisted data
            backups: Optional backup manager (one bound to kv is created if omitted)
            clock: Source of the current time
        """
        self.kv = kv
        self.clock = clock
        self.backups = backups or BackupRestoreManager(kv, clock=clock)
        self._store = EntityStore()
        self._lock = threading.RLock()

    @property
    def store(self) -> EntityStore:
        """Current live store snapshot."""
        return self._store

    def load(self) -> EntityStore:
        """Load persisted data through the schema migration gate."""
        with self._lock:
            self._store = SchemaMigrationGate(self.kv, clock=self.clock).load()
            return self._store

    def _commit(self, new_store: EntityStore) -> None:
        """Persist a new store and make it live.

        The live store only changes once the write succeeded.
        """
        with self._lock:
            if self.backups.is_replacing:
                raise RestoreInProgressError("A restore is replacing the data")
            self.kv.set(PRIMARY_KEY, store_to_blob(new_store))
            self._store = new_store

    def _apply(
        self,
        candidate: Any,
        reducer: Callable[[EntityStore, Any], EntityStore],
    ) -> MutationResult:
        with self._lock:
            result = validate(candidate, self._store)
            if not result:
                logger.debug("Rejected %s: %s", type(candidate).__name__, result.reason)
                return MutationResult(result)
            self._commit(reducer(self._store, candidate))
            return MutationResult(result, candidate)

    def _apply_unchecked(self, reducer: Callable[..., EntityStore], *args: Any) -> None:
        with self._lock:
            self._commit(reducer(self._store, *args))

    # Workers
    def add_worker(
        self,
        name: str,
        opening_balance: Decimal = Decimal("0"),
        address: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> MutationResult:
        """Add a worker. The opening balance is fixed from here on."""
        worker = Worker(
            id=new_id(),
            name=name.strip(),
            opening_balance=opening_balance,
            address=address.strip() if address else address,
            phone=phone.strip() if phone else phone,
        )
        return self._apply(worker, reducers.add_worker)

    def update_worker(self, worker: Worker) -> MutationResult:
        return self._apply(replace(worker, name=worker.name.strip()), reducers.update_worker)

    def delete_worker(self, worker_id: str) -> None:
        """Delete a worker with all of its entries, payments and messages."""
        self._apply_unchecked(reducers.delete_worker, worker_id)

    def get_worker(self, worker_id: str) -> Optional[Worker]:
        return reducers.get_worker(self._store, worker_id)

    def find_worker_by_name(self, name: str) -> Optional[Worker]:
        """Find a worker by name, ignoring case and surrounding whitespace."""
        wanted = name.strip().lower()
        for worker in self._store.workers:
            if worker.name.strip().lower() == wanted:
                return worker
        return None

    def list_workers(self) -> list[Worker]:
        return sorted(self._store.workers, key=lambda w: w.name.lower())

    def find_orphans(self) -> OrphanReport:
        return reducers.find_orphans(self._store)

    def drop_orphans(self) -> OrphanReport:
        """Delete records referencing missing workers and report what was removed."""
        with self._lock:
            report = reducers.find_orphans(self._store)
            if not report.is_clean:
                self._commit(reducers.drop_orphans(self._store))
            return report

    # Categories
    def add_category(self, name: str) -> MutationResult:
        return self._apply(Category(id=new_id(), name=name.strip()), reducers.add_category)

    def update_category(self, category: Category) -> MutationResult:
        return self._apply(
            replace(category, name=category.name.strip()), reducers.update_category
        )

    def delete_category(self, category_id: str) -> None:
        """Delete a category, dropping subcategories that belonged only to it."""
        self._apply_unchecked(reducers.delete_category, category_id)

    def add_subcategory(self, name: str, category_ids: list[str] | tuple[str, ...]) -> MutationResult:
        subcategory = Subcategory(
            id=new_id(),
            name=name.strip(),
            category_ids=tuple(dict.fromkeys(category_ids)),
        )
        return self._apply(subcategory, reducers.add_subcategory)

    def update_subcategory(self, subcategory: Subcategory) -> MutationResult:
        subcategory = replace(
            subcategory,
            name=subcategory.name.strip(),
            category_ids=tuple(dict.fromkeys(subcategory.category_ids)),
        )
        return self._apply(subcategory, reducers.update_subcategory)

    def delete_subcategory(self, subcategory_id: str) -> None:
        self._apply_unchecked(reducers.delete_subcategory, subcategory_id)

    # Entries
    def add_entry(
        self,
        worker_id: str,
        entry_date: Optional[date],
        status: AttendanceStatus | str,
        work_type: WorkType = WorkType.CATEGORY_BASED,
        amount: Optional[Decimal] = None,
        category_id: Optional[str] = None,
        subcategory_id: Optional[str] = None,
        work_name: Optional[str] = None,
        units: Optional[Decimal] = None,
        rate_per_unit: Optional[Decimal] = None,
        narration: Optional[str] = None,
    ) -> MutationResult:
        """Record one day of attendance/work for a worker."""
        entry = build_entry(
            entry_id=new_id(),
            worker_id=worker_id,
            entry_date=entry_date,
            status=status,
            work_type=work_type,
            amount=amount,
            category_id=category_id,
            subcategory_id=subcategory_id,
            work_name=work_name,
            units=units,
            rate_per_unit=rate_per_unit,
            narration=narration,
        )
        return self._apply(entry, reducers.add_entry)

    def update_entry(self, entry: Entry) -> MutationResult:
        """Edit an entry in place. Its id and worker cannot change."""
        return self._apply(entry, reducers.update_entry)

    def delete_entry(self, entry_id: str) -> None:
        self._apply_unchecked(reducers.delete_entry, entry_id)

    # Payments
    def add_payment(
        self,
        worker_id: str,
        payment_date: Optional[date],
        amount: Decimal,
        payment_type: str = "Cash",
        notes: Optional[str] = None,
    ) -> MutationResult:
        payment = Payment(
            id=new_id(),
            worker_id=worker_id,
            date=payment_date,
            amount=amount,
            payment_type=(payment_type or "").strip(),
            notes=notes or "",
        )
        return self._apply(payment, reducers.add_payment)

    def update_payment(self, payment: Payment) -> MutationResult:
        return self._apply(payment, reducers.update_payment)

    def delete_payment(self, payment_id: str) -> None:
        self._apply_unchecked(reducers.delete_payment, payment_id)

    # Outbox
    def queue_message(
        self,
        worker_id: str,
        body: str,
        channel: str = "sms",
        phone: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> OutboxMessage:
        """Save a message snapshot to the outbox for sending later."""
        with self._lock:
            worker = reducers.get_worker(self._store, worker_id)
            message = OutboxMessage(
                id=new_id(),
                worker_id=worker_id,
                body=body,
                channel=channel,
                created_at=self.clock(),
                worker_name=worker.name if worker is not None else None,
                phone=phone if phone is not None else (worker.phone if worker else None),
                payment_id=payment_id,
            )
            self._commit(reducers.add_outbox_message(self._store, message))
            return message

    def mark_message_sent(self, message_id: str) -> None:
        self._apply_unchecked(reducers.mark_outbox_sent, message_id, self.clock())

    def delete_message(self, message_id: str) -> None:
        self._apply_unchecked(reducers.delete_outbox_message, message_id)

    # Reads
    def balance(self, worker_id: str) -> Decimal:
        return worker_balance(self._store, worker_id)

    def balances(self) -> dict[str, Decimal]:
        return all_balances(self._store)

    def ledger(self, worker_id: str) -> list[LedgerRecord]:
        return build_ledger(self._store, worker_id)

    def attendance(
        self,
        worker_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> AttendanceSummary:
        return attendance_summary(self._store, worker_id, start_date, end_date)

    # Backups
    def export_backup(self) -> dict[str, Any]:
        return self.backups.export_backup(self._store)

    def export_backup_to_file(self, directory: str | Path) -> Path:
        return self.backups.export_backup_to_file(self._store, directory)

    def restore_backup(self, document: BackupDocument) -> RestoreReport:
        """Restore a validated backup document over the live data.

        Raises:
            RestoreError: If the safety snapshot could not be written
        """
        with self._lock:
            restored, report = self.backups.restore(self._store, document)
            self._store = restored
            return report

    def restore_from_text(self, text: str) -> tuple[ValidationResult, Optional[RestoreReport]]:
        """Validate backup JSON text and restore it if the shape is valid.

        A malformed document is rejected before any safety snapshot is taken
        and leaves the live data untouched.
        """
        result, document = parse_backup_text(text)
        if not result:
            return result, None
        return ACCEPTED, self.restore_backup(document)

    def restore_from_file(self, path: str | Path) -> tuple[ValidationResult, Optional[RestoreReport]]:
        result, document = self.backups.import_backup_file(path)
        if not result:
            return result, None
        return ACCEPTED, self.restore_backup(document)

    def backup_history(self) -> list[BackupHistoryItem]:
        return self.backups.backup_history()

    def prune_backups(self, keep: int) -> list[str]:
        return self.backups.prune_backups(keep)
