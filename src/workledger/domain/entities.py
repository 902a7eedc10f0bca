"""Domain model entities for workledger.

These are pure data classes representing business concepts, independent of
how the data is persisted. Persistence uses camelCase JSON documents; the
mapping lives in workledger.storage.mappers.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class AttendanceStatus(str, Enum):
    """Attendance status of an entry, stored as single-letter codes."""

    PRESENT = "P"
    HALF = "H"
    ABSENT = "A"


class WorkType(str, Enum):
    """How an entry's amount is derived.

    CATEGORY_BASED ("Work A") carries a category and subcategory and a
    manually entered amount. UNIT_BASED ("Work B") carries a work name,
    units and a rate per unit.
    """

    CATEGORY_BASED = "A"
    UNIT_BASED = "B"


class OutboxStatus(str, Enum):
    """Delivery status of an outbox message."""

    PENDING = "pending"
    SENT = "sent"


class TransactionKind(str, Enum):
    """Kind of a ledger record."""

    ENTRY = "entry"
    PAYMENT = "payment"


@dataclass(frozen=True)
class Worker:
    """Worker domain entity."""

    id: str
    name: str
    opening_balance: Decimal = Decimal("0")
    address: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class Category:
    """Work category domain entity."""

    id: str
    name: str


@dataclass(frozen=True)
class Subcategory:
    """Subcategory domain entity.

    A subcategory may belong to several categories. ``category_ids`` keeps
    insertion order so serialized output is deterministic, but is treated
    as a set.
    """

    id: str
    name: str
    category_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Entry:
    """Attendance/work entry domain entity (one worker, one day)."""

    id: str
    worker_id: str
    date: Optional[date]
    status: AttendanceStatus
    work_type: WorkType = WorkType.CATEGORY_BASED
    amount: Decimal = Decimal("0")
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    work_name: Optional[str] = None
    units: Optional[Decimal] = None
    rate_per_unit: Optional[Decimal] = None
    narration: Optional[str] = None


@dataclass(frozen=True)
class Payment:
    """Payment (disbursement) domain entity."""

    id: str
    worker_id: str
    date: Optional[date]
    amount: Decimal
    payment_type: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class OutboxMessage:
    """Deferred SMS/WhatsApp message with a snapshot body."""

    id: str
    worker_id: str
    body: str
    channel: str
    created_at: datetime
    status: OutboxStatus = OutboxStatus.PENDING
    sent_at: Optional[datetime] = None
    worker_name: Optional[str] = None
    phone: Optional[str] = None
    payment_id: Optional[str] = None


@dataclass(frozen=True)
class LedgerRecord:
    """One row of a worker's ledger with the running balance after it.

    ``amount`` is the stored amount of the entry or payment; ``effect`` is
    the signed change it made to the balance.
    """

    kind: TransactionKind
    id: str
    date: Optional[date]
    amount: Decimal
    effect: Decimal
    balance_after: Decimal
    status: Optional[AttendanceStatus] = None
    work_type: Optional[WorkType] = None
    category_name: str = ""
    subcategory_name: str = ""
    work_name: str = ""
    units: Optional[Decimal] = None
    rate_per_unit: Optional[Decimal] = None
    payment_type: str = ""
    narration: str = ""


@dataclass(frozen=True)
class AttendanceSummary:
    """Attendance counts for one worker over a date range."""

    worker_id: str
    start_date: Optional[date]
    end_date: Optional[date]
    present: int = 0
    half: int = 0
    absent: int = 0


@dataclass(frozen=True)
class OrphanReport:
    """Records referencing workers that no longer exist."""

    entry_ids: tuple[str, ...] = ()
    payment_ids: tuple[str, ...] = ()
    message_ids: tuple[str, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not (self.entry_ids or self.payment_ids or self.message_ids)


@dataclass(frozen=True)
class IntegrityIssue:
    """Non-blocking data problem found after a restore."""

    type: str
    worker_id: str
    worker_name: str
    count: int
    message: str


@dataclass(frozen=True)
class BackupDocument:
    """A backup document that passed the structural check."""

    version: str
    timestamp: str
    app_data: dict
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class BackupHistoryItem:
    """Safety snapshot kept in the key-value store."""

    key: str
    timestamp: str
    kind: str
    workers: int
    entries: int
    payments: int


@dataclass(frozen=True)
class RestoreReport:
    """Outcome of a completed restore."""

    safety_key: str
    states: tuple[str, ...]
    balances: dict[str, Decimal]
    issues: tuple[IntegrityIssue, ...]
    total_workers: int
    total_entries: int
    total_payments: int

    @property
    def issues_found(self) -> int:
        return len(self.issues)
