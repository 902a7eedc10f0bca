"""Balance and ledger projections.

All functions here are read-only folds over an EntityStore. Balances are
computed the same way whether a single total is requested or a full ledger
with running balances, so the last ledger row always matches the total.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from workledger.domain.entities import (
    AttendanceStatus,
    AttendanceSummary,
    Entry,
    LedgerRecord,
    TransactionKind,
)
from workledger.domain.store import EntityStore, get_worker

ZERO = Decimal("0")

STATUS_WEIGHTS = {
    AttendanceStatus.PRESENT: Decimal("1"),
    AttendanceStatus.HALF: Decimal("0.5"),
    AttendanceStatus.ABSENT: ZERO,
}


def weighted_amount(entry: Entry) -> Decimal:
    """Return the amount an entry contributes to the balance.

    Present counts fully, Half counts half and Absent counts nothing,
    whatever amount is stored.
    """
    weight = STATUS_WEIGHTS.get(entry.status, ZERO)
    return entry.amount * weight


def opening_balance(store: EntityStore, worker_id: str) -> Decimal:
    worker = get_worker(store, worker_id)
    return worker.opening_balance if worker is not None else ZERO


def worker_balance(store: EntityStore, worker_id: str) -> Decimal:
    """Compute a worker's current balance.

    balance = opening balance + weighted entry amounts - payment amounts
    """
    balance = opening_balance(store, worker_id)
    for entry in store.entries:
        if entry.worker_id == worker_id:
            balance += weighted_amount(entry)
    for payment in store.payments:
        if payment.worker_id == worker_id:
            balance -= payment.amount
    return balance


def all_balances(store: EntityStore) -> dict[str, Decimal]:
    """Compute balances for every worker, keyed by worker id."""
    return {worker.id: worker_balance(store, worker.id) for worker in store.workers}


def build_ledger(store: EntityStore, worker_id: str) -> list[LedgerRecord]:
    """Build a worker's ledger in chronological order.

    Entries and payments are merged and sorted by date. The sort is stable
    and entries are collected before payments, so on the same date entries
    come first, each group in insertion order.

    Args:
        store: Current store snapshot
        worker_id: Worker ID

    Returns:
        Ledger records, oldest first, each carrying the balance after it
    """
    category_names = {c.id: c.name for c in store.categories}
    subcategory_names = {s.id: s.name for s in store.subcategories}

    rows: list[tuple[Optional[date], TransactionKind, object]] = []
    for entry in store.entries:
        if entry.worker_id == worker_id:
            rows.append((entry.date, TransactionKind.ENTRY, entry))
    for payment in store.payments:
        if payment.worker_id == worker_id:
            rows.append((payment.date, TransactionKind.PAYMENT, payment))

    rows.sort(key=lambda row: row[0] or date.min)

    records = []
    running = opening_balance(store, worker_id)
    for _, kind, item in rows:
        if kind is TransactionKind.ENTRY:
            effect = weighted_amount(item)
            running += effect
            records.append(
                LedgerRecord(
                    kind=kind,
                    id=item.id,
                    date=item.date,
                    amount=item.amount,
                    effect=effect,
                    balance_after=running,
                    status=item.status,
                    work_type=item.work_type,
                    category_name=category_names.get(item.category_id, ""),
                    subcategory_name=subcategory_names.get(item.subcategory_id, ""),
                    work_name=item.work_name or "",
                    units=item.units,
                    rate_per_unit=item.rate_per_unit,
                    narration=item.narration or "",
                )
            )
        else:
            effect = -item.amount
            running += effect
            records.append(
                LedgerRecord(
                    kind=kind,
                    id=item.id,
                    date=item.date,
                    amount=item.amount,
                    effect=effect,
                    balance_after=running,
                    payment_type=item.payment_type,
                    narration=item.notes or "",
                )
            )
    return records


def filter_ledger(
    records: Sequence[LedgerRecord],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
) -> list[LedgerRecord]:
    """Narrow a computed ledger without touching its running balances.

    Args:
        records: Ledger records from build_ledger
        start_date: Optional inclusive start date
        end_date: Optional inclusive end date
        search: Optional case-insensitive text matched against narration,
            category, subcategory, work name and payment type

    Returns:
        Matching records in their original order
    """
    query = (search or "").strip().lower()
    result = []
    for record in records:
        if start_date is not None and (record.date is None or record.date < start_date):
            continue
        if end_date is not None and (record.date is None or record.date > end_date):
            continue
        if query:
            haystack = (
                record.narration,
                record.category_name,
                record.subcategory_name,
                record.work_name,
                record.payment_type,
            )
            if not any(query in text.lower() for text in haystack):
                continue
        result.append(record)
    return result


def latest_first(records: Sequence[LedgerRecord]) -> list[LedgerRecord]:
    """Reverse a ledger for display; balances are left as computed."""
    return list(reversed(records))


def attendance_summary(
    store: EntityStore,
    worker_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> AttendanceSummary:
    """Count present, half and absent days for a worker in a date range."""
    counts = {status: 0 for status in AttendanceStatus}
    for entry in store.entries:
        if entry.worker_id != worker_id or entry.date is None:
            continue
        if start_date is not None and entry.date < start_date:
            continue
        if end_date is not None and entry.date > end_date:
            continue
        if entry.status in counts:
            counts[AttendanceStatus(entry.status)] += 1
    return AttendanceSummary(
        worker_id=worker_id,
        start_date=start_date,
        end_date=end_date,
        present=counts[AttendanceStatus.PRESENT],
        half=counts[AttendanceStatus.HALF],
        absent=counts[AttendanceStatus.ABSENT],
    )


def format_balance(balance: Decimal) -> str:
    """Format a balance for display, e.g. "₹1,400.00" or "-₹25.00"."""
    sign = "" if balance >= 0 else "-"
    return f"{sign}₹{abs(balance):,.2f}"
