"""In-memory entity store and its reducers.

Every mutation is a plain function taking the current store and returning a
new one. The store itself is immutable, so callers can keep old instances
around for undo or comparison.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Iterable

from workledger.domain.entities import (
    Worker,
    Category,
    Subcategory,
    Entry,
    Payment,
    OutboxMessage,
    OutboxStatus,
    OrphanReport,
)
from workledger.domain.errors import (
    NotFoundError,
    ConflictError,
    DomainError,
    entity_not_found,
    duplicate_id,
)

CURRENT_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class EntityStore:
    """Normalized collections of all live entities."""

    workers: tuple[Worker, ...] = ()
    categories: tuple[Category, ...] = ()
    subcategories: tuple[Subcategory, ...] = ()
    entries: tuple[Entry, ...] = ()
    payments: tuple[Payment, ...] = ()
    outbox: tuple[OutboxMessage, ...] = ()
    schema_version: int = CURRENT_SCHEMA_VERSION


def _find(items: Iterable, item_id: str):
    for item in items:
        if item.id == item_id:
            return item
    return None


def _append(items: tuple, item, kind: str) -> tuple:
    if _find(items, item.id) is not None:
        raise ConflictError(duplicate_id(kind, item.id))
    return items + (item,)


def _replace_by_id(items: tuple, item, kind: str) -> tuple:
    if _find(items, item.id) is None:
        raise NotFoundError(entity_not_found(kind, item.id))
    return tuple(item if existing.id == item.id else existing for existing in items)


def _remove_by_id(items: tuple, item_id: str, kind: str) -> tuple:
    if _find(items, item_id) is None:
        raise NotFoundError(entity_not_found(kind, item_id))
    return tuple(existing for existing in items if existing.id != item_id)


# Lookups
def get_worker(store: EntityStore, worker_id: str) -> Optional[Worker]:
    return _find(store.workers, worker_id)


def get_category(store: EntityStore, category_id: str) -> Optional[Category]:
    return _find(store.categories, category_id)


def get_subcategory(store: EntityStore, subcategory_id: str) -> Optional[Subcategory]:
    return _find(store.subcategories, subcategory_id)


def get_entry(store: EntityStore, entry_id: str) -> Optional[Entry]:
    return _find(store.entries, entry_id)


def get_payment(store: EntityStore, payment_id: str) -> Optional[Payment]:
    return _find(store.payments, payment_id)


def get_outbox_message(store: EntityStore, message_id: str) -> Optional[OutboxMessage]:
    return _find(store.outbox, message_id)


def subcategories_for_category(store: EntityStore, category_id: str) -> list[Subcategory]:
    """Return subcategories associated with a category."""
    return [s for s in store.subcategories if category_id in s.category_ids]


# Workers
def add_worker(store: EntityStore, worker: Worker) -> EntityStore:
    return replace(store, workers=_append(store.workers, worker, "Worker"))


def update_worker(store: EntityStore, worker: Worker) -> EntityStore:
    return replace(store, workers=_replace_by_id(store.workers, worker, "Worker"))


def delete_worker(store: EntityStore, worker_id: str) -> EntityStore:
    """Delete a worker together with its entries, payments and outbox messages."""
    return replace(
        store,
        workers=_remove_by_id(store.workers, worker_id, "Worker"),
        entries=tuple(e for e in store.entries if e.worker_id != worker_id),
        payments=tuple(p for p in store.payments if p.worker_id != worker_id),
        outbox=tuple(m for m in store.outbox if m.worker_id != worker_id),
    )


def find_orphans(store: EntityStore) -> OrphanReport:
    """Report entries, payments and messages whose worker does not exist."""
    worker_ids = {w.id for w in store.workers}
    return OrphanReport(
        entry_ids=tuple(e.id for e in store.entries if e.worker_id not in worker_ids),
        payment_ids=tuple(p.id for p in store.payments if p.worker_id not in worker_ids),
        message_ids=tuple(m.id for m in store.outbox if m.worker_id not in worker_ids),
    )


def drop_orphans(store: EntityStore) -> EntityStore:
    """Remove every record reported by find_orphans."""
    report = find_orphans(store)
    if report.is_clean:
        return store
    entry_ids = set(report.entry_ids)
    payment_ids = set(report.payment_ids)
    message_ids = set(report.message_ids)
    return replace(
        store,
        entries=tuple(e for e in store.entries if e.id not in entry_ids),
        payments=tuple(p for p in store.payments if p.id not in payment_ids),
        outbox=tuple(m for m in store.outbox if m.id not in message_ids),
    )


# Categories and subcategories
def add_category(store: EntityStore, category: Category) -> EntityStore:
    return replace(store, categories=_append(store.categories, category, "Category"))


def update_category(store: EntityStore, category: Category) -> EntityStore:
    return replace(store, categories=_replace_by_id(store.categories, category, "Category"))


def delete_category(store: EntityStore, category_id: str) -> EntityStore:
    """Delete a category and detach it from every subcategory.

    Subcategories left without any category are deleted in the same step,
    so no caller ever observes a dangling subcategory.
    """
    categories = _remove_by_id(store.categories, category_id, "Category")

    subcategories = []
    for sub in store.subcategories:
        if category_id in sub.category_ids:
            remaining = tuple(cid for cid in sub.category_ids if cid != category_id)
            if not remaining:
                continue
            sub = replace(sub, category_ids=remaining)
        subcategories.append(sub)

    return replace(store, categories=categories, subcategories=tuple(subcategories))


def add_subcategory(store: EntityStore, subcategory: Subcategory) -> EntityStore:
    return replace(
        store, subcategories=_append(store.subcategories, subcategory, "Subcategory")
    )


def update_subcategory(store: EntityStore, subcategory: Subcategory) -> EntityStore:
    return replace(
        store,
        subcategories=_replace_by_id(store.subcategories, subcategory, "Subcategory"),
    )


def delete_subcategory(store: EntityStore, subcategory_id: str) -> EntityStore:
    return replace(
        store,
        subcategories=_remove_by_id(store.subcategories, subcategory_id, "Subcategory"),
    )


# Entries
def add_entry(store: EntityStore, entry: Entry) -> EntityStore:
    return replace(store, entries=_append(store.entries, entry, "Entry"))


def update_entry(store: EntityStore, entry: Entry) -> EntityStore:
    return replace(store, entries=_replace_by_id(store.entries, entry, "Entry"))


def delete_entry(store: EntityStore, entry_id: str) -> EntityStore:
    return replace(store, entries=_remove_by_id(store.entries, entry_id, "Entry"))


# Payments
def add_payment(store: EntityStore, payment: Payment) -> EntityStore:
    return replace(store, payments=_append(store.payments, payment, "Payment"))


def update_payment(store: EntityStore, payment: Payment) -> EntityStore:
    return replace(store, payments=_replace_by_id(store.payments, payment, "Payment"))


def delete_payment(store: EntityStore, payment_id: str) -> EntityStore:
    return replace(store, payments=_remove_by_id(store.payments, payment_id, "Payment"))


# Outbox
def add_outbox_message(store: EntityStore, message: OutboxMessage) -> EntityStore:
    return replace(store, outbox=_append(store.outbox, message, "Message"))


def mark_outbox_sent(store: EntityStore, message_id: str, sent_at: datetime) -> EntityStore:
    """Transition a pending message to sent."""
    message = get_outbox_message(store, message_id)
    if message is None:
        raise NotFoundError(entity_not_found("Message", message_id))
    if message.status is OutboxStatus.SENT:
        raise DomainError(f"Message {message_id} was already sent")
    sent = replace(message, status=OutboxStatus.SENT, sent_at=sent_at)
    return replace(store, outbox=_replace_by_id(store.outbox, sent, "Message"))


def delete_outbox_message(store: EntityStore, message_id: str) -> EntityStore:
    return replace(store, outbox=_remove_by_id(store.outbox, message_id, "Message"))
