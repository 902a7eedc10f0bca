"""Mapper functions to convert between domain entities and stored documents.

Stored documents use the camelCase field names of the persisted blob and
the backup format. These mappers only understand the canonical shape;
legacy shapes are normalized by the schema migration gate before they
reach this module.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from workledger.domain import entities as domain
from workledger.domain.store import EntityStore

COLLECTION_KEYS = ("workers", "categories", "subcategories", "entries", "payments")


def to_json_number(value: Optional[Decimal]) -> Optional[int | float | str]:
    """Convert a Decimal to a JSON number, keeping whole values as integers.

    Values a float cannot hold exactly are written as decimal strings, which
    the readers below accept just like numbers.
    """
    if value is None:
        return None
    if not value.is_finite():
        raise ValueError(f"Cannot store non-finite amount: {value}")
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else _decimal(value)


def _date_to_str(value: Optional[date]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _date_from_str(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _datetime_to_str(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _datetime_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def worker_to_dict(worker: domain.Worker) -> dict[str, Any]:
    return {
        "id": worker.id,
        "name": worker.name,
        "address": worker.address,
        "phone": worker.phone,
        "openingBalance": to_json_number(worker.opening_balance),
    }


def worker_from_dict(data: dict[str, Any]) -> domain.Worker:
    return domain.Worker(
        id=data["id"],
        name=data["name"],
        opening_balance=_decimal(data.get("openingBalance", 0)),
        address=data.get("address"),
        phone=data.get("phone"),
    )


def category_to_dict(category: domain.Category) -> dict[str, Any]:
    return {"id": category.id, "name": category.name}


def category_from_dict(data: dict[str, Any]) -> domain.Category:
    return domain.Category(id=data["id"], name=data["name"])


def subcategory_to_dict(subcategory: domain.Subcategory) -> dict[str, Any]:
    return {
        "id": subcategory.id,
        "name": subcategory.name,
        "categoryIds": list(subcategory.category_ids),
    }


def subcategory_from_dict(data: dict[str, Any]) -> domain.Subcategory:
    return domain.Subcategory(
        id=data["id"],
        name=data["name"],
        category_ids=tuple(data.get("categoryIds") or ()),
    )


def entry_to_dict(entry: domain.Entry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "workerId": entry.worker_id,
        "date": _date_to_str(entry.date),
        "status": domain.AttendanceStatus(entry.status).value,
        "workType": domain.WorkType(entry.work_type).value,
        "categoryId": entry.category_id,
        "subcategoryId": entry.subcategory_id,
        "workName": entry.work_name,
        "units": to_json_number(entry.units),
        "ratePerUnit": to_json_number(entry.rate_per_unit),
        "amount": to_json_number(entry.amount),
        "narration": entry.narration,
    }


def entry_from_dict(data: dict[str, Any]) -> domain.Entry:
    return domain.Entry(
        id=data["id"],
        worker_id=data["workerId"],
        date=_date_from_str(data.get("date")),
        status=domain.AttendanceStatus(data["status"]),
        work_type=domain.WorkType(data.get("workType") or domain.WorkType.CATEGORY_BASED),
        amount=_decimal(data.get("amount", 0)),
        category_id=data.get("categoryId"),
        subcategory_id=data.get("subcategoryId"),
        work_name=data.get("workName"),
        units=_optional_decimal(data.get("units")),
        rate_per_unit=_optional_decimal(data.get("ratePerUnit")),
        narration=data.get("narration"),
    )


def payment_to_dict(payment: domain.Payment) -> dict[str, Any]:
    return {
        "id": payment.id,
        "workerId": payment.worker_id,
        "date": _date_to_str(payment.date),
        "amount": to_json_number(payment.amount),
        "paymentType": payment.payment_type,
        "notes": payment.notes,
    }


def payment_from_dict(data: dict[str, Any]) -> domain.Payment:
    return domain.Payment(
        id=data["id"],
        worker_id=data["workerId"],
        date=_date_from_str(data.get("date")),
        amount=_decimal(data.get("amount", 0)),
        payment_type=data.get("paymentType") or "",
        notes=data.get("notes"),
    )


def outbox_message_to_dict(message: domain.OutboxMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "workerId": message.worker_id,
        "workerName": message.worker_name,
        "phone": message.phone,
        "channel": message.channel,
        "mode": "snapshot",
        "snapshotBody": message.body,
        "createdAt": _datetime_to_str(message.created_at),
        "status": domain.OutboxStatus(message.status).value,
        "sentAt": _datetime_to_str(message.sent_at),
        "paymentId": message.payment_id,
    }


def outbox_message_from_dict(data: dict[str, Any]) -> domain.OutboxMessage:
    return domain.OutboxMessage(
        id=data["id"],
        worker_id=data["workerId"],
        body=data.get("snapshotBody") or "",
        channel=data.get("channel") or "sms",
        created_at=_datetime_from_str(data.get("createdAt")),
        status=domain.OutboxStatus(data.get("status") or domain.OutboxStatus.PENDING),
        sent_at=_datetime_from_str(data.get("sentAt")),
        worker_name=data.get("workerName"),
        phone=data.get("phone"),
        payment_id=data.get("paymentId"),
    )


def store_to_app_data(store: EntityStore) -> dict[str, Any]:
    """Serialize the collections of a store in the backup ``appData`` shape."""
    return {
        "workers": [worker_to_dict(w) for w in store.workers],
        "categories": [category_to_dict(c) for c in store.categories],
        "subcategories": [subcategory_to_dict(s) for s in store.subcategories],
        "entries": [entry_to_dict(e) for e in store.entries],
        "payments": [payment_to_dict(p) for p in store.payments],
        "openingBalances": {
            w.id: to_json_number(w.opening_balance) for w in store.workers
        },
        "deferredMessages": [outbox_message_to_dict(m) for m in store.outbox],
    }


def store_to_blob(store: EntityStore) -> dict[str, Any]:
    """Serialize a store as the persisted blob, stamped with its schema version."""
    blob = store_to_app_data(store)
    blob["schemaVersion"] = store.schema_version
    return blob


def store_from_blob(blob: dict[str, Any]) -> EntityStore:
    """Load a store from a persisted blob already in the current schema."""
    return EntityStore(
        workers=tuple(worker_from_dict(w) for w in blob.get("workers", [])),
        categories=tuple(category_from_dict(c) for c in blob.get("categories", [])),
        subcategories=tuple(
            subcategory_from_dict(s) for s in blob.get("subcategories", [])
        ),
        entries=tuple(entry_from_dict(e) for e in blob.get("entries", [])),
        payments=tuple(payment_from_dict(p) for p in blob.get("payments", [])),
        outbox=tuple(
            outbox_message_from_dict(m) for m in blob.get("deferredMessages", [])
        ),
        schema_version=blob.get("schemaVersion", 0),
    )
