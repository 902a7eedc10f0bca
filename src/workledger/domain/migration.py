"""Schema migration gate run once when the persisted store is loaded.

Persisted data written before schema versioning existed carries no
``schemaVersion`` (or a version below 1) and may use legacy field names,
long-form status strings and a single ``categoryId`` per subcategory. The
gate converts such data to the canonical shape once, so nothing past this
module ever has to handle legacy variants.

Canonical encodings chosen here: attendance status is stored as the codes
"P", "H" and "A"; work type as "A" (category based) and "B" (unit based).
"""

import logging
import math
import uuid
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Optional

from dateutil import parser as date_parser

from workledger.domain.entities import (
    AttendanceStatus,
    WorkType,
    OutboxStatus,
    Worker,
    Category,
    Subcategory,
    Entry,
    Payment,
    OutboxMessage,
)
from workledger.domain.store import EntityStore, CURRENT_SCHEMA_VERSION
from workledger.storage.base import KeyValueStore
from workledger.storage.mappers import store_from_blob, store_to_blob

logger = logging.getLogger(__name__)

PRIMARY_KEY = "globalStore"
MIGRATION_BACKUP_PREFIX = "globalStore_backup_"

_STATUS_ALIASES = {
    "P": AttendanceStatus.PRESENT,
    "PRESENT": AttendanceStatus.PRESENT,
    "H": AttendanceStatus.HALF,
    "HALF": AttendanceStatus.HALF,
    "HALF DAY": AttendanceStatus.HALF,
    "A": AttendanceStatus.ABSENT,
    "ABSENT": AttendanceStatus.ABSENT,
}

_WORK_TYPE_ALIASES = {
    "A": WorkType.CATEGORY_BASED,
    "CATEGORYBASED": WorkType.CATEGORY_BASED,
    "B": WorkType.UNIT_BASED,
    "UNITBASED": WorkType.UNIT_BASED,
}


class SchemaState(Enum):
    """Whether a persisted blob still needs normalizing."""

    UNVERSIONED = "unversioned"
    CURRENT = "current"


def schema_state(blob: dict[str, Any]) -> SchemaState:
    """Classify a persisted blob by its schema version."""
    version = blob.get("schemaVersion")
    if isinstance(version, int) and not isinstance(version, bool):
        if version >= CURRENT_SCHEMA_VERSION:
            return SchemaState.CURRENT
    return SchemaState.UNVERSIONED


def timestamp_suffix(now: datetime) -> str:
    """Return a lexicographically sortable key suffix for a moment in time."""
    return now.strftime("%Y%m%d_%H%M%S_%f")


def _first(data: dict[str, Any], *keys: str) -> Any:
    """Return the first value present (not None) under any of the keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def to_decimal(value: Any) -> Decimal:
    """Coerce a legacy numeric value to Decimal; anything non-numeric becomes 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, float) and not math.isfinite(value):
        return Decimal("0")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _new_id() -> str:
    return uuid.uuid4().hex


def parse_legacy_date(value: Any) -> Optional[date]:
    """Parse a legacy date value (ISO date, ISO timestamp or free form)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        logger.warning("Dropping unparseable date %r: %s", value, e)
        return None


def parse_legacy_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        return date_parser.isoparse(str(value))
    except ValueError:
        try:
            return date_parser.parse(str(value))
        except (ValueError, OverflowError) as e:
            logger.warning("Dropping unparseable timestamp %r: %s", value, e)
            return None


def normalize_status(value: Any) -> AttendanceStatus:
    """Map any known status spelling to its code; unknown values mean absent."""
    if isinstance(value, AttendanceStatus):
        return value
    return _STATUS_ALIASES.get(str(value or "").strip().upper(), AttendanceStatus.ABSENT)


def normalize_work_type(value: Any) -> WorkType:
    if isinstance(value, WorkType):
        return value
    key = str(value or "").replace("_", "").replace(" ", "").upper()
    return _WORK_TYPE_ALIASES.get(key, WorkType.CATEGORY_BASED)


def normalize_worker(data: dict[str, Any], opening_balances: dict[str, Any]) -> Worker:
    worker_id = _optional_text(data.get("id")) or _new_id()
    balance = _first(data, "openingBalance", "opening_balance")
    if balance is None:
        balance = opening_balances.get(worker_id)
    return Worker(
        id=worker_id,
        name=str(_first(data, "name", "fullName") or "Unknown").strip(),
        opening_balance=to_decimal(balance),
        address=_optional_text(data.get("address")),
        phone=_optional_text(data.get("phone")),
    )


def normalize_category(data: dict[str, Any]) -> Category:
    return Category(
        id=_optional_text(data.get("id")) or _new_id(),
        name=str(_first(data, "name", "category") or "").strip(),
    )


def normalize_subcategory(data: dict[str, Any]) -> Subcategory:
    raw_ids = data.get("categoryIds")
    if isinstance(raw_ids, (list, tuple)):
        candidates = raw_ids
    else:
        legacy_id = _first(data, "categoryId", "category_id")
        candidates = [legacy_id] if legacy_id else []

    category_ids: list[str] = []
    for category_id in candidates:
        if category_id is not None and str(category_id) not in category_ids:
            category_ids.append(str(category_id))

    return Subcategory(
        id=_optional_text(data.get("id")) or _new_id(),
        name=str(_first(data, "name", "subcategoryName", "subcategory") or "").strip(),
        category_ids=tuple(category_ids),
    )


def normalize_entry(data: dict[str, Any]) -> Entry:
    return Entry(
        id=_optional_text(data.get("id")) or _new_id(),
        worker_id=_optional_text(_first(data, "workerId", "worker_id")) or "",
        date=parse_legacy_date(_first(data, "date", "day")),
        status=normalize_status(data.get("status")),
        work_type=normalize_work_type(_first(data, "workType", "work_type")),
        amount=to_decimal(_first(data, "amount", "amt")),
        category_id=_optional_text(_first(data, "categoryId", "category_id")),
        subcategory_id=_optional_text(_first(data, "subcategoryId", "subcategory_id")),
        work_name=_optional_text(_first(data, "workName", "work_name")),
        units=_optional_decimal(data.get("units")),
        rate_per_unit=_optional_decimal(_first(data, "ratePerUnit", "rate_per_unit")),
        narration=_optional_text(_first(data, "narration", "notes")) or "",
    )


def normalize_payment(data: dict[str, Any]) -> Payment:
    return Payment(
        id=_optional_text(data.get("id")) or _new_id(),
        worker_id=_optional_text(_first(data, "workerId", "worker_id")) or "",
        date=parse_legacy_date(_first(data, "date", "day")),
        amount=to_decimal(_first(data, "amount", "amt")),
        payment_type=str(_first(data, "paymentType", "type") or "Cash"),
        notes=_optional_text(_first(data, "notes", "narration")) or "",
    )


def normalize_outbox_message(data: dict[str, Any]) -> OutboxMessage:
    status = str(data.get("status") or "").strip().lower()
    created_at = parse_legacy_datetime(data.get("createdAt"))
    return OutboxMessage(
        id=_optional_text(data.get("id")) or _new_id(),
        worker_id=_optional_text(_first(data, "workerId", "worker_id")) or "",
        body=str(_first(data, "snapshotBody", "body") or ""),
        channel=str(data.get("channel") or "sms"),
        created_at=created_at or datetime.fromtimestamp(0),
        status=OutboxStatus.SENT if status == OutboxStatus.SENT.value else OutboxStatus.PENDING,
        sent_at=parse_legacy_datetime(data.get("sentAt")),
        worker_name=_optional_text(data.get("workerName")),
        phone=_optional_text(data.get("phone")),
        payment_id=_optional_text(data.get("paymentId")),
    )


def _collection(data: dict[str, Any], key: str) -> list:
    value = data.get(key)
    return value if isinstance(value, list) else []


def _records(items: list, normalize: Callable[[dict[str, Any]], Any]) -> tuple:
    return tuple(normalize(item) for item in items if isinstance(item, dict))


def normalize_app_data(data: dict[str, Any]) -> EntityStore:
    """Build a canonical store from any known persisted or backup shape.

    Missing or non-list collections become empty. Non-numeric amounts
    become 0. The result is stamped with the current schema version.
    """
    opening_balances = data.get("openingBalances")
    if not isinstance(opening_balances, dict):
        opening_balances = {}

    workers = tuple(
        normalize_worker(item, opening_balances)
        for item in _collection(data, "workers")
        if isinstance(item, dict)
    )
    return EntityStore(
        workers=workers,
        categories=_records(_collection(data, "categories"), normalize_category),
        subcategories=_records(_collection(data, "subcategories"), normalize_subcategory),
        entries=_records(_collection(data, "entries"), normalize_entry),
        payments=_records(_collection(data, "payments"), normalize_payment),
        outbox=_records(_collection(data, "deferredMessages"), normalize_outbox_message),
        schema_version=CURRENT_SCHEMA_VERSION,
    )


def normalize_blob(raw: dict[str, Any]) -> dict[str, Any]:
    """Return the canonical, version-stamped form of a persisted blob."""
    return store_to_blob(normalize_app_data(raw))


class SchemaMigrationGate:
    """Loads the persisted store, normalizing legacy data exactly once."""

    def __init__(
        self,
        kv: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the migration gate.

        Args:
            kv: Key-value store holding the persisted blob
            clock: Source of the current time, used for backup keys
        """
        self.kv = kv
        self.clock = clock

    def load(self) -> EntityStore:
        """Load the live store, migrating it first if it is unversioned.

        Returns:
            EntityStore in the current schema (empty if nothing is persisted)
        """
        raw = self.kv.get(PRIMARY_KEY)
        if raw is None:
            return EntityStore()
        if not isinstance(raw, dict):
            logger.error("Persisted store under %r is not an object; starting empty", PRIMARY_KEY)
            return EntityStore()

        if schema_state(raw) is SchemaState.CURRENT:
            return store_from_blob(raw)

        return self.migrate(raw)

    def migrate(self, raw: dict[str, Any]) -> EntityStore:
        """Back up, normalize and persist an unversioned blob.

        A failed backup write is logged and does not stop the migration.
        A failed write of the normalized blob is logged too; the normalized
        store is still returned so the next committed change persists it.
        """
        logger.info(
            "Migrating persisted store from schema %s to %s",
            raw.get("schemaVersion", 0),
            CURRENT_SCHEMA_VERSION,
        )
        backup_key = MIGRATION_BACKUP_PREFIX + timestamp_suffix(self.clock())
        try:
            self.kv.set(backup_key, raw)
            logger.info("Wrote pre-migration backup %s", backup_key)
        except Exception as e:
            logger.warning("Failed to write pre-migration backup %s: %s", backup_key, e)

        store = normalize_app_data(raw)
        try:
            self.kv.set(PRIMARY_KEY, store_to_blob(store))
        except Exception as e:
            logger.error("Failed to persist migrated store: %s", e, exc_info=True)
        return store
