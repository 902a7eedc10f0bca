"""Backup export, import validation and restore.

A backup document looks like::

    {
      "version": "1.0",
      "timestamp": "2025-01-03T10:00:00",
      "appData": {"workers": [...], "categories": [...], "subcategories": [...],
                  "entries": [...], "payments": [...], "openingBalances": {...},
                  "deferredMessages": [...]},
      "metadata": {"totalWorkers": 1, ..., "calculatedBalances": {...},
                   "backupDate": "2025-01-03 10:00:00"}
    }

Metadata is informational only and is never read back on restore.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from workledger.domain.entities import (
    AttendanceStatus,
    BackupDocument,
    BackupHistoryItem,
    IntegrityIssue,
    RestoreReport,
    WorkType,
)
from workledger.domain.errors import RestoreError, safety_snapshot_failed
from workledger.domain.ledger import all_balances
from workledger.domain.migration import (
    MIGRATION_BACKUP_PREFIX,
    PRIMARY_KEY,
    normalize_app_data,
    timestamp_suffix,
)
from workledger.domain.store import EntityStore
from workledger.domain.validation import (
    ACCEPTED,
    RejectionReason,
    ValidationResult,
    reject,
)
from workledger.storage.base import KeyValueStore
from workledger.storage.mappers import (
    COLLECTION_KEYS,
    store_to_app_data,
    store_to_blob,
    to_json_number,
)
from workledger.storage.sqlalchemy_store import encode_json

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
BACKUP_FILE_PREFIX = "hlm_backup_"
BACKUP_EXTENSION = ".json"
PRE_RESTORE_PREFIX = "globalStore_pre_restore_"
DEFAULT_KEEP_COUNT = 5

_HISTORY_KINDS = {
    MIGRATION_BACKUP_PREFIX: "auto-backup",
    PRE_RESTORE_PREFIX: "pre-restore",
}


class RestoreState(str, Enum):
    """Steps of a restore, always walked in this order."""

    IDLE = "idle"
    SNAPSHOTTING_CURRENT = "snapshotting_current"
    REPLACING = "replacing"
    REVALIDATING = "revalidating"


def create_backup_document(store: EntityStore, now: Optional[datetime] = None) -> dict[str, Any]:
    """Serialize a store as a backup document without modifying it.

    Args:
        store: Store to export
        now: Timestamp for the document (defaults to the current time)

    Returns:
        Backup document as a JSON-serializable dict
    """
    now = now or datetime.now()
    balances = all_balances(store)
    return {
        "version": BACKUP_VERSION,
        "timestamp": now.isoformat(),
        "appData": store_to_app_data(store),
        "metadata": {
            "totalWorkers": len(store.workers),
            "totalEntries": len(store.entries),
            "totalPayments": len(store.payments),
            "totalCategories": len(store.categories),
            "totalSubcategories": len(store.subcategories),
            "calculatedBalances": {
                worker_id: to_json_number(balance) for worker_id, balance in balances.items()
            },
            "backupDate": now.strftime("%Y-%m-%d %H:%M:%S"),
        },
    }


def validate_backup_document(document: Any) -> ValidationResult:
    """Check that a parsed document has the backup shape.

    Only the structure is checked: a version, an appData object and each
    of the five required collections as a list (possibly empty).
    """
    if not isinstance(document, dict):
        return reject(RejectionReason.MALFORMED_BACKUP, "Invalid backup file format")
    if not document.get("version"):
        return reject(RejectionReason.MALFORMED_BACKUP, "Backup version not found")
    app_data = document.get("appData")
    if not isinstance(app_data, dict):
        return reject(RejectionReason.MALFORMED_BACKUP, "App data not found in backup")
    for key in COLLECTION_KEYS:
        if not isinstance(app_data.get(key), list):
            return reject(
                RejectionReason.MALFORMED_BACKUP, f"Invalid or missing {key} data"
            )
    return ACCEPTED


def parse_backup_document(document: Any) -> tuple[ValidationResult, Optional[BackupDocument]]:
    """Validate a decoded document and wrap it as a BackupDocument."""
    result = validate_backup_document(document)
    if not result:
        return result, None
    metadata = document.get("metadata")
    return result, BackupDocument(
        version=str(document["version"]),
        timestamp=str(document.get("timestamp") or ""),
        app_data=document["appData"],
        metadata=metadata if isinstance(metadata, dict) else {},
    )


def parse_backup_text(text: str) -> tuple[ValidationResult, Optional[BackupDocument]]:
    """Decode and validate backup JSON text."""
    try:
        document = json.loads(text)
    except (TypeError, ValueError) as e:
        return reject(RejectionReason.MALFORMED_BACKUP, f"Backup is not valid JSON: {e}"), None
    return parse_backup_document(document)


def _is_linked(entry, category_ids, subcategories) -> bool:
    sub = subcategories.get(entry.subcategory_id)
    return (
        entry.category_id in category_ids
        and sub is not None
        and entry.category_id in sub.category_ids
    )

def check_integrity(store: EntityStore) -> list[IntegrityIssue]:
    """Report entries that are missing the fields their work type needs.

    Category-based entries are also reported when their category or
    subcategory no longer exists, or the subcategory is no longer associated
    with the category. Absent entries are never reported.
    """
    category_ids = {c.id for c in store.categories}
    subcategories = {s.id: s for s in store.subcategories}
    issues = []
    for worker in store.workers:
        entries = [
            e
            for e in store.entries
            if e.worker_id == worker.id and e.status != AttendanceStatus.ABSENT
        ]

        missing_category = [
            e
            for e in entries
            if e.work_type == WorkType.CATEGORY_BASED
            and (not e.category_id or not e.subcategory_id)
        ]
        if missing_category:
            issues.append(
                IntegrityIssue(
                    type="invalid_entries",
                    worker_id=worker.id,
                    worker_name=worker.name,
                    count=len(missing_category),
                    message=f"{len(missing_category)} entries missing category/subcategory data",
                )
            )

        unlinked = [
            e
            for e in entries
            if e.work_type == WorkType.CATEGORY_BASED
            and e.category_id
            and e.subcategory_id
            and not _is_linked(e, category_ids, subcategories)
        ]
        if unlinked:
            issues.append(
                IntegrityIssue(
                    type="unlinked_entries",
                    worker_id=worker.id,
                    worker_name=worker.name,
                    count=len(unlinked),
                    message=(
                        f"{len(unlinked)} entries reference a missing or "
                        "unassociated category/subcategory"
                    ),
                )
            )

        missing_units = [
            e
            for e in entries
            if e.work_type == WorkType.UNIT_BASED
            and (not e.work_name or not e.units or not e.rate_per_unit)
        ]
        if missing_units:
            issues.append(
                IntegrityIssue(
                    type="invalid_work_b_entries",
                    worker_id=worker.id,
                    worker_name=worker.name,
                    count=len(missing_units),
                    message=f"{len(missing_units)} Work B entries missing required data",
                )
            )
    return issues


def _history_kind(key: str) -> Optional[tuple[str, str]]:
    for prefix, kind in _HISTORY_KINDS.items():
        if key.startswith(prefix):
            return prefix, kind
    return None


class BackupRestoreManager:
    """Exports, validates and restores backups against a key-value store."""

    def __init__(
        self,
        kv: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize backup manager.

        Args:
            kv: Key-value store holding the live blob and safety snapshots
            clock: Source of the current time
        """
        self.kv = kv
        self.clock = clock
        self.state = RestoreState.IDLE

    @property
    def is_replacing(self) -> bool:
        return self.state is RestoreState.REPLACING

    def export_backup(self, store: EntityStore) -> dict[str, Any]:
        """Create a backup document for the given store."""
        return create_backup_document(store, now=self.clock())

    def export_backup_to_file(self, store: EntityStore, directory: str | Path) -> Path:
        """Write a backup document to a timestamped JSON file.

        Args:
            store: Store to export
            directory: Target directory (created if missing)

        Returns:
            Path of the written file
        """
        now = self.clock()
        document = create_backup_document(store, now=now)
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        filename = f"{BACKUP_FILE_PREFIX}{now.strftime('%Y%m%d_%H%M%S')}{BACKUP_EXTENSION}"
        path = directory / filename
        path.write_text(encode_json(document, indent=2), encoding="utf-8")
        logger.info("Exported backup to %s", path)
        return path

    def import_backup_file(self, path: str | Path) -> tuple[ValidationResult, Optional[BackupDocument]]:
        """Read and validate a backup file."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            return reject(RejectionReason.MALFORMED_BACKUP, f"Backup is not valid text: {e}"), None
        return parse_backup_text(text)

    def restore(self, current: EntityStore, document: BackupDocument) -> tuple[EntityStore, RestoreReport]:
        """Replace the live data with a validated backup.

        The current state is saved to a safety snapshot first; if that
        fails the restore is aborted before anything is replaced. The
        backup's collections replace the live ones wholesale. Integrity
        problems in the restored data are reported, not raised.

        Args:
            current: Live store before the restore
            document: Backup that passed the structural check

        Returns:
            Tuple of (restored store, restore report)

        Raises:
            RestoreError: If the safety snapshot could not be written
        """
        visited = []

        self._enter(RestoreState.SNAPSHOTTING_CURRENT, visited)
        safety_key = PRE_RESTORE_PREFIX + timestamp_suffix(self.clock())
        try:
            self.kv.set(safety_key, store_to_blob(current))
        except Exception as e:
            logger.error("Safety snapshot %s failed, aborting restore: %s", safety_key, e)
            self.state = RestoreState.IDLE
            raise RestoreError(safety_snapshot_failed(e)) from e
        logger.info("Created pre-restore backup %s", safety_key)

        self._enter(RestoreState.REPLACING, visited)
        try:
            restored = normalize_app_data(document.app_data)
            self.kv.set(PRIMARY_KEY, store_to_blob(restored))
        except Exception:
            logger.error("Restore failed while replacing data; safety snapshot is %s", safety_key)
            self.state = RestoreState.IDLE
            raise

        self._enter(RestoreState.REVALIDATING, visited)
        issues = tuple(check_integrity(restored))
        balances = all_balances(restored)
        for issue in issues:
            logger.warning("Restore integrity warning for %s: %s", issue.worker_name, issue.message)

        self._enter(RestoreState.IDLE, visited)
        return restored, RestoreReport(
            safety_key=safety_key,
            states=tuple(visited),
            balances=balances,
            issues=issues,
            total_workers=len(restored.workers),
            total_entries=len(restored.entries),
            total_payments=len(restored.payments),
        )

    def _enter(self, state: RestoreState, visited: list) -> None:
        logger.debug("Restore state %s -> %s", self.state.value, state.value)
        self.state = state
        visited.append(state.value)

    def backup_history(self) -> list[BackupHistoryItem]:
        """List safety snapshots, newest first. Unreadable snapshots are skipped."""
        history = []
        for prefix, kind in _HISTORY_KINDS.items():
            for key in self.kv.keys(prefix=prefix):
                try:
                    data = self.kv.get(key)
                except ValueError as e:
                    logger.warning("Failed to parse backup %s: %s", key, e)
                    continue
                if not isinstance(data, dict):
                    logger.warning("Skipping backup %s: not an object", key)
                    continue
                history.append(
                    BackupHistoryItem(
                        key=key,
                        timestamp=key[len(prefix):],
                        kind=kind,
                        workers=len(data.get("workers") or []),
                        entries=len(data.get("entries") or []),
                        payments=len(data.get("payments") or []),
                    )
                )
        history.sort(key=lambda item: item.timestamp, reverse=True)
        return history

    def load_snapshot(self, key: str) -> Optional[BackupDocument]:
        """Wrap a stored safety snapshot as a restorable backup document."""
        if _history_kind(key) is None:
            return None
        data = self.kv.get(key)
        if not isinstance(data, dict):
            return None
        _, document = parse_backup_document(
            {"version": BACKUP_VERSION, "timestamp": key, "appData": data}
        )
        return document

    def prune_backups(self, keep: int = DEFAULT_KEEP_COUNT) -> list[str]:
        """Delete all but the newest ``keep`` safety snapshots.

        Returns:
            Keys that were removed
        """
        if keep < 0:
            raise ValueError("keep must not be negative")
        removed = []
        for item in self.backup_history()[keep:]:
            self.kv.remove(item.key)
            removed.append(item.key)
        if removed:
            logger.info("Pruned %d old backup(s)", len(removed))
        return removed

    @staticmethod
    def prune_export_files(directory: str | Path, keep: int = DEFAULT_KEEP_COUNT) -> list[Path]:
        """Delete all but the newest ``keep`` exported backup files in a directory."""
        if keep < 0:
            raise ValueError("keep must not be negative")
        directory = Path(directory)
        if not directory.exists():
            return []
        files = sorted(
            directory.glob(f"{BACKUP_FILE_PREFIX}*{BACKUP_EXTENSION}"),
            key=lambda p: p.name,
            reverse=True,
        )
        removed = []
        for path in files[keep:]:
            path.unlink()
            removed.append(path)
        return removed
