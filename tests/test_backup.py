"""Tests for backup export, validation and restore."""

import json
from decimal import Decimal

import pytest

from workledger.domain.backup import (
    BACKUP_FILE_PREFIX,
    BACKUP_VERSION,
    PRE_RESTORE_PREFIX,
    BackupRestoreManager,
    RestoreState,
    check_integrity,
    create_backup_document,
    parse_backup_document,
    parse_backup_text,
    validate_backup_document,
)
from workledger.domain.errors import RestoreError, RestoreInProgressError
from workledger.domain.migration import PRIMARY_KEY, normalize_app_data
from workledger.domain.store import EntityStore
from workledger.domain.validation import RejectionReason
from workledger.domain.workforce import WorkforceService
from workledger.storage.mappers import store_to_blob


def _valid_document():
    return {
        "version": "1.0",
        "timestamp": "2025-01-05T10:00:00",
        "appData": {
            "workers": [{"id": "w9", "name": "Mohan", "openingBalance": 50}],
            "categories": [],
            "subcategories": [],
            "entries": [
                {
                    "id": "e9",
                    "workerId": "w9",
                    "date": "2025-01-04",
                    "status": "P",
                    "workType": "A",
                    "amount": 200,
                }
            ],
            "payments": [],
        },
    }


class TestBackupDocument:
    """Tests for backup document creation and validation."""

    def test_document_shape(self, service, sample_ledger, sample_worker):
        document = create_backup_document(service.store)

        assert document["version"] == BACKUP_VERSION
        assert set(document["appData"]) >= {
            "workers",
            "categories",
            "subcategories",
            "entries",
            "payments",
        }
        metadata = document["metadata"]
        assert metadata["totalWorkers"] == 1
        assert metadata["totalEntries"] == 2
        assert metadata["totalPayments"] == 1
        assert metadata["calculatedBalances"] == {sample_worker.id: 1400}

    def test_export_does_not_modify_store(self, service, sample_ledger):
        before = service.store

        service.export_backup()

        assert service.store is before

    def test_document_is_json_serializable(self, service, sample_ledger):
        document = service.export_backup()

        assert json.loads(json.dumps(document)) == document

    def test_export_then_parse_rebuilds_store(self, service, sample_ledger):
        result, document = parse_backup_document(service.export_backup())

        assert result.accepted
        assert normalize_app_data(document.app_data) == service.store

    def test_valid_document_accepted(self):
        assert validate_backup_document(_valid_document()).accepted

    def test_empty_collections_accepted(self):
        document = _valid_document()
        document["appData"]["workers"] = []
        document["appData"]["entries"] = []

        assert validate_backup_document(document).accepted

    @pytest.mark.parametrize("missing", ["workers", "categories", "subcategories", "entries", "payments"])
    def test_missing_collection_rejected(self, missing):
        document = _valid_document()
        del document["appData"][missing]

        result = validate_backup_document(document)

        assert result.reason is RejectionReason.MALFORMED_BACKUP
        assert missing in result.message

    def test_non_list_collection_rejected(self):
        document = _valid_document()
        document["appData"]["payments"] = {"p1": {}}

        assert not validate_backup_document(document).accepted

    @pytest.mark.parametrize(
        "document",
        [
            None,
            [],
            "text",
            {"appData": {}},
            {"version": "1.0"},
            {"version": "1.0", "appData": []},
        ],
    )
    def test_malformed_shapes_rejected(self, document):
        result = validate_backup_document(document)

        assert result.reason is RejectionReason.MALFORMED_BACKUP

    def test_invalid_json_rejected(self):
        result, document = parse_backup_text("{not json")

        assert result.reason is RejectionReason.MALFORMED_BACKUP
        assert document is None

    def test_metadata_is_optional(self):
        result, document = parse_backup_text(json.dumps(_valid_document()))

        assert result.accepted
        assert document.metadata == {}


class TestRestore:
    """Tests for restoring a backup over live data."""

    def test_restore_replaces_live_data(self, service, sample_ledger, temp_kv):
        result, report = service.restore_from_text(json.dumps(_valid_document()))

        assert result.accepted
        assert [w.id for w in service.store.workers] == ["w9"]
        assert service.store.payments == ()
        assert service.store.categories == ()
        assert report.balances == {"w9": Decimal("250")}
        assert temp_kv.get(PRIMARY_KEY)["workers"][0]["name"] == "Mohan"

    def test_safety_snapshot_holds_previous_data(self, service, sample_ledger, temp_kv):
        before = store_to_blob(service.store)

        _, report = service.restore_from_text(json.dumps(_valid_document()))

        assert report.safety_key.startswith(PRE_RESTORE_PREFIX)
        assert json.dumps(temp_kv.get(report.safety_key), sort_keys=True) == json.dumps(
            json.loads(json.dumps(before)), sort_keys=True
        )

    def test_restore_walks_states_in_order(self, service, sample_ledger):
        _, report = service.restore_from_text(json.dumps(_valid_document()))

        assert report.states == (
            RestoreState.SNAPSHOTTING_CURRENT.value,
            RestoreState.REPLACING.value,
            RestoreState.REVALIDATING.value,
            RestoreState.IDLE.value,
        )
        assert service.backups.state is RestoreState.IDLE

    def test_restore_totals(self, service, sample_ledger):
        _, report = service.restore_from_text(json.dumps(_valid_document()))

        assert (report.total_workers, report.total_entries, report.total_payments) == (1, 1, 0)

    def test_malformed_backup_leaves_everything_untouched(self, service, sample_ledger, temp_kv):
        before = service.store
        persisted = temp_kv.get(PRIMARY_KEY)
        document = _valid_document()
        del document["appData"]["entries"]

        result, report = service.restore_from_text(json.dumps(document))

        assert result.reason is RejectionReason.MALFORMED_BACKUP
        assert report is None
        assert service.store is before
        assert temp_kv.get(PRIMARY_KEY) == persisted
        assert temp_kv.keys(prefix=PRE_RESTORE_PREFIX) == []

    def test_safety_snapshot_failure_aborts_restore(self, service, sample_ledger, temp_kv, monkeypatch):
        before = service.store
        persisted = temp_kv.get(PRIMARY_KEY)
        original_set = temp_kv.set

        def failing_set(key, value):
            if key.startswith(PRE_RESTORE_PREFIX):
                raise OSError("disk full")
            original_set(key, value)

        monkeypatch.setattr(temp_kv, "set", failing_set)

        with pytest.raises(RestoreError):
            service.restore_from_text(json.dumps(_valid_document()))

        assert service.store is before
        assert temp_kv.get(PRIMARY_KEY) == persisted
        assert service.backups.state is RestoreState.IDLE

    def test_replace_failure_keeps_live_store(self, service, sample_ledger, temp_kv, monkeypatch):
        before = service.store
        original_set = temp_kv.set

        def failing_set(key, value):
            if key == PRIMARY_KEY:
                raise OSError("disk full")
            original_set(key, value)

        monkeypatch.setattr(temp_kv, "set", failing_set)

        with pytest.raises(OSError):
            service.restore_from_text(json.dumps(_valid_document()))

        assert service.store is before
        assert service.backups.state is RestoreState.IDLE
        assert len(temp_kv.keys(prefix=PRE_RESTORE_PREFIX)) == 1

    def test_restore_normalizes_legacy_fields(self, service):
        document = _valid_document()
        document["appData"]["entries"][0]["status"] = "present"
        document["appData"]["subcategories"] = [{"id": "s1", "name": "Tiles", "categoryId": "c1"}]

        service.restore_from_text(json.dumps(document))

        assert service.store.entries[0].status == "P"
        assert service.store.subcategories[0].category_ids == ("c1",)

    def test_restore_reports_integrity_issues(self, service):
        document = _valid_document()
        document["appData"]["entries"].append(
            {"id": "e10", "workerId": "w9", "date": "2025-01-05", "status": "P", "workType": "B", "amount": 100}
        )

        _, report = service.restore_from_text(json.dumps(document))

        assert report.issues_found == 2
        assert {issue.type for issue in report.issues} == {
            "invalid_entries",
            "invalid_work_b_entries",
        }
        assert len(service.store.entries) == 2

    def test_restore_reports_unassociated_subcategory(self, service):
        document = _valid_document()
        app_data = document["appData"]
        app_data["categories"] = [{"id": "c1", "name": "Masonry"}, {"id": "c2", "name": "Painting"}]
        app_data["subcategories"] = [{"id": "s1", "name": "Walls", "categoryIds": ["c2"]}]
        app_data["entries"][0].update({"categoryId": "c1", "subcategoryId": "s1"})

        _, report = service.restore_from_text(json.dumps(document))

        assert [(issue.type, issue.count) for issue in report.issues] == [("unlinked_entries", 1)]
        assert report.issues[0].worker_name == "Mohan"

    def test_restore_from_file(self, service, sample_ledger, tmp_path):
        path = tmp_path / "backup.json"
        path.write_text(json.dumps(_valid_document()), encoding="utf-8")

        result, report = service.restore_from_file(path)

        assert result.accepted
        assert report.total_workers == 1

    def test_round_trip_through_file(self, service, sample_ledger, tmp_path):
        before = service.store
        path = service.export_backup_to_file(tmp_path)
        service.delete_worker(before.workers[0].id)

        result, _ = service.restore_from_file(path)

        assert result.accepted
        assert service.store == before


class TestIntegrity:
    """Tests for check_integrity."""

    def test_clean_store_has_no_issues(self, service, sample_ledger):
        assert check_integrity(service.store) == []

    def test_absent_entries_never_reported(self):
        store = normalize_app_data(
            {
                "workers": [{"id": "w1", "name": "Ramesh"}],
                "entries": [{"id": "e1", "workerId": "w1", "date": "2025-01-01", "status": "A"}],
            }
        )

        assert check_integrity(store) == []

    def test_deleted_category_reported(self, service, sample_ledger, sample_categories, sample_worker):
        service.delete_category(sample_categories["masonry"].id)

        issues = check_integrity(service.store)

        assert len(issues) == 1
        assert issues[0].type == "unlinked_entries"
        assert issues[0].worker_id == sample_worker.id
        assert issues[0].count == 2

    def test_deleted_subcategory_reported(self, service, sample_ledger, sample_categories):
        service.delete_subcategory(sample_categories["plastering"].id)

        assert [issue.type for issue in check_integrity(service.store)] == ["unlinked_entries"]


class TestBackupHistory:
    """Tests for safety snapshot history and pruning."""

    def _restore_times(self, service, count):
        for _ in range(count):
            service.restore_from_text(json.dumps(_valid_document()))

    def test_history_newest_first(self, service):
        self._restore_times(service, 3)

        history = service.backup_history()

        assert len(history) == 3
        assert [item.timestamp for item in history] == sorted(
            (item.timestamp for item in history), reverse=True
        )
        assert all(item.kind == "pre-restore" for item in history)

    def test_history_counts(self, service, sample_ledger):
        self._restore_times(service, 1)

        item = service.backup_history()[0]

        assert (item.workers, item.entries, item.payments) == (1, 2, 1)

    def test_prune_keeps_newest(self, service):
        self._restore_times(service, 4)
        newest = [item.key for item in service.backup_history()[:2]]

        removed = service.prune_backups(2)

        assert len(removed) == 2
        assert [item.key for item in service.backup_history()] == newest

    def test_prune_rejects_negative_keep(self, service):
        with pytest.raises(ValueError):
            service.prune_backups(-1)

    def test_load_snapshot(self, service, sample_ledger):
        before = service.store
        _, report = service.restore_from_text(json.dumps(_valid_document()))

        document = service.backups.load_snapshot(report.safety_key)
        service.restore_backup(document)

        assert service.store == before

    def test_load_snapshot_unknown_key(self, service):
        assert service.backups.load_snapshot("somethingElse") is None


class TestExportFiles:
    """Tests for backup files on disk."""

    def test_export_file_name(self, service, sample_ledger, tmp_path):
        path = service.export_backup_to_file(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith(BACKUP_FILE_PREFIX)
        assert path.suffix == ".json"
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == BACKUP_VERSION

    def test_prune_export_files(self, temp_kv, clock, tmp_path):
        manager = BackupRestoreManager(temp_kv, clock=clock)
        paths = [manager.export_backup_to_file(EntityStore(), tmp_path) for _ in range(4)]

        removed = BackupRestoreManager.prune_export_files(tmp_path, keep=2)

        assert sorted(removed) == sorted(paths[:2])
        assert sorted(tmp_path.iterdir()) == sorted(paths[2:])

    def test_prune_export_files_missing_directory(self, tmp_path):
        assert BackupRestoreManager.prune_export_files(tmp_path / "missing") == []


def test_mutation_blocked_while_replacing(temp_kv, clock):
    service = WorkforceService(temp_kv, clock=clock)
    service.load()
    service.backups.state = RestoreState.REPLACING

    with pytest.raises(RestoreInProgressError):
        service.add_category("Masonry")

    assert service.store == EntityStore()
