"""Tests for WorkforceService."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from workledger.domain.entities import AttendanceStatus, OutboxStatus, WorkType
from workledger.domain.errors import NotFoundError
from workledger.domain.migration import PRIMARY_KEY
from workledger.domain.validation import RejectionReason
from workledger.domain.workforce import WorkforceService, build_entry


class TestBuildEntry:
    """Tests for entry construction from form values."""

    def test_absent_clears_amount_and_work_fields(self):
        entry = build_entry(
            "e1",
            "w1",
            date(2025, 1, 1),
            AttendanceStatus.ABSENT,
            amount=Decimal("500"),
            category_id="c1",
            subcategory_id="s1",
            narration="sick",
        )

        assert entry.amount == Decimal("0")
        assert entry.category_id is None
        assert entry.narration == ""

    def test_unit_based_defaults_amount(self):
        entry = build_entry(
            "e1",
            "w1",
            date(2025, 1, 1),
            AttendanceStatus.PRESENT,
            work_type=WorkType.UNIT_BASED,
            category_id="c1",
            work_name=" Bricks ",
            units=Decimal("200"),
            rate_per_unit=Decimal("1.5"),
        )

        assert entry.amount == Decimal("300")
        assert entry.category_id is None
        assert entry.work_name == "Bricks"

    def test_unit_based_overrides_given_amount(self):
        entry = build_entry(
            "e1",
            "w1",
            date(2025, 1, 1),
            AttendanceStatus.PRESENT,
            work_type=WorkType.UNIT_BASED,
            amount=Decimal("250"),
            work_name="Bricks",
            units=Decimal("200"),
            rate_per_unit=Decimal("1.5"),
        )

        assert entry.amount == Decimal("300")

    def test_category_based_clears_unit_fields(self):
        entry = build_entry(
            "e1",
            "w1",
            date(2025, 1, 1),
            AttendanceStatus.PRESENT,
            amount=Decimal("500"),
            category_id="c1",
            subcategory_id="s1",
            work_name="Bricks",
            units=Decimal("2"),
        )

        assert entry.work_name is None
        assert entry.units is None
        assert entry.subcategory_id == "s1"


class TestWorkers:
    """Tests for worker operations."""

    def test_add_worker_persists(self, service, sample_worker, temp_kv):
        blob = temp_kv.get(PRIMARY_KEY)

        assert blob["workers"][0]["name"] == "Ramesh"
        assert blob["openingBalances"] == {sample_worker.id: 1000}

    def test_rejected_worker_is_not_persisted(self, service, sample_worker, temp_kv):
        result = service.add_worker(name="ramesh")

        assert not result
        assert result.reason is RejectionReason.DUPLICATE_NAME
        assert len(service.store.workers) == 1
        assert len(temp_kv.get(PRIMARY_KEY)["workers"]) == 1

    def test_update_worker_name(self, service, sample_worker):
        result = service.update_worker(replace(sample_worker, name="Ramesh Kumar"))

        assert result.accepted
        assert service.get_worker(sample_worker.id).name == "Ramesh Kumar"

    def test_opening_balance_cannot_change(self, service, sample_worker):
        result = service.update_worker(replace(sample_worker, opening_balance=Decimal("0")))

        assert result.reason is RejectionReason.IMMUTABLE_FIELD
        assert service.get_worker(sample_worker.id).opening_balance == Decimal("1000")

    def test_find_worker_by_name(self, service, sample_worker):
        assert service.find_worker_by_name("  RAMESH ").id == sample_worker.id
        assert service.find_worker_by_name("Nobody") is None

    def test_list_workers_sorted(self, service, sample_worker):
        service.add_worker(name="anil")

        assert [w.name for w in service.list_workers()] == ["anil", "Ramesh"]

    def test_delete_worker_cascades(self, service, sample_ledger, sample_worker):
        service.queue_message(sample_worker.id, "Paid 300")

        service.delete_worker(sample_worker.id)

        assert service.store.workers == ()
        assert service.store.entries == ()
        assert service.store.payments == ()
        assert service.store.outbox == ()
        assert service.find_orphans().is_clean

    def test_delete_unknown_worker(self, service):
        with pytest.raises(NotFoundError):
            service.delete_worker("missing")

    def test_drop_orphans_on_clean_store(self, service, sample_ledger):
        assert service.drop_orphans().is_clean
        assert len(service.store.entries) == 2


class TestCategories:
    """Tests for category operations through the service."""

    def test_delete_category_cascade(self, service, sample_categories):
        service.delete_category(sample_categories["masonry"].id)

        names = {s.name: s.category_ids for s in service.store.subcategories}
        assert names == {"Finishing": (sample_categories["painting"].id,)}

    def test_add_subcategory_dedupes_categories(self, service, sample_categories):
        painting = sample_categories["painting"].id

        result = service.add_subcategory("Walls", [painting, painting])

        assert result.entity.category_ids == (painting,)

    def test_duplicate_category_rejected(self, service, sample_categories):
        assert service.add_category(" masonry ").reason is RejectionReason.DUPLICATE_NAME


class TestEntriesAndPayments:
    """Tests for entries, payments and balances through the service."""

    def test_example_balance(self, service, sample_ledger, sample_worker):
        assert service.balance(sample_worker.id) == Decimal("1400")
        assert service.balances() == {sample_worker.id: Decimal("1400")}

    def test_ledger_ends_at_balance(self, service, sample_ledger, sample_worker):
        records = service.ledger(sample_worker.id)

        assert records[-1].balance_after == service.balance(sample_worker.id)

    def test_duplicate_attendance_rejected(self, service, sample_ledger, sample_worker):
        before = service.store

        result = service.add_entry(
            worker_id=sample_worker.id,
            entry_date=date(2025, 1, 1),
            status=AttendanceStatus.ABSENT,
        )

        assert result.reason is RejectionReason.DUPLICATE_ATTENDANCE
        assert service.store is before

    def test_edit_entry_in_place(self, service, sample_ledger, sample_worker):
        entry = sample_ledger["entries"][1]

        result = service.update_entry(replace(entry, status=AttendanceStatus.PRESENT))

        assert result.accepted
        assert service.balance(sample_worker.id) == Decimal("1600")
        assert len(service.store.entries) == 2

    def test_unit_based_entry(self, service, sample_worker):
        result = service.add_entry(
            worker_id=sample_worker.id,
            entry_date=date(2025, 2, 1),
            status=AttendanceStatus.HALF,
            work_type=WorkType.UNIT_BASED,
            work_name="Bricks",
            units=Decimal("200"),
            rate_per_unit=Decimal("1.5"),
        )

        assert result.accepted
        assert service.balance(sample_worker.id) == Decimal("1150")

    def test_delete_payment(self, service, sample_ledger, sample_worker):
        service.delete_payment(sample_ledger["payment"].id)

        assert service.balance(sample_worker.id) == Decimal("1700")

    def test_invalid_payment_rejected(self, service, sample_worker):
        result = service.add_payment(sample_worker.id, date(2025, 1, 3), Decimal("0"))

        assert result.reason is RejectionReason.INVALID_AMOUNT

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_payment_rejected(self, service, sample_worker, temp_kv, amount):
        before = service.store
        persisted = temp_kv.get(PRIMARY_KEY)

        result = service.add_payment(sample_worker.id, date(2025, 1, 3), Decimal(amount))

        assert result.reason is RejectionReason.INVALID_AMOUNT
        assert service.store is before
        assert temp_kv.get(PRIMARY_KEY) == persisted

    def test_non_finite_opening_balance_rejected(self, service):
        result = service.add_worker(name="Sita", opening_balance=Decimal("Infinity"))

        assert result.reason is RejectionReason.INVALID_AMOUNT
        assert service.list_workers() == []

    def test_attendance(self, service, sample_ledger, sample_worker):
        summary = service.attendance(sample_worker.id, date(2025, 1, 1), date(2025, 1, 31))

        assert (summary.present, summary.half, summary.absent) == (1, 1, 0)

    def test_changes_survive_reload(self, service, sample_ledger, sample_worker, temp_kv, clock):
        reloaded = WorkforceService(temp_kv, clock=clock)

        reloaded.load()

        assert reloaded.store == service.store
        assert reloaded.balance(sample_worker.id) == Decimal("1400")

    def test_precise_opening_balance_survives_reload(self, service, temp_kv, clock):
        balance = Decimal("1234567890123.456789")
        service.add_worker(name="Sita", opening_balance=balance)

        reloaded = WorkforceService(temp_kv, clock=clock)
        reloaded.load()

        assert [w.opening_balance for w in reloaded.list_workers()] == [balance]

    def test_failed_persist_keeps_live_store(self, service, sample_worker, temp_kv, monkeypatch):
        before = service.store

        def failing_set(key, value):
            raise OSError("disk full")

        monkeypatch.setattr(temp_kv, "set", failing_set)

        with pytest.raises(OSError):
            service.add_payment(sample_worker.id, date(2025, 1, 3), Decimal("100"))

        assert service.store is before


class TestOutbox:
    """Tests for queued messages."""

    def test_queue_message_snapshots_worker(self, service, sample_worker, clock):
        message = service.queue_message(sample_worker.id, "Paid ₹300")

        assert message.status is OutboxStatus.PENDING
        assert message.worker_name == "Ramesh"
        assert message.phone == "9876543210"
        assert service.store.outbox == (message,)

    def test_mark_sent(self, service, sample_worker):
        message = service.queue_message(sample_worker.id, "Paid ₹300")

        service.mark_message_sent(message.id)

        sent = service.store.outbox[0]
        assert sent.status is OutboxStatus.SENT
        assert sent.sent_at is not None

    def test_delete_message(self, service, sample_worker):
        message = service.queue_message(sample_worker.id, "Paid ₹300")

        service.delete_message(message.id)

        assert service.store.outbox == ()
