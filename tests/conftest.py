"""Shared pytest fixtures for workledger tests."""

import tempfile
import os
from datetime import date, datetime, timedelta
from decimal import Decimal
import pytest

from workledger.domain.entities import AttendanceStatus
from workledger.domain.workforce import WorkforceService
from workledger.storage.factories import create_sqlite_store


class FixedClock:
    """Clock returning increasing timestamps, one second apart."""

    def __init__(self, start: datetime = datetime(2025, 1, 10, 9, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


@pytest.fixture
def temp_kv():
    """Create a temporary SQLite key-value store for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    kv = create_sqlite_store(database_path=db_path)
    # Store the path for tests that need it
    kv.database_path = db_path
    kv.connect()

    yield kv

    kv.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def service(temp_kv, clock):
    """Create a loaded WorkforceService with a temporary store."""
    svc = WorkforceService(temp_kv, clock=clock)
    svc.load()
    return svc


@pytest.fixture
def sample_worker(service):
    """Create a worker with an opening balance of 1000."""
    result = service.add_worker(name="Ramesh", opening_balance=Decimal("1000"), phone="9876543210")
    assert result.accepted
    return result.entity


@pytest.fixture
def sample_categories(service):
    """Create two categories and subcategories, one shared between both."""
    masonry = service.add_category("Masonry").entity
    painting = service.add_category("Painting").entity
    plastering = service.add_subcategory("Plastering", [masonry.id]).entity
    finishing = service.add_subcategory("Finishing", [masonry.id, painting.id]).entity
    return {
        "masonry": masonry,
        "painting": painting,
        "plastering": plastering,
        "finishing": finishing,
    }


@pytest.fixture
def sample_ledger(service, sample_worker, sample_categories):
    """Two entries and a payment for the sample worker (balance 1400)."""
    masonry = sample_categories["masonry"]
    plastering = sample_categories["plastering"]
    first = service.add_entry(
        worker_id=sample_worker.id,
        entry_date=date(2025, 1, 1),
        status=AttendanceStatus.PRESENT,
        amount=Decimal("500"),
        category_id=masonry.id,
        subcategory_id=plastering.id,
    ).entity
    second = service.add_entry(
        worker_id=sample_worker.id,
        entry_date=date(2025, 1, 2),
        status=AttendanceStatus.HALF,
        amount=Decimal("400"),
        category_id=masonry.id,
        subcategory_id=plastering.id,
    ).entity
    payment = service.add_payment(
        worker_id=sample_worker.id,
        payment_date=date(2025, 1, 3),
        amount=Decimal("300"),
    ).entity
    return {"entries": [first, second], "payment": payment}


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
