"""Shared fixtures: an in-memory store and the services built on it."""
from datetime import datetime

import pytest

from mob_pos.billing import BillHistory, BillingSession
from mob_pos.inventory import InventoryLedger
from mob_pos.reports import SalesReporter
from mob_pos.repository import PosRepository
from mob_pos.store import MemoryBlobStore


class FixedClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingImageStore:
    """Image store that remembers deletes and can be told to fail."""

    def __init__(self, fail_delete: bool = False):
        self.saved: dict[str, str] = {}
        self.deleted: list[str] = []
        self.fail_delete = fail_delete

    def save(self, key, source):
        ref = f"images/product_{key}.jpg"
        self.saved[key] = str(source)
        return ref

    def delete(self, image_ref):
        if self.fail_delete:
            raise OSError("disk unplugged")
        self.deleted.append(image_ref)


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def repo(store):
    return PosRepository(store)


@pytest.fixture
def images():
    return RecordingImageStore()


@pytest.fixture
def ledger(repo, images):
    return InventoryLedger(repo, images=images)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 5, 10, 30))


@pytest.fixture
def session(repo, clock):
    return BillingSession(repo, clock=clock)


@pytest.fixture
def history(repo):
    return BillHistory(repo)


@pytest.fixture
def reporter(repo):
    return SalesReporter(repo)


@pytest.fixture
def soap(ledger):
    """The ledger holds 10 units of Soap at 2.00."""
    return ledger.upsert("123", "Soap", "2.00", 10)


@pytest.fixture
def failing_images():
    return RecordingImageStore(fail_delete=True)
