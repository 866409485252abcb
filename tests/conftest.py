"""
Pytest fixtures and test configuration for kahraba tests.
"""

import functools
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from kahraba.config import MarketplaceConfig
from kahraba.dispatch import BroadcastDispatcher
from kahraba.jobs import ActorRole, JobService, JobStatus
from kahraba.ledger import LedgerService
from kahraba.storage import InMemoryStorage, SQLiteStorage

# Wednesday 2024-05-15 10:00 UTC; the week started Sunday 2024-05-12
FIXED_NOW = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class SequentialIds:
    """Deterministic ids: job-000001, job-000002, ..."""

    def __init__(self, prefix: str = "id"):
        self._counter = itertools.count(1)
        self.prefix = prefix

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter):06d}"


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep logs and default databases inside the test's tmp dir."""
    monkeypatch.setenv("KAHRABA_DATA_DIR", str(tmp_path / "kahraba"))
    return tmp_path / "kahraba"


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config():
    return MarketplaceConfig()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def sqlite_storage(tmp_path):
    return SQLiteStorage(tmp_path / "test.db")


@pytest.fixture
def ledger(storage, config, clock):
    return LedgerService(storage, config=config, clock=clock, id_factory=SequentialIds("tx"))


@pytest.fixture
def service(storage, ledger, config, clock):
    return JobService(
        storage, ledger=ledger, config=config, clock=clock, id_factory=SequentialIds("job")
    )


@pytest.fixture
def dispatcher(service):
    return BroadcastDispatcher(service)


LINEAR_PATH = (JobStatus.EN_ROUTE, JobStatus.ARRIVED, JobStatus.IN_PROGRESS, JobStatus.COMPLETED)


def _walk_to(service: JobService, job_id: str, electrician_id: str, target: JobStatus):
    job = service.get_job(job_id)
    for status in LINEAR_PATH:
        job = service.apply_transition(job_id, status, ActorRole.ELECTRICIAN, electrician_id)
        if status == target:
            break
    return job


@pytest.fixture
def walk_to(service):
    """Advance an accepted job along the linear path up to a target status."""
    return functools.partial(_walk_to, service)


@pytest.fixture
def accepted_job(service):
    """A job with base price 30 accepted by electrician e1."""
    job = service.create_job("c1", 30, description="Lights flicker", customer_name="Lina")
    return service.accept_broadcast(job.id, "e1", "Omar")
