"""Pytest configuration and fixtures for acctsync tests."""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime
from typing import Any

import pytest

from acctsync.comparator import format_timestamp
from acctsync.config import SyncConfig
from acctsync.jobs import (
    BatchAction,
    BatchNotification,
    BatchNotificationListener,
    JobInstance,
    JobRunId,
    JobStatus,
)
from acctsync.logger import reset_logger
from acctsync.models import AccountRecord
from acctsync.sync import AccountSynchronizer

FIXED_NOW = "2024-03-01T12:00:00.000Z"


class InMemoryOrg:
    """Fake CRM org keeping accounts in a dict keyed by Id."""

    def __init__(self, prefix: str, clock: Callable[[], str] | None = None) -> None:
        self.prefix = prefix
        self.clock = clock or (lambda: FIXED_NOW)
        self.accounts: dict[str, AccountRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, records: Sequence[AccountRecord]) -> list[str]:
        ids: list[str] = []
        with self._lock:
            for record in records:
                new_id = f"{self.prefix}{next(self._ids):05d}"
                stamped = record.replace(
                    id=new_id,
                    last_referenced_date=record.last_referenced_date or self.clock(),
                )
                self.accounts[new_id] = stamped
                ids.append(new_id)
        return ids

    def retrieve_by_name(self, name: str) -> AccountRecord | None:
        with self._lock:
            for record in self.accounts.values():
                if record.name == name:
                    return record
        return None

    def query_all(self) -> list[AccountRecord]:
        with self._lock:
            return list(self.accounts.values())

    def update(self, records: Sequence[AccountRecord]) -> None:
        with self._lock:
            for record in records:
                assert record.id in self.accounts, f"unknown id {record.id}"
                self.accounts[record.id] = record

    def delete(self, ids: Sequence[str]) -> None:
        with self._lock:
            for account_id in ids:
                self.accounts.pop(account_id, None)

    def seed(self, *records: AccountRecord) -> None:
        """Insert records as-is, keeping their ids and timestamps."""
        with self._lock:
            for record in records:
                assert record.id is not None
                self.accounts[record.id] = record


class InMemoryJobStore:
    """Fake job-instance store."""

    def __init__(self) -> None:
        self.instances: dict[JobRunId, JobInstance] = {}

    def get_job_instance(self, owner_job_name: str, instance_id: str) -> JobInstance | None:
        return self.instances.get(JobRunId(owner_job_name, instance_id))


JobBody = Callable[[], Any]


class ThreadedBatchEngine:
    """Fake batch engine running each job on its own thread.

    A job is a callable; it fails in the input phase if it raises, and
    otherwise completes successfully.
    """

    def __init__(self) -> None:
        self.job_instance_store = InMemoryJobStore()
        self.jobs: dict[str, JobBody] = {}
        self.listeners: list[BatchNotificationListener] = []
        self.threads: list[threading.Thread] = []
        self._run_ids = itertools.count(1)

    def register_job(self, name: str, body: JobBody) -> None:
        self.jobs[name] = body

    def register_listener(self, listener: BatchNotificationListener) -> None:
        self.listeners.append(listener)

    def start_job(self, job_name: str) -> JobRunId:
        body = self.jobs[job_name]
        run_id = JobRunId(job_name, str(next(self._run_ids)))
        self.job_instance_store.instances[run_id] = JobInstance(run_id, JobStatus.PENDING)
        thread = threading.Thread(target=self._execute, args=(run_id, body), daemon=True)
        self.threads.append(thread)
        thread.start()
        return run_id

    def _notify(self, run_id: JobRunId, action: BatchAction, message: str = "") -> None:
        for listener in self.listeners:
            listener.on_notification(BatchNotification(action, run_id, message))

    def _execute(self, run_id: JobRunId, body: JobBody) -> None:
        self._notify(run_id, BatchAction.INPUT_PHASE_BEGIN)
        try:
            result = body()
        except Exception as e:  # noqa: BLE001 - reported as a failed run
            self.job_instance_store.instances[run_id] = JobInstance(
                run_id, JobStatus.FAILED, message=str(e)
            )
            self._notify(run_id, BatchAction.INPUT_PHASE_FAILED, str(e))
            return
        processed = len(getattr(result, "created", [])) + len(getattr(result, "updated", []))
        self.job_instance_store.instances[run_id] = JobInstance(
            run_id, JobStatus.SUCCEEDED, records_processed=processed
        )
        self._notify(run_id, BatchAction.ON_COMPLETE_BEGIN)
        self._notify(run_id, BatchAction.JOB_SUCCESSFUL)

    def join(self, timeout: float = 5.0) -> None:
        for thread in self.threads:
            thread.join(timeout)


class RecordingListener:
    """Listener that just keeps every notification."""

    def __init__(self) -> None:
        self.notifications: list[BatchNotification] = []

    def on_notification(self, notification: BatchNotification) -> None:
        self.notifications.append(notification)


def account(name: str, when: str | None = None, **fields: str) -> AccountRecord:
    """Shorthand for building an account with a timestamp."""
    mapping: dict[str, str] = {"Name": name, **fields}
    if when is not None:
        mapping["LastReferencedDate"] = when
    return AccountRecord.from_mapping(mapping)


@pytest.fixture
def make_account() -> Callable[..., AccountRecord]:
    """Factory for AccountRecords: make_account(name, when, **crm_fields)."""
    return account


@pytest.fixture
def org_a() -> InMemoryOrg:
    """Source sandbox org."""
    return InMemoryOrg("A")


@pytest.fixture
def org_b() -> InMemoryOrg:
    """Destination sandbox org."""
    return InMemoryOrg("B")


@pytest.fixture
def engine() -> Iterator[ThreadedBatchEngine]:
    """Batch engine with no jobs registered."""
    batch_engine = ThreadedBatchEngine()
    yield batch_engine
    batch_engine.join()


@pytest.fixture
def migration_engine(
    engine: ThreadedBatchEngine, org_a: InMemoryOrg, org_b: InMemoryOrg
) -> ThreadedBatchEngine:
    """Batch engine with the account migration job registered."""
    synchronizer = AccountSynchronizer(org_a, org_b, SyncConfig())
    engine.register_job("migrateAccountsBatch", synchronizer.run)
    return engine


@pytest.fixture(autouse=True)
def clean_logger() -> Iterator[None]:
    """Reset logger configuration after each test."""
    yield
    reset_logger()


def timestamp(  # noqa: PLR0913
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    millis: int = 0,
) -> str:
    """Build a LastReferencedDate value."""
    return format_timestamp(datetime(year, month, day, hour, minute, second, millis * 1000))
