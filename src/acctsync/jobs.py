"""Observation of batch job runs executed by an external engine.

The engine pushes lifecycle notifications from its own threads. JobObserver
turns the first terminal notification of a run into a JobStatus and hands it
to waiting callers through a single-slot channel, so await_termination()
wakes up as soon as the verdict arrives instead of polling.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .exceptions import AcctSyncError, JobTimeoutError
from .logger import get_logger

logger = get_logger()

DEFAULT_TIMEOUT_SECS = 60.0

TIMEOUT_DESCRIPTION = "batch job timed out"


class JobStatus(str, Enum):
    """Lifecycle state of a single job run as seen by the observer."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


class BatchAction(str, Enum):
    """Lifecycle notifications emitted by the batch engine."""

    LOAD_PHASE_BEGIN = "load_phase_begin"
    LOAD_PHASE_PROGRESS = "load_phase_progress"
    LOAD_PHASE_FAILED = "load_phase_failed"
    INPUT_PHASE_BEGIN = "input_phase_begin"
    INPUT_PHASE_FAILED = "input_phase_failed"
    STEP_BEGIN = "step_begin"
    JOB_PROCESS_RECORDS_BEGIN = "job_process_records_begin"
    JOB_PROCESS_RECORDS_FAILED = "job_process_records_failed"
    ON_COMPLETE_BEGIN = "on_complete_begin"
    ON_COMPLETE_FAILED = "on_complete_failed"
    JOB_SUCCESSFUL = "job_successful"
    JOB_STOPPED = "job_stopped"


SUCCESS_ACTIONS = frozenset({BatchAction.JOB_SUCCESSFUL, BatchAction.JOB_STOPPED})
FAILURE_ACTIONS = frozenset(
    {
        BatchAction.JOB_PROCESS_RECORDS_FAILED,
        BatchAction.LOAD_PHASE_FAILED,
        BatchAction.INPUT_PHASE_FAILED,
        BatchAction.ON_COMPLETE_FAILED,
    }
)


def status_for(action: BatchAction) -> JobStatus:
    """Map a notification to the status it implies (PENDING if not terminal)."""
    if action in SUCCESS_ACTIONS:
        return JobStatus.SUCCEEDED
    if action in FAILURE_ACTIONS:
        return JobStatus.FAILED
    return JobStatus.PENDING


@dataclass(frozen=True)
class JobRunId:
    """Identity of one batch execution."""

    owner_job_name: str
    instance_id: str

    def __str__(self) -> str:
        return f"{self.owner_job_name}#{self.instance_id}"


@dataclass(frozen=True)
class BatchNotification:
    """A lifecycle event pushed by the engine."""

    action: BatchAction
    job: JobRunId | None = None
    message: str = ""


@dataclass(frozen=True)
class JobInstance:
    """Authoritative record of a run, as kept by the engine's job store."""

    run_id: JobRunId
    status: JobStatus
    records_processed: int = 0
    records_failed: int = 0
    message: str = ""


class JobInstanceStore(Protocol):
    """The engine's system of record for job runs."""

    def get_job_instance(self, owner_job_name: str, instance_id: str) -> JobInstance | None: ...


class BatchNotificationListener(Protocol):
    """Anything the engine can push notifications to."""

    def on_notification(self, notification: BatchNotification) -> None: ...


class BatchEngine(Protocol):
    """External batch engine running the migration job."""

    job_instance_store: JobInstanceStore

    def start_job(self, job_name: str) -> JobRunId: ...

    def register_listener(self, listener: BatchNotificationListener) -> None: ...


class JobObserver:
    """Tracks the terminal outcome of the current job run.

    The first terminal notification wins; anything after it is ignored until
    reset() is called. Resetting between runs is the caller's job.
    """

    def __init__(self, job_instance_store: JobInstanceStore | None = None) -> None:
        self.job_instance_store = job_instance_store
        self._lock = threading.Lock()
        self._status = JobStatus.PENDING
        self._channel: queue.Queue[JobStatus] = queue.Queue(maxsize=1)

    @property
    def status(self) -> JobStatus:
        return self._status

    def on_notification(self, notification: BatchNotification) -> None:
        """Record a notification. Called from the engine's threads."""
        with self._lock:
            if self._status.is_terminal:
                logger.debug(
                    "Ignoring %s for %s: run already %s",
                    notification.action.value,
                    notification.job,
                    self._status.value,
                )
                return

            new_status = status_for(notification.action)
            if not new_status.is_terminal:
                logger.debug("Job %s: %s", notification.job, notification.action.value)
                return

            self._status = new_status
            self._channel.put_nowait(new_status)
            logger.debug(
                "Job %s terminated: %s (%s)",
                notification.job,
                new_status.value,
                notification.action.value,
            )

    def await_termination(self, timeout: float = DEFAULT_TIMEOUT_SECS) -> JobStatus:
        """Block until the run reaches a terminal state.

        Args:
            timeout: Seconds to wait; zero or negative only checks the current state

        Returns:
            The terminal status (SUCCEEDED or FAILED)

        Raises:
            JobTimeoutError: If no terminal notification arrives in time; the
                job's actual outcome is unknown at that point
        """
        if self._status.is_terminal:
            return self._status
        try:
            return self._channel.get(timeout=max(timeout, 0))
        except queue.Empty:
            # The verdict may have been taken by another waiter
            if self._status.is_terminal:
                return self._status
            raise JobTimeoutError(f"{TIMEOUT_DESCRIPTION} after {timeout:g}s") from None

    def was_successful(self) -> bool:
        """True only if the run terminated successfully. Never blocks."""
        return self._status is JobStatus.SUCCEEDED

    def get_final_job_state(self, run_id: JobRunId) -> JobInstance | None:
        """Read the run's authoritative record from the engine's job store."""
        if self.job_instance_store is None:
            raise AcctSyncError("No job instance store configured")
        return self.job_instance_store.get_job_instance(run_id.owner_job_name, run_id.instance_id)

    def reset(self) -> None:
        """Forget the previous run's outcome."""
        with self._lock:
            self._status = JobStatus.PENDING
            while True:
                try:
                    self._channel.get_nowait()
                except queue.Empty:
                    break
