"""Tests for batch job observation."""

from __future__ import annotations

import threading
import time

import pytest

from acctsync.exceptions import AcctSyncError, JobTimeoutError
from acctsync.jobs import (
    FAILURE_ACTIONS,
    SUCCESS_ACTIONS,
    BatchAction,
    BatchNotification,
    JobInstance,
    JobObserver,
    JobRunId,
    JobStatus,
    status_for,
)
from tests.conftest import InMemoryJobStore

RUN = JobRunId("migrateAccountsBatch", "42")


def notify(observer: JobObserver, *actions: BatchAction) -> None:
    for action in actions:
        observer.on_notification(BatchNotification(action, RUN))


def deliver_later(
    observer: JobObserver, *actions: BatchAction, delay: float = 0.05
) -> threading.Thread:
    """Push notifications from another thread, like the engine does."""

    def _run() -> None:
        time.sleep(delay)
        notify(observer, *actions)

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread


class TestStatusFor:
    """Tests for the action to status mapping."""

    @pytest.mark.parametrize("action", sorted(SUCCESS_ACTIONS))
    def test_success_actions(self, action: BatchAction) -> None:
        """Test job successful and job stopped both count as success."""
        assert status_for(action) == JobStatus.SUCCEEDED

    @pytest.mark.parametrize("action", sorted(FAILURE_ACTIONS))
    def test_failure_actions(self, action: BatchAction) -> None:
        """Test every phase failure counts as failure."""
        assert status_for(action) == JobStatus.FAILED

    def test_other_actions_are_not_terminal(self) -> None:
        """Test begin/progress notifications leave the run pending."""
        others = set(BatchAction) - SUCCESS_ACTIONS - FAILURE_ACTIONS
        assert others
        for action in others:
            assert status_for(action) == JobStatus.PENDING
            assert not status_for(action).is_terminal


class TestJobObserver:
    """Tests for JobObserver."""

    def test_starts_pending(self) -> None:
        """Test a fresh observer has no verdict."""
        observer = JobObserver()
        assert observer.status == JobStatus.PENDING
        assert not observer.was_successful()

    def test_successful_run(self) -> None:
        """Test [phase-start, job-successful] gives success."""
        observer = JobObserver()
        notify(observer, BatchAction.INPUT_PHASE_BEGIN, BatchAction.JOB_SUCCESSFUL)

        assert observer.await_termination(timeout=1) == JobStatus.SUCCEEDED
        assert observer.was_successful()

    def test_stopped_run_counts_as_success(self) -> None:
        """Test a stopped job is not a failure."""
        observer = JobObserver()
        notify(observer, BatchAction.JOB_STOPPED)
        assert observer.was_successful()

    def test_failed_run(self) -> None:
        """Test [phase-start, input-phase-failed] gives failure."""
        observer = JobObserver()
        notify(observer, BatchAction.INPUT_PHASE_BEGIN, BatchAction.INPUT_PHASE_FAILED)

        assert observer.await_termination(timeout=1) == JobStatus.FAILED
        assert not observer.was_successful()

    def test_await_wakes_up_on_notification_from_other_thread(self) -> None:
        """Test await returns as soon as the engine reports, well before the timeout."""
        observer = JobObserver()
        thread = deliver_later(
            observer, BatchAction.INPUT_PHASE_BEGIN, BatchAction.JOB_SUCCESSFUL, delay=0.1
        )

        started = time.monotonic()
        status = observer.await_termination(timeout=10)
        elapsed = time.monotonic() - started
        thread.join()

        assert status == JobStatus.SUCCEEDED
        assert elapsed < 5

    def test_await_failure_from_other_thread(self) -> None:
        """Test a failure delivered asynchronously ends the wait."""
        observer = JobObserver()
        thread = deliver_later(observer, BatchAction.LOAD_PHASE_FAILED)

        assert observer.await_termination(timeout=10) == JobStatus.FAILED
        thread.join()

    def test_timeout_without_terminal_event(self) -> None:
        """Test no terminal event means JobTimeoutError after about the timeout."""
        observer = JobObserver()
        notify(observer, BatchAction.INPUT_PHASE_BEGIN)

        started = time.monotonic()
        with pytest.raises(JobTimeoutError, match="batch job timed out"):
            observer.await_termination(timeout=1)
        elapsed = time.monotonic() - started

        assert 0.9 <= elapsed < 3
        assert observer.status == JobStatus.PENDING

    def test_timeout_is_a_timeout_error(self) -> None:
        """Test callers can catch the builtin TimeoutError."""
        with pytest.raises(TimeoutError):
            JobObserver().await_termination(timeout=0.05)

    def test_negative_timeout_times_out(self) -> None:
        """Test a negative timeout behaves like an already expired one."""
        with pytest.raises(JobTimeoutError, match="after -1s"):
            JobObserver().await_termination(timeout=-1)

    def test_negative_timeout_returns_known_verdict(self) -> None:
        """Test a negative timeout still reports a terminal status."""
        observer = JobObserver()
        notify(observer, BatchAction.JOB_SUCCESSFUL)

        assert observer.await_termination(timeout=-1) == JobStatus.SUCCEEDED

    def test_first_terminal_notification_wins(self) -> None:
        """Test later notifications don't change the verdict."""
        observer = JobObserver()
        notify(observer, BatchAction.JOB_SUCCESSFUL, BatchAction.ON_COMPLETE_FAILED)

        assert observer.was_successful()
        assert observer.await_termination(timeout=1) == JobStatus.SUCCEEDED

    def test_await_is_repeatable(self) -> None:
        """Test awaiting again after termination returns at once."""
        observer = JobObserver()
        notify(observer, BatchAction.JOB_PROCESS_RECORDS_FAILED)

        assert observer.await_termination(timeout=1) == JobStatus.FAILED
        assert observer.await_termination(timeout=0.01) == JobStatus.FAILED

    def test_concurrent_terminal_notifications(self) -> None:
        """Test racing notifications leave exactly one verdict in place."""
        observer = JobObserver()
        barrier = threading.Barrier(8)

        def _push(action: BatchAction) -> None:
            barrier.wait()
            notify(observer, action)

        actions = [BatchAction.JOB_SUCCESSFUL, BatchAction.INPUT_PHASE_FAILED] * 4
        threads = [threading.Thread(target=_push, args=(a,)) for a in actions]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        status = observer.await_termination(timeout=1)
        assert status.is_terminal
        assert observer.status == status
        assert observer.was_successful() == (status == JobStatus.SUCCEEDED)

    def test_reset_between_runs(self) -> None:
        """Test a reset observer can follow a new run."""
        observer = JobObserver()
        notify(observer, BatchAction.INPUT_PHASE_FAILED)
        observer.reset()

        assert observer.status == JobStatus.PENDING
        assert not observer.was_successful()

        notify(observer, BatchAction.JOB_SUCCESSFUL)
        assert observer.await_termination(timeout=1) == JobStatus.SUCCEEDED

    def test_reset_drains_unconsumed_verdict(self) -> None:
        """Test a verdict nobody awaited doesn't leak into the next run."""
        observer = JobObserver()
        notify(observer, BatchAction.JOB_SUCCESSFUL)
        observer.reset()

        with pytest.raises(JobTimeoutError):
            observer.await_termination(timeout=0.05)

    def test_get_final_job_state_reads_store(self) -> None:
        """Test the final state comes from the job store, not the observer."""
        store = InMemoryJobStore()
        store.instances[RUN] = JobInstance(RUN, JobStatus.SUCCEEDED, records_processed=7)
        observer = JobObserver(store)

        instance = observer.get_final_job_state(RUN)

        assert instance is not None
        assert instance.records_processed == 7
        assert observer.get_final_job_state(JobRunId("other", "1")) is None

    def test_get_final_job_state_is_read_through(self) -> None:
        """Test later store updates are visible."""
        store = InMemoryJobStore()
        observer = JobObserver(store)
        assert observer.get_final_job_state(RUN) is None

        store.instances[RUN] = JobInstance(RUN, JobStatus.FAILED, message="boom")
        instance = observer.get_final_job_state(RUN)
        assert instance is not None
        assert instance.message == "boom"

    def test_get_final_job_state_without_store(self) -> None:
        """Test a store is required for final state lookups."""
        with pytest.raises(AcctSyncError, match="No job instance store"):
            JobObserver().get_final_job_state(RUN)


def test_run_id_str() -> None:
    """Test run identities render as owner#id."""
    assert str(RUN) == "migrateAccountsBatch#42"
