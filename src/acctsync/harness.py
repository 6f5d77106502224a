"""Integration harness for the account migration job.

Seeds two accounts in the source org, runs the migration job through the
batch engine, and checks that the filtered account was left behind while the
eligible one reached the destination org:

    with MigrationHarness(engine, org_a, org_b) as harness:
        harness.run_job()
        harness.verify()
"""

from __future__ import annotations

from types import TracebackType

from .exceptions import InvalidArgumentError, JobFailedError
from .jobs import DEFAULT_TIMEOUT_SECS, BatchEngine, JobInstance, JobObserver, JobRunId
from .logger import get_logger
from .models import AccountRecord
from .sync import AccountConnector

logger = get_logger()

DEFAULT_JOB_NAME = "migrateAccountsBatch"
FILTERED_COUNTRY = "ARG"


def make_test_account(org_id: str, sequence: int) -> AccountRecord:
    """Build a fake account for seeding a sandbox org."""
    return AccountRecord.from_mapping(
        {
            "Name": f"Name_{sequence}",
            "Id": f"Id{sequence}",
            "Email": f"some.email.{sequence}@fakemail.com",
            "Description": "Some fake description",
            "MailingCity": "Denver",
            "MailingCountry": "USA",
            "MobilePhone": "123456789",
            "Department": f"department_{sequence}_{org_id}",
            "Phone": "123456789",
            "Title": "Dr",
        }
    )


class MigrationHarness:
    """Drives one migration job run against two sandbox orgs."""

    def __init__(
        self,
        engine: BatchEngine,
        source: AccountConnector,
        destination: AccountConnector,
        *,
        job_name: str = DEFAULT_JOB_NAME,
        timeout: float = DEFAULT_TIMEOUT_SECS,
    ):
        self.engine = engine
        self.source = source
        self.destination = destination
        self.job_name = job_name
        self.timeout = timeout
        self.observer = JobObserver(engine.job_instance_store)
        self.created_accounts: list[AccountRecord] = []
        self.run_id: JobRunId | None = None
        self._registered = False

    def set_up(self) -> None:
        """Reset the observer and seed the source org."""
        self.observer.reset()
        if not self._registered:
            self.engine.register_listener(self.observer)
            self._registered = True
        self._create_test_data()

    def tear_down(self) -> None:
        """Remove seeded accounts from both orgs."""
        self.observer.reset()
        self._delete_test_data()

    def __enter__(self) -> MigrationHarness:
        self.set_up()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.tear_down()

    def run_job(self) -> JobInstance | None:
        """Start the migration job and wait for it to finish.

        Returns:
            The job store's final record of the run

        Raises:
            JobTimeoutError: If the job doesn't terminate in time
            JobFailedError: If the job terminated as failed
        """
        self.run_id = self.engine.start_job(self.job_name)
        logger.checks("Started %s", self.run_id)

        self.observer.await_termination(self.timeout)
        if not self.observer.was_successful():
            raise JobFailedError(f"Batch job {self.run_id} failed")

        return self.observer.get_final_job_state(self.run_id)

    def retrieve_synced(self, account: AccountRecord) -> AccountRecord | None:
        """Look up the destination counterpart of a seeded account by name."""
        if account.name is None:
            raise InvalidArgumentError("The account should have a Name")
        return self.destination.retrieve_by_name(account.name)

    def verify(self) -> None:
        """Check the outcome of the run.

        Raises:
            AssertionError: If the filtered account was synced or the eligible
                one wasn't
        """
        filtered, eligible = self.created_accounts[0], self.created_accounts[1]

        if self.retrieve_synced(filtered) is not None:
            raise AssertionError("The account should not have been sync")

        synced = self.retrieve_synced(eligible)
        if synced is None or synced.email != eligible.email:
            raise AssertionError(
                f"The account should have been sync: expected Email {eligible.email!r}, "
                f"got {synced.email if synced else None!r}"
            )

    def _create_test_data(self) -> None:
        # This account must not be synced
        filtered = make_test_account("A", 0).replace(mailing_country=FILTERED_COUNTRY)
        # This account must be synced
        eligible = make_test_account("A", 1)

        accounts = [filtered, eligible]
        ids = self.source.create(accounts)
        self.created_accounts = [
            account.replace(id=new_id) for account, new_id in zip(accounts, ids, strict=True)
        ]
        logger.checks("Seeded %d account(s) in source org", len(self.created_accounts))

    def _delete_test_data(self) -> None:
        source_ids = [a.id for a in self.created_accounts if a.id is not None]
        if source_ids:
            self.source.delete(source_ids)

        destination_ids: list[str] = []
        for account in self.created_accounts:
            synced = self.retrieve_synced(account)
            if synced is not None and synced.id is not None:
                destination_ids.append(synced.id)
        if destination_ids:
            self.destination.delete(destination_ids)

        self.created_accounts = []
