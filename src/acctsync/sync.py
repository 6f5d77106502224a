"""Applying a reconciliation plan through CRM connectors."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .config import SyncConfig
from .exceptions import InvalidArgumentError
from .logger import get_logger
from .models import AccountRecord, ReconciliationPlan
from .reconcile import plan_reconciliation

logger = get_logger()


class AccountConnector(Protocol):
    """CRUD access to the accounts of one CRM org."""

    def create(self, records: Sequence[AccountRecord]) -> list[str]:
        """Create accounts, returning their new ids in input order."""
        ...

    def retrieve_by_name(self, name: str) -> AccountRecord | None: ...

    def query_all(self) -> list[AccountRecord]: ...

    def update(self, records: Sequence[AccountRecord]) -> None:
        """Update accounts identified by their ``id``."""
        ...

    def delete(self, ids: Sequence[str]) -> None: ...


@dataclass(frozen=True)
class SyncResult:
    """Outcome of applying a plan to the destination org."""

    created: list[str] = field(default_factory=list[str])  # destination ids
    updated: list[str] = field(default_factory=list[str])  # destination ids
    skipped: list[str] = field(default_factory=list[str])  # keys
    filtered: list[str] = field(default_factory=list[str])  # keys


class AccountSynchronizer:
    """Migrates accounts from a source org to a destination org."""

    def __init__(
        self,
        source: AccountConnector,
        destination: AccountConnector,
        config: SyncConfig | None = None,
    ):
        """Initialize synchronizer.

        Args:
            source: Connector for the org accounts are read from
            destination: Connector for the org accounts are written to
            config: Reconciliation settings (defaults if None)
        """
        self.source = source
        self.destination = destination
        self.config = config or SyncConfig()

    def plan(self) -> ReconciliationPlan:
        """Read both orgs and decide what to do with every source account."""
        settings = self.config.reconcile
        return plan_reconciliation(
            self.source.query_all(),
            self.destination.query_all(),
            record_filter=self.config.record_filter(),
            key_field=settings.key_field,
            timestamp_field=settings.timestamp_field,
        )

    def apply(self, plan: ReconciliationPlan) -> SyncResult:
        """Write the plan's creates and updates to the destination org.

        Connector errors propagate; nothing is retried here.
        """
        to_create = [change.source.replace(id=None) for change in plan.creates]
        to_update: list[AccountRecord] = []
        for change in plan.updates:
            if change.destination is None:
                raise InvalidArgumentError(
                    f"Planned update of {change.key} has no destination account"
                )
            to_update.append(change.source.replace(id=change.destination.id))

        created: list[str] = []
        if to_create:
            created = self.destination.create(to_create)
            for record, new_id in zip(to_create, created, strict=True):
                logger.changes("Created %s (Id=%s)", record.name, new_id)

        if to_update:
            self.destination.update(to_update)
            for record in to_update:
                logger.changes("Updated %s (Id=%s)", record.name, record.id)

        return SyncResult(
            created=created,
            updated=[record.id for record in to_update if record.id is not None],
            skipped=[change.key for change in plan.stale],
            filtered=[change.key for change in plan.filtered],
        )

    def run(self) -> SyncResult:
        """Plan and apply in one go."""
        return self.apply(self.plan())
