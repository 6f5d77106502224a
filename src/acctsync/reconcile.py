"""Reconciliation planning between a source and a destination org."""

from __future__ import annotations

from collections.abc import Iterable

from .comparator import LAST_REFERENCED_DATE, is_after
from .exceptions import InvalidArgumentError
from .filters import NO_FILTER, RecordFilter
from .logger import get_logger
from .models import FIELD_NAME, AccountRecord, PlannedChange, ReconciliationPlan, SyncAction

logger = get_logger()


def _index_by_key(
    records: Iterable[AccountRecord], key_field: str, side: str
) -> dict[str, AccountRecord]:
    """Index records by business key. Later duplicates replace earlier ones."""
    index: dict[str, AccountRecord] = {}
    for record in records:
        key = record.get(key_field)
        if key is None:
            if side == "source":
                raise InvalidArgumentError(f"Source account has no {key_field}: {record!r}")
            logger.warning("Ignoring destination account without %s (Id=%s)", key_field, record.id)
            continue
        if key in index:
            logger.warning("Duplicate %s account %s=%r; keeping the last one", side, key_field, key)
            # Re-insert so the key moves to its last position
            del index[key]
        index[key] = record
    return index


def decide(
    source: AccountRecord,
    destination: AccountRecord | None,
    *,
    key: str,
    record_filter: RecordFilter = NO_FILTER,
    timestamp_field: str = LAST_REFERENCED_DATE,
) -> PlannedChange:
    """Decide what happens to a single source account.

    Eligibility is checked first: filtered accounts are never compared.
    A destination account with an equal timestamp is kept as is.

    Raises:
        InvalidArgumentError: If a compared account lacks the timestamp field
        TimestampParseError: If a timestamp is malformed
    """
    if record_filter(source):
        return PlannedChange(
            key=key,
            action=SyncAction.FILTERED,
            source=source,
            destination=destination,
            reason=f"excluded by filter ({record_filter.describe()})",
        )

    if destination is None:
        return PlannedChange(
            key=key, action=SyncAction.CREATE, source=source, reason="not in destination"
        )

    if is_after(source, destination, field=timestamp_field):
        return PlannedChange(
            key=key,
            action=SyncAction.UPDATE,
            source=source,
            destination=destination,
            reason=(
                f"source {timestamp_field} {source.get(timestamp_field)} is after "
                f"destination {destination.get(timestamp_field)}"
            ),
        )

    return PlannedChange(
        key=key,
        action=SyncAction.SKIP_STALE,
        source=source,
        destination=destination,
        reason=(
            f"destination {timestamp_field} {destination.get(timestamp_field)} is not before "
            f"source {source.get(timestamp_field)}"
        ),
    )


def plan_reconciliation(
    source_records: Iterable[AccountRecord],
    destination_records: Iterable[AccountRecord],
    *,
    record_filter: RecordFilter = NO_FILTER,
    key_field: str = FIELD_NAME,
    timestamp_field: str = LAST_REFERENCED_DATE,
) -> ReconciliationPlan:
    """Classify every source account as create, update, stale or filtered.

    Args:
        source_records: Accounts extracted from the source org
        destination_records: Accounts currently in the destination org
        record_filter: Excludes accounts from sync entirely
        key_field: CRM field matching the same account across orgs
        timestamp_field: CRM field holding the last-touched timestamp

    Returns:
        Plan with one change per distinct source key, in input order

    Raises:
        InvalidArgumentError: If a source account has no key, or a compared
            account has no timestamp
        TimestampParseError: If a compared timestamp is malformed
    """
    sources = _index_by_key(source_records, key_field, "source")
    destinations = _index_by_key(destination_records, key_field, "destination")

    plan = ReconciliationPlan()
    for key, source in sources.items():
        change = decide(
            source,
            destinations.get(key),
            key=key,
            record_filter=record_filter,
            timestamp_field=timestamp_field,
        )
        logger.checks("%s: %s (%s)", key, change.action.value, change.reason)
        plan.changes.append(change)

    counts = plan.summary()
    logger.changes(
        "Planned %d create(s), %d update(s), %d stale, %d filtered",
        counts[SyncAction.CREATE.value],
        counts[SyncAction.UPDATE.value],
        counts[SyncAction.SKIP_STALE.value],
        counts[SyncAction.FILTERED.value],
    )
    return plan
