"""Happens-before ordering between two snapshots of the same account.

Records coming from the CRM carry a ``LastReferencedDate`` field encoded as
``yyyy-MM-dd'T'HH:mm:ss.SSS'Z'``. The trailing ``Z`` is matched as a literal
character: no timezone conversion happens and both values are compared as
naive wall-clock instants.

Records are expected to be well formed since they come straight from the
CRM, but both arguments are still validated.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Union

from .exceptions import InvalidArgumentError, TimestampParseError
from .models import FIELD_LAST_REFERENCED_DATE, AccountRecord, Decision

LAST_REFERENCED_DATE = FIELD_LAST_REFERENCED_DATE

TIMESTAMP_PATTERN = "yyyy-MM-dd'T'HH:mm:ss.SSS'Z'"

# strptime alone accepts 1-6 fraction digits and single-digit fields,
# so the exact shape is checked first.
_TIMESTAMP_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}\.[0-9]{3}Z")
_STRPTIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

RecordLike = Union[AccountRecord, Mapping[str, Any]]


def parse_timestamp(value: str) -> datetime:
    """Parse a ``LastReferencedDate`` value.

    Args:
        value: Timestamp string, e.g. ``"2013-12-09T22:15:33.001Z"``

    Returns:
        Naive datetime with millisecond precision

    Raises:
        TimestampParseError: If the value does not match the format exactly
    """
    if not isinstance(value, str) or _TIMESTAMP_RE.fullmatch(value) is None:
        raise TimestampParseError(
            value, f"Invalid format: {value!r} does not match {TIMESTAMP_PATTERN}"
        )
    try:
        return datetime.strptime(value, _STRPTIME_FORMAT)
    except ValueError as e:
        raise TimestampParseError(value, f"Invalid timestamp {value!r}: {e}") from e


def format_timestamp(moment: datetime) -> str:
    """Render a datetime in the ``LastReferencedDate`` wire format."""
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _as_record(record: RecordLike | None, label: str) -> AccountRecord:
    if record is None:
        raise InvalidArgumentError(f"The account {label} should not be null")
    if isinstance(record, AccountRecord):
        return record
    return AccountRecord.from_mapping(record)


def _timestamps(
    record_a: RecordLike | None, record_b: RecordLike | None, field: str
) -> tuple[datetime, datetime]:
    # Both records are validated before either timestamp is parsed
    account_a = _as_record(record_a, "A")
    account_b = _as_record(record_b, "B")
    if not account_a.has(field):
        raise InvalidArgumentError(f"The account A map should contain the key {field}")
    if not account_b.has(field):
        raise InvalidArgumentError(f"The account B map should contain the key {field}")
    return (
        parse_timestamp(account_a.get(field)),  # type: ignore[arg-type]
        parse_timestamp(account_b.get(field)),  # type: ignore[arg-type]
    )


def is_after(
    record_a: RecordLike | None,
    record_b: RecordLike | None,
    *,
    field: str = LAST_REFERENCED_DATE,
) -> bool:
    """Check whether account A was touched strictly after account B.

    Args:
        record_a: AccountRecord or CRM field map
        record_b: AccountRecord or CRM field map
        field: Timestamp field to compare

    Returns:
        True if A's timestamp is later than B's; equal timestamps give False

    Raises:
        InvalidArgumentError: If a record is None or lacks the timestamp field
        TimestampParseError: If a timestamp does not match the wire format
    """
    moment_a, moment_b = _timestamps(record_a, record_b, field)
    return moment_a > moment_b


def compare(
    record_a: RecordLike | None,
    record_b: RecordLike | None,
    *,
    field: str = LAST_REFERENCED_DATE,
) -> Decision:
    """Decide which of two snapshots is authoritative.

    Same validation as is_after(). Ties are UNDECIDED.
    """
    moment_a, moment_b = _timestamps(record_a, record_b, field)
    if moment_a > moment_b:
        return Decision.A_IS_NEWER
    if moment_b > moment_a:
        return Decision.B_IS_NEWER
    return Decision.UNDECIDED
