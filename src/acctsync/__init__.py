"""Account reconciliation core for CRM-to-CRM migrations."""

from .comparator import LAST_REFERENCED_DATE, compare, is_after
from .exceptions import (
    AcctSyncError,
    InvalidArgumentError,
    JobFailedError,
    JobTimeoutError,
    TimestampParseError,
)
from .jobs import JobObserver, JobStatus
from .models import AccountRecord, Decision

__all__ = [
    "LAST_REFERENCED_DATE",
    "AccountRecord",
    "AcctSyncError",
    "Decision",
    "InvalidArgumentError",
    "JobFailedError",
    "JobObserver",
    "JobStatus",
    "JobTimeoutError",
    "TimestampParseError",
    "compare",
    "is_after",
]
