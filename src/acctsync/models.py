"""Data models for acctsync."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# CRM field names for the attributes the reconciliation logic inspects
FIELD_NAME = "Name"
FIELD_ID = "Id"
FIELD_EMAIL = "Email"
FIELD_MAILING_COUNTRY = "MailingCountry"
FIELD_LAST_REFERENCED_DATE = "LastReferencedDate"

# CRM field name -> AccountRecord attribute
_TYPED_FIELDS: dict[str, str] = {
    FIELD_NAME: "name",
    FIELD_ID: "id",
    FIELD_EMAIL: "email",
    FIELD_MAILING_COUNTRY: "mailing_country",
    FIELD_LAST_REFERENCED_DATE: "last_referenced_date",
}


@dataclass(frozen=True)
class AccountRecord:
    """Snapshot of one CRM account as extracted from one org.

    Fields the core logic reads are typed attributes; everything else the CRM
    returns is kept verbatim in ``extra`` under its CRM field name.
    """

    name: str | None = None
    id: str | None = None
    email: str | None = None
    mailing_country: str | None = None
    last_referenced_date: str | None = None
    extra: dict[str, str] = field(default_factory=dict[str, str])

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> AccountRecord:
        """Build a record from a CRM field map (e.g. ``{"Name": ..., "Email": ...}``)."""
        typed: dict[str, Any] = {}
        extra: dict[str, str] = {}
        for key, value in mapping.items():
            attr = _TYPED_FIELDS.get(key)
            if attr is not None:
                typed[attr] = None if value is None else str(value)
            elif value is not None:
                extra[key] = str(value)
        return cls(**typed, extra=extra)

    def to_mapping(self) -> dict[str, str]:
        """Return the CRM field map. Unset typed fields are omitted."""
        result: dict[str, str] = {}
        for crm_field, attr in _TYPED_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                result[crm_field] = value
        result.update(self.extra)
        return result

    def get(self, crm_field: str, default: str | None = None) -> str | None:
        """Read any field by its CRM name."""
        attr = _TYPED_FIELDS.get(crm_field)
        if attr is not None:
            value = getattr(self, attr)
            return default if value is None else value
        return self.extra.get(crm_field, default)

    def has(self, crm_field: str) -> bool:
        """Return True if the field is present (typed fields: not None)."""
        return self.get(crm_field) is not None

    def replace(self, **changes: Any) -> AccountRecord:
        """Return a copy with the given attributes changed."""
        return dataclasses.replace(self, **changes)


class Decision(str, Enum):
    """Which of two snapshots of the same account is authoritative."""

    A_IS_NEWER = "a_is_newer"
    B_IS_NEWER = "b_is_newer"
    UNDECIDED = "undecided"


class SyncAction(str, Enum):
    """Outcome for a single source record."""

    CREATE = "create"
    UPDATE = "update"
    SKIP_STALE = "skip_stale"
    FILTERED = "filtered"


@dataclass(frozen=True)
class PlannedChange:
    """Reconciliation outcome for one source record."""

    key: str
    action: SyncAction
    source: AccountRecord
    destination: AccountRecord | None = None
    reason: str = ""


@dataclass
class ReconciliationPlan:
    """Ordered per-record outcomes of a reconciliation pass."""

    changes: list[PlannedChange] = field(default_factory=list[PlannedChange])

    def _with_action(self, action: SyncAction) -> list[PlannedChange]:
        return [change for change in self.changes if change.action == action]

    @property
    def creates(self) -> list[PlannedChange]:
        return self._with_action(SyncAction.CREATE)

    @property
    def updates(self) -> list[PlannedChange]:
        return self._with_action(SyncAction.UPDATE)

    @property
    def stale(self) -> list[PlannedChange]:
        return self._with_action(SyncAction.SKIP_STALE)

    @property
    def filtered(self) -> list[PlannedChange]:
        return self._with_action(SyncAction.FILTERED)

    @property
    def writes(self) -> list[PlannedChange]:
        """Changes that touch the destination org (creates and updates)."""
        return [
            change
            for change in self.changes
            if change.action in (SyncAction.CREATE, SyncAction.UPDATE)
        ]

    def summary(self) -> dict[str, int]:
        """Count changes per action, including zero counts."""
        counts = {action.value: 0 for action in SyncAction}
        for change in self.changes:
            counts[change.action.value] += 1
        return counts
