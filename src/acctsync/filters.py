"""Eligibility filters deciding which accounts are excluded from sync."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from .models import AccountRecord

if TYPE_CHECKING:
    from .config import FilterRule


class RecordFilter(Protocol):
    """A predicate returning True when a record must NOT be synced."""

    def __call__(self, record: AccountRecord) -> bool: ...

    def describe(self) -> str: ...


@dataclass(frozen=True)
class FieldValueFilter:
    """Excludes records whose field value is in a denylist.

    Records that don't have the field at all are kept.
    """

    field: str
    values: frozenset[str]
    case_sensitive: bool = True

    @classmethod
    def of(
        cls, crm_field: str, values: Iterable[str], *, case_sensitive: bool = True
    ) -> FieldValueFilter:
        """Build a filter, normalizing the denylist."""
        normalized = frozenset(values if case_sensitive else (v.casefold() for v in values))
        return cls(field=crm_field, values=normalized, case_sensitive=case_sensitive)

    def __call__(self, record: AccountRecord) -> bool:
        value = record.get(self.field)
        if value is None:
            return False
        if not self.case_sensitive:
            value = value.casefold()
        return value in self.values

    def describe(self) -> str:
        return f"{self.field} in {sorted(self.values)}"


@dataclass(frozen=True)
class AnyOfFilter:
    """Excludes a record when any of its filters does."""

    filters: tuple[RecordFilter, ...] = field(default_factory=tuple)

    def __call__(self, record: AccountRecord) -> bool:
        return any(f(record) for f in self.filters)

    def matching(self, record: AccountRecord) -> list[RecordFilter]:
        """Return the sub-filters that exclude the record."""
        return [f for f in self.filters if f(record)]

    def describe(self) -> str:
        if not self.filters:
            return "no filter"
        return " or ".join(f.describe() for f in self.filters)


def any_of(*filters: RecordFilter) -> AnyOfFilter:
    """Combine filters; the result excludes what any of them excludes."""
    return AnyOfFilter(filters=tuple(filters))


NO_FILTER = any_of()


def build_filter(rules: Iterable[FilterRule]) -> AnyOfFilter:
    """Build the combined filter from configured rules."""
    return any_of(
        *(
            FieldValueFilter.of(rule.field, rule.values, case_sensitive=rule.case_sensitive)
            for rule in rules
        )
    )
