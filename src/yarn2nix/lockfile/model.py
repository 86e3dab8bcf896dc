"""Lockfile typed model."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class LockedEntry:
    """One lockfile block, shared by every range key written in its header."""

    range_keys: tuple[str, ...]
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def range_key(self) -> str:
        return self.range_keys[0]

    @property
    def resolved(self) -> str | None:
        value = self.fields.get("resolved")
        return value if isinstance(value, str) and value else None

    @property
    def version(self) -> str | None:
        value = self.fields.get("version")
        return None if value is None else str(value)

    def with_resolved(self, resolved: str) -> LockedEntry:
        fields = dict(self.fields)
        fields["resolved"] = resolved
        return LockedEntry(range_keys=self.range_keys, fields=fields)


@dataclass(frozen=True, slots=True)
class Lockfile:
    entries: tuple[LockedEntry, ...] = ()

    def iter_ranges(self) -> Iterator[tuple[str, LockedEntry]]:
        """Yield ``(range_key, entry)`` pairs in lockfile order."""
        for entry in self.entries:
            for range_key in entry.range_keys:
                yield range_key, entry
