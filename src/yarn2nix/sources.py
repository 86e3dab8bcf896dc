"""Classification and deduplication of locked dependency sources."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from yarn2nix.errors import UnsupportedProtocolError
from yarn2nix.lockfile.model import LockedEntry

logger = logging.getLogger(__name__)

SCOPE_PATTERN = re.compile(r"^@[^/]+?(?=/)")


class ProtocolKind(Enum):
    ARCHIVE = "archive"
    GIT = "git"


ARCHIVE_SCHEMES = frozenset({"http", "https"})
GIT_SCHEMES = frozenset({"git", "git+https", "git+ssh"})


@dataclass(frozen=True, slots=True)
class ResolvedSource:
    kind: ProtocolKind
    base_location: str
    hash_or_revision: str
    derived_name: str
    range_key: str
    sha256: str = ""

    @property
    def fetch_url(self) -> str:
        """Location handed to fetchers; git sources are fetched over https."""
        if self.kind is ProtocolKind.GIT:
            return git_transport_url(self.base_location)
        return self.base_location


def split_resolved(resolved: str) -> tuple[str, str]:
    """Split a resolved location into ``(base_location, fragment)``."""
    base, _, fragment = resolved.partition("#")
    return base, fragment


def git_transport_url(location: str) -> str:
    scheme, sep, rest = location.partition(":")
    if not sep or scheme not in GIT_SCHEMES:
        return location
    if scheme == "git":
        return f"https:{rest}"
    return f"{scheme.removeprefix('git+')}:{rest}"


def protocol_kind(location: str) -> ProtocolKind:
    scheme = urlsplit(location).scheme.lower()
    if scheme in ARCHIVE_SCHEMES:
        return ProtocolKind.ARCHIVE
    if scheme in GIT_SCHEMES:
        return ProtocolKind.GIT
    raise UnsupportedProtocolError(
        "Unsupported protocol in resolved location.",
        hint="Only http(s) archives and git sources can be fetched.",
        context={"location": location, "scheme": scheme},
    )


def derive_name(range_key: str, base_location: str) -> str:
    path = urlsplit(base_location).path.rstrip("/")
    basename = path.rsplit("/", 1)[-1]
    match = SCOPE_PATTERN.match(range_key)
    if match:
        return f"{match.group(0)}-{basename}"
    return basename


def classify(entry: LockedEntry, range_key: str | None = None) -> ResolvedSource:
    resolved = entry.resolved
    if resolved is None:
        raise UnsupportedProtocolError(
            "Locked entry has no resolved location.",
            hint="Local dependencies cannot be fetched.",
            context={"range": range_key or entry.range_key},
        )
    key = range_key or entry.range_key
    base_location, fragment = split_resolved(resolved)
    return ResolvedSource(
        kind=protocol_kind(base_location),
        base_location=base_location,
        hash_or_revision=fragment,
        derived_name=derive_name(key, base_location),
        range_key=key,
    )


def dedupe(entries: Iterable[tuple[str, LockedEntry]]) -> list[ResolvedSource]:
    """Classify ``(range_key, entry)`` pairs, keeping the first source per location."""
    seen: set[str] = set()
    sources: list[ResolvedSource] = []
    for range_key, entry in entries:
        if entry.resolved is None:
            logger.debug("Skipping local dependency %s", range_key)
            continue
        source = classify(entry, range_key)
        if source.base_location in seen:
            continue
        seen.add(source.base_location)
        sources.append(source)
    return sources
