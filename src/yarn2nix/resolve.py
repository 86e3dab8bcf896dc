"""Filling in missing source hashes.

Archive entries without a ``#sha1`` fragment are downloaded and hashed, and
git entries without a revision are handed to a
:class:`~yarn2nix.fetch.git.GitPrefetcher`. Entries that already carry a
fragment never touch the network. The SHA-256 a git manifest entry needs is
collected separately by :meth:`HashResolver.hash_git_sources`, only when a
manifest is actually wanted. Every fetch runs on a worker thread, all of them
gathered at once. Tasks return values instead of touching the lockfile, and a new
:class:`~yarn2nix.lockfile.model.Lockfile` is assembled from the results.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

from yarn2nix.errors import FetchError
from yarn2nix.fetch.git import GitPrefetcher, PrefetchResult
from yarn2nix.lockfile.model import LockedEntry, Lockfile
from yarn2nix.sources import (
    ProtocolKind,
    ResolvedSource,
    classify,
    dedupe,
    split_resolved,
)

logger = logging.getLogger(__name__)

ArchiveHasher = Callable[[str], str]

DEFAULT_JOBS = 8


@dataclass(frozen=True, slots=True)
class ResolutionFailure:
    location: str
    error: FetchError


@dataclass(frozen=True, slots=True)
class Resolution:
    lockfile: Lockfile
    sources: tuple[ResolvedSource, ...]
    failures: tuple[ResolutionFailure, ...] = field(default_factory=tuple)


@dataclass(slots=True)
class HashResolver:
    hasher: ArchiveHasher
    prefetcher: GitPrefetcher
    jobs: int = DEFAULT_JOBS
    tolerate_failures: bool = False

    def resolve(self, lockfile: Lockfile) -> Resolution:
        return asyncio.run(self.resolve_async(lockfile))

    async def resolve_async(self, lockfile: Lockfile) -> Resolution:
        sources = dedupe(lockfile.iter_ranges())
        known = _known_fragments(lockfile)

        pending = [source for source in sources if source.base_location not in known]
        results = await self._gather(pending)

        fragments = dict(known)
        git_hashes: dict[str, str] = {}
        failures: list[ResolutionFailure] = []
        for source, result in zip(pending, results, strict=True):
            if isinstance(result, FetchError):
                failures.append(ResolutionFailure(location=source.base_location, error=result))
            elif isinstance(result, BaseException):
                raise result
            elif isinstance(result, PrefetchResult):
                git_hashes[source.base_location] = result.sha256
                if result.rev:
                    fragments[source.base_location] = result.rev
            else:
                fragments[source.base_location] = result

        self._report_failures(failures)

        patched = Lockfile(
            entries=tuple(_patch_entry(entry, fragments) for entry in lockfile.entries)
        )
        resolved_sources = tuple(
            replace(
                source,
                hash_or_revision=source.hash_or_revision
                or fragments.get(source.base_location, ""),
                sha256=git_hashes.get(source.base_location, source.sha256),
            )
            for source in sources
        )
        return Resolution(lockfile=patched, sources=resolved_sources, failures=tuple(failures))

    def hash_git_sources(
        self, sources: Sequence[ResolvedSource]
    ) -> tuple[tuple[ResolvedSource, ...], tuple[ResolutionFailure, ...]]:
        return asyncio.run(self.hash_git_sources_async(sources))

    async def hash_git_sources_async(
        self, sources: Sequence[ResolvedSource]
    ) -> tuple[tuple[ResolvedSource, ...], tuple[ResolutionFailure, ...]]:
        """Prefetch the SHA-256 of every git source that does not carry one yet."""
        pending = [
            source for source in sources if source.kind is ProtocolKind.GIT and not source.sha256
        ]
        for source in pending:
            logger.warning(
                "Not running `yarn run prepare` for git dependency %s", source.base_location
            )
        results = await self._gather(pending)

        git_hashes: dict[str, str] = {}
        failures: list[ResolutionFailure] = []
        for source, result in zip(pending, results, strict=True):
            if isinstance(result, FetchError):
                failures.append(ResolutionFailure(location=source.base_location, error=result))
            elif isinstance(result, BaseException):
                raise result
            else:
                git_hashes[source.base_location] = result.sha256

        self._report_failures(failures)

        hashed = tuple(
            replace(source, sha256=git_hashes[source.base_location])
            if source.base_location in git_hashes
            else source
            for source in sources
        )
        return hashed, tuple(failures)

    def resolve_entry(self, entry: LockedEntry) -> LockedEntry:
        """Resolve a single entry, returning it with its fragment filled in."""
        if entry.resolved is None:
            return entry
        base_location, fragment = split_resolved(entry.resolved)
        if fragment:
            return entry
        result = self._fetch(classify(entry))
        if isinstance(result, PrefetchResult):
            return entry.with_resolved(f"{base_location}#{result.rev}") if result.rev else entry
        return entry.with_resolved(f"{base_location}#{result}")

    async def _gather(self, sources: Sequence[ResolvedSource]) -> list[object]:
        semaphore = asyncio.Semaphore(max(self.jobs, 1))
        return await asyncio.gather(
            *(self._run_limited(semaphore, source) for source in sources),
            return_exceptions=True,
        )

    async def _run_limited(
        self, semaphore: asyncio.Semaphore, source: ResolvedSource
    ) -> str | PrefetchResult:
        async with semaphore:
            return await asyncio.to_thread(self._fetch, source)

    def _fetch(self, source: ResolvedSource) -> str | PrefetchResult:
        if source.kind is ProtocolKind.GIT:
            url = source.fetch_url
            logger.info("Generating hash for %s...", url)
            result = self.prefetcher(url, source.hash_or_revision or None)
            logger.info("Hash generated for %s", url)
            return result
        logger.info("Fetching hash for %s...", source.base_location)
        sha1 = self.hasher(source.base_location)
        logger.info("Done fetching hash for %s!", source.base_location)
        return sha1

    def _report_failures(self, failures: list[ResolutionFailure]) -> None:
        if not failures:
            return
        for failure in failures:
            logger.log(
                logging.WARNING if self.tolerate_failures else logging.ERROR,
                "Could not resolve hash for %s: %s",
                failure.location,
                failure.error,
            )
        if not self.tolerate_failures:
            raise failures[0].error


def _known_fragments(lockfile: Lockfile) -> dict[str, str]:
    """Map base locations to the first hash or revision already recorded for them."""
    known: dict[str, str] = {}
    for entry in lockfile.entries:
        if entry.resolved is None:
            continue
        base_location, fragment = split_resolved(entry.resolved)
        if fragment:
            known.setdefault(base_location, fragment)
    return known


def _patch_entry(entry: LockedEntry, fragments: dict[str, str]) -> LockedEntry:
    if entry.resolved is None:
        return entry
    base_location, fragment = split_resolved(entry.resolved)
    if fragment or base_location not in fragments:
        return entry
    return entry.with_resolved(f"{base_location}#{fragments[base_location]}")
