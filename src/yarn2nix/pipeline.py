"""End-to-end lockfile to Nix pipeline."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field

from yarn2nix.compiler import emit_nix
from yarn2nix.config import Settings
from yarn2nix.errors import DriftAbortError
from yarn2nix.fetch import GitPrefetcher, NixPrefetchGit, fetch_sha1
from yarn2nix.lockfile import Lockfile, read_lockfile, serialize_lockfile, write_lockfile
from yarn2nix.reconcile import Action, ReconcileResult, reconcile
from yarn2nix.resolve import ArchiveHasher, HashResolver, ResolutionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    lockfile: Lockfile
    reconciliation: ReconcileResult
    manifest: str | None = None
    failures: tuple[ResolutionFailure, ...] = field(default_factory=tuple)


def run(
    settings: Settings,
    *,
    hasher: ArchiveHasher | None = None,
    prefetcher: GitPrefetcher | None = None,
) -> PipelineResult:
    """Load, resolve, reconcile and render; the lockfile is written only on ``PERSIST``."""
    lockfile = read_lockfile(settings.lockfile)
    original = serialize_lockfile(lockfile)

    resolver = HashResolver(
        hasher=hasher
        or functools.partial(fetch_sha1, timeout=settings.timeout, policy=settings.policy),
        prefetcher=prefetcher
        or NixPrefetchGit(
            command=settings.prefetch_command,
            timeout=settings.timeout,
            policy=settings.policy,
        ),
        jobs=settings.jobs,
        tolerate_failures=settings.policy.tolerates_missing_hashes,
    )
    resolution = resolver.resolve(lockfile)
    patched = serialize_lockfile(resolution.lockfile)

    outcome = reconcile(original, patched, settings.policy)
    if outcome.changed:
        logger.info("found changes in the lockfile %s", settings.lockfile)
    if outcome.action is Action.PERSIST:
        write_lockfile(resolution.lockfile, settings.lockfile)
        logger.info("patched %s", settings.lockfile)
    elif outcome.action is Action.ABORT:
        raise DriftAbortError(
            "Lockfile is missing hashes and patching is disabled.",
            hint="Drop --no-patch to write the hashes, or pass --keep-going.",
            context={"path": str(settings.lockfile)},
        )
    elif outcome.warn:
        logger.warning("lockfile %s left unpatched", settings.lockfile)

    manifest = None
    failures = resolution.failures
    if settings.emit_nix:
        sources, git_failures = resolver.hash_git_sources(resolution.sources)
        failures += git_failures
        manifest = emit_nix(sources)
    return PipelineResult(
        lockfile=resolution.lockfile,
        reconciliation=outcome,
        manifest=manifest,
        failures=failures,
    )
