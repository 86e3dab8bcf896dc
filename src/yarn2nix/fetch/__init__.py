"""Fetchers used to fill in missing source hashes."""

from yarn2nix.fetch.git import (
    DEFAULT_PREFETCH_COMMAND,
    GitPrefetcher,
    NixPrefetchGit,
    PrefetchResult,
)
from yarn2nix.fetch.http import DEFAULT_TIMEOUT, fetch_sha1

__all__ = [
    "DEFAULT_PREFETCH_COMMAND",
    "DEFAULT_TIMEOUT",
    "GitPrefetcher",
    "NixPrefetchGit",
    "PrefetchResult",
    "fetch_sha1",
]
