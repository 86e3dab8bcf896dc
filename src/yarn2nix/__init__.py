"""Public package entrypoint for yarn2nix."""

from .compiler import FetchDeclaration, Fetcher, emit_nix
from .config import Settings
from .errors import (
    DriftAbortError,
    ErrorCode,
    FetchError,
    LockfileParseError,
    PolicyError,
    UnsupportedProtocolError,
    Yarn2NixError,
)
from .lockfile import LockedEntry, Lockfile, parse_lockfile, serialize_lockfile
from .pipeline import PipelineResult, run
from .policy import Policy
from .reconcile import Action, reconcile
from .resolve import HashResolver
from .sources import ProtocolKind, ResolvedSource, classify, dedupe

__all__ = [
    "Action",
    "DriftAbortError",
    "ErrorCode",
    "FetchDeclaration",
    "FetchError",
    "Fetcher",
    "HashResolver",
    "LockedEntry",
    "Lockfile",
    "LockfileParseError",
    "PipelineResult",
    "Policy",
    "PolicyError",
    "ProtocolKind",
    "ResolvedSource",
    "Settings",
    "UnsupportedProtocolError",
    "Yarn2NixError",
    "classify",
    "dedupe",
    "emit_nix",
    "parse_lockfile",
    "reconcile",
    "run",
    "serialize_lockfile",
]
