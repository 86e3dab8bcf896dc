"""Yarn lockfile model and IO."""

from yarn2nix.lockfile.io import (
    parse_lockfile,
    read_lockfile,
    serialize_lockfile,
    write_lockfile,
)
from yarn2nix.lockfile.model import LockedEntry, Lockfile

__all__ = [
    "LockedEntry",
    "Lockfile",
    "parse_lockfile",
    "read_lockfile",
    "serialize_lockfile",
    "write_lockfile",
]
