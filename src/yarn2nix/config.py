"""Run configuration."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path

from yarn2nix.fetch import DEFAULT_PREFETCH_COMMAND, DEFAULT_TIMEOUT
from yarn2nix.policy import Policy
from yarn2nix.resolve import DEFAULT_JOBS

DEFAULT_LOCKFILE = Path("yarn.lock")


@dataclass(frozen=True, slots=True)
class Settings:
    lockfile: Path = DEFAULT_LOCKFILE
    emit_nix: bool = True
    policy: Policy = field(default_factory=Policy)
    timeout: float | None = DEFAULT_TIMEOUT
    jobs: int = DEFAULT_JOBS
    prefetch_command: str = DEFAULT_PREFETCH_COMMAND

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> Settings:
        return cls(
            lockfile=Path(args.lockfile),
            emit_nix=not args.no_nix,
            policy=Policy.from_flags(
                no_patch=args.no_patch,
                keep_going=args.keep_going,
                offline=args.offline,
            ),
            timeout=args.timeout if args.timeout and args.timeout > 0 else None,
            jobs=args.jobs,
            prefetch_command=args.prefetch_command,
        )
