"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from yarn2nix.config import DEFAULT_LOCKFILE, Settings
from yarn2nix.errors import Yarn2NixError
from yarn2nix.fetch import DEFAULT_PREFETCH_COMMAND, DEFAULT_TIMEOUT
from yarn2nix.pipeline import run
from yarn2nix.resolve import DEFAULT_JOBS

logger = logging.getLogger("yarn2nix")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yarn2nix",
        description="Generate a Nix expression from a yarn.lock, filling in missing hashes.",
    )
    parser.add_argument(
        "--lockfile",
        default=str(DEFAULT_LOCKFILE),
        metavar="FILE",
        help="Path to the lockfile (default: ./yarn.lock).",
    )
    parser.add_argument("--no-nix", action="store_true", help="Hide the nix output.")
    parser.add_argument(
        "--no-patch",
        action="store_true",
        help="Don't patch the lockfile if hashes are missing.",
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Generate nix output even though some hashes weren't specified.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        metavar="SECONDS",
        help="Network and prefetch timeout; 0 disables it.",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=DEFAULT_JOBS,
        metavar="N",
        help="Maximum concurrent fetches.",
    )
    parser.add_argument(
        "--prefetch-command",
        default=DEFAULT_PREFETCH_COMMAND,
        metavar="CMD",
        help="Command used to hash git dependencies.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Refuse network access; missing hashes become errors.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        result = run(Settings.from_args(args))
    except Yarn2NixError as exc:
        logger.error("error[%s]: %s", exc.code, exc)
        return 1

    if result.manifest is not None:
        sys.stdout.write(result.manifest)
    return 0
