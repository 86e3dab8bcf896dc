"""Git source hashing through an external ``nix-prefetch-git`` process."""

from __future__ import annotations

import json
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol

from yarn2nix.errors import FetchError
from yarn2nix.fetch.http import DEFAULT_TIMEOUT
from yarn2nix.policy import Policy, ensure_network_allowed

DEFAULT_PREFETCH_COMMAND = "nix-prefetch-git"


@dataclass(frozen=True, slots=True)
class PrefetchResult:
    rev: str
    sha256: str


class GitPrefetcher(Protocol):
    def __call__(self, url: str, rev: str | None) -> PrefetchResult:
        """Return the fixed-output hash of *url* checked out at *rev*."""


@dataclass(slots=True)
class NixPrefetchGit:
    """Runs ``<command> --quiet --url <url> [--rev <rev>]`` and reads its JSON."""

    command: str = DEFAULT_PREFETCH_COMMAND
    timeout: float | None = DEFAULT_TIMEOUT
    policy: Policy | None = None

    def __call__(self, url: str, rev: str | None) -> PrefetchResult:
        if self.policy is not None:
            ensure_network_allowed(policy=self.policy, operation="prefetch_git")
        argv = [*shlex.split(self.command), "--quiet", "--url", url]
        if rev:
            argv.extend(["--rev", rev])
        context = {"operation": "prefetch_git", "url": url, "rev": rev or ""}

        try:
            completed = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise FetchError(
                f"Prefetch command `{argv[0]}` not found.",
                hint="Install nix-prefetch-git or pass --prefetch-command.",
                context=context,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise FetchError(
                "Prefetch command timed out.",
                hint="Raise --timeout for large repositories.",
                context=context,
            ) from exc

        if completed.returncode != 0:
            raise FetchError(
                f"Failed running {argv[0]}.",
                context={
                    **context,
                    "returncode": str(completed.returncode),
                    "stderr": completed.stderr.strip(),
                },
            )
        return _parse_prefetch_output(completed.stdout, rev=rev, context=context)


def _parse_prefetch_output(stdout: str, *, rev: str | None, context: dict[str, str]) -> PrefetchResult:
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise FetchError("Prefetch output is not valid JSON.", hint=str(exc), context=context) from exc
    sha256 = payload.get("sha256") if isinstance(payload, dict) else None
    if not isinstance(sha256, str) or not sha256:
        raise FetchError("Prefetch output has no `sha256` value.", context=context)
    resolved_rev = payload.get("rev") or rev or ""
    return PrefetchResult(rev=str(resolved_rev), sha256=sha256)
