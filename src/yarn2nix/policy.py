"""Policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from yarn2nix.errors import PolicyError

NetworkMode = Literal["online", "offline"]


@dataclass(frozen=True, slots=True)
class Policy:
    persist_on_change: bool = True
    fail_on_unpersisted_change: bool = True
    network_mode: NetworkMode = "online"

    @classmethod
    def from_flags(cls, *, no_patch: bool, keep_going: bool, offline: bool = False) -> Policy:
        return cls(
            persist_on_change=not no_patch,
            fail_on_unpersisted_change=not keep_going,
            network_mode="offline" if offline else "online",
        )

    @property
    def tolerates_missing_hashes(self) -> bool:
        """Whether unresolvable hashes are warnings rather than fatal errors."""
        return not self.persist_on_change and not self.fail_on_unpersisted_change


def ensure_network_allowed(*, policy: Policy, operation: str) -> None:
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Drop --offline or add the missing hashes to the lockfile.",
            context={"operation": operation},
        )
