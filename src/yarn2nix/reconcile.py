"""Decide what to do when hash resolution changed the lockfile."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from yarn2nix.policy import Policy


class Action(Enum):
    PROCEED = "proceed"
    PERSIST = "persist"
    ABORT = "abort"


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    action: Action
    changed: bool

    @property
    def warn(self) -> bool:
        """True when a change was detected and is neither written nor fatal."""
        return self.changed and self.action is Action.PROCEED


def reconcile(original: str, patched: str, policy: Policy) -> ReconcileResult:
    if original == patched:
        return ReconcileResult(action=Action.PROCEED, changed=False)
    if policy.persist_on_change:
        return ReconcileResult(action=Action.PERSIST, changed=True)
    if policy.fail_on_unpersisted_change:
        return ReconcileResult(action=Action.ABORT, changed=True)
    return ReconcileResult(action=Action.PROCEED, changed=True)
