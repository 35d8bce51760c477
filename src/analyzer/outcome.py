from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    """Result of one core operation; operations report, they do not raise."""

    APPLIED = "applied"
    # Environment changed mid-flight; the result was discarded.
    STALE = "stale"
    # Another operation of the same category is in flight; call dropped.
    BUSY = "busy"
    # Preconditions or authorization missing; nothing attempted or mutated.
    UNAVAILABLE = "unavailable"
    # Network, RPC or decode failure; prior state retained.
    FAILED = "failed"
    # Nothing to decrypt; clear values for the group were reset.
    CLEARED = "cleared"


class OperationGuard:
    """
    At-most-one-in-flight flag for one operation category.

    Later calls while one is pending are dropped, not queued. Entering and
    leaving happen between awaits, so a plain flag is enough on one event loop.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def try_enter(self) -> bool:
        if self._busy:
            return False
        self._busy = True
        return True

    def leave(self) -> None:
        self._busy = False

    def __repr__(self) -> str:
        return f"OperationGuard({self.name!r}, busy={self._busy})"
