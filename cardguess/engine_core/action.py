"""
Transition Results - Outcome of applying a game transition.

Expected outcomes (a late tick, a submission with nothing to submit)
are reported through TransitionResult rather than raised, so callers
can treat them as no-ops.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum

from .state import GameStatus, GuessRecord


class RejectReason(Enum):
    """Why a transition was not applied."""
    NOT_READY = "not_ready"  # No candidate to submit
    NO_ATTEMPTS = "no_attempts"
    GAME_OVER = "game_over"
    STALE_TICK = "stale_tick"  # Tick belongs to a previous session
    CLOSED = "closed"  # Controller has been shut down


@dataclass
class TransitionResult:
    """
    Result of a transition.

    Contains:
    - Whether it was applied
    - Status after the transition
    - The recorded guess (submissions only)
    - Human-readable changes for logging/UI
    """
    accepted: bool
    status: GameStatus | None = None
    reason: RejectReason | None = None
    record: GuessRecord | None = None
    changes: list[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in {GameStatus.WON, GameStatus.LOST}

    @classmethod
    def rejected(cls, reason: RejectReason, status: GameStatus | None = None) -> TransitionResult:
        """Create a no-op result."""
        return cls(accepted=False, status=status, reason=reason)

    @classmethod
    def applied(
        cls,
        status: GameStatus,
        changes: list[str] | None = None,
        record: GuessRecord | None = None,
    ) -> TransitionResult:
        return cls(accepted=True, status=status, record=record, changes=changes or [])
