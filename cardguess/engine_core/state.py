"""
Game State - The session aggregate and its read-only snapshot.

Design principles:
- One GameSession per game; a new game replaces it wholesale
- History is append-only within a session
- The target card never changes for the lifetime of a session
- Presentation only ever sees GameSnapshot, never the live session
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import random
import time
import uuid

from .cards import Card, draw_random_card
from .feedback import Feedback


DEFAULT_MAX_ATTEMPTS = 3


class GameStatus(Enum):
    """States of the guessing game."""
    SCANNING = "scanning"  # No submittable candidate yet
    READY_TO_SUBMIT = "ready_to_submit"  # Candidate exists, attempts remain
    WON = "won"
    LOST = "lost"


TERMINAL_STATUSES = frozenset({GameStatus.WON, GameStatus.LOST})


class StatusMessage:
    """HUD status lines."""
    CAMERA_ACCESS = "CAMERA ACCESS..."
    LOADING_MODEL = "LOADING MODEL..."
    SCAN_A_CARD = "SCAN A CARD"
    CARD_DETECTED = "CARD DETECTED"
    SCAN_AGAIN = "SCAN AGAIN"
    YOU_WIN = "YOU WIN!"
    GAME_OVER = "GAME OVER"


@dataclass(frozen=True)
class GuessRecord:
    """One submitted guess and the feedback it earned."""
    card: Card
    feedback: Feedback


@dataclass
class GameSession:
    """
    Aggregate root for a single game.

    Mutated only through the reducer. Invariants:
    - len(history) + attempts_remaining == max_attempts
    - attempts_remaining never increases and never goes negative
    - WON only after a full-match guess, LOST only with no attempts left
    """
    game_id: str
    target_card: Card
    max_attempts: int
    attempts_remaining: int
    history: list[GuessRecord] = field(default_factory=list)
    candidate: Card | None = None
    status: GameStatus = GameStatus.SCANNING

    # Transient UI emphasis, not part of game correctness
    fresh_detection: bool = False
    status_message: str = StatusMessage.SCAN_A_CARD

    created_at: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: random.Random | None = None,
        target_card: Card | None = None,
        game_id: str | None = None,
    ) -> GameSession:
        """
        Start a fresh session with a uniformly drawn target.

        target_card can be pinned for tests and scripted play.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        return cls(
            game_id=game_id or str(uuid.uuid4()),
            target_card=target_card or draw_random_card(rng),
            max_attempts=max_attempts,
            attempts_remaining=max_attempts,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def can_submit(self) -> bool:
        return (
            self.status == GameStatus.READY_TO_SUBMIT
            and self.candidate is not None
            and self.attempts_remaining > 0
        )

    @property
    def last_feedback(self) -> Feedback | None:
        return self.history[-1].feedback if self.history else None

    def invariant_violations(self) -> list[str]:
        """Return a description of every broken invariant (empty if sound)."""
        problems = []

        if self.attempts_remaining < 0:
            problems.append("attempts_remaining is negative")

        if len(self.history) + self.attempts_remaining != self.max_attempts:
            problems.append(
                f"history ({len(self.history)}) + attempts_remaining "
                f"({self.attempts_remaining}) != max_attempts ({self.max_attempts})"
            )

        last = self.last_feedback
        if self.status == GameStatus.WON and not (last and last.is_win):
            problems.append("WON without a winning guess")

        if self.status == GameStatus.LOST:
            if self.attempts_remaining != 0:
                problems.append("LOST with attempts remaining")
            if last and last.is_win:
                problems.append("LOST after a winning guess")

        if self.status == GameStatus.READY_TO_SUBMIT and self.candidate is None:
            problems.append("READY_TO_SUBMIT without a candidate")

        return problems

    def snapshot(self) -> GameSnapshot:
        """Read-only view for presentation. Target only revealed at the end."""
        return GameSnapshot(
            game_id=self.game_id,
            status=self.status,
            candidate=self.candidate,
            fresh_detection=self.fresh_detection,
            attempts_remaining=self.attempts_remaining,
            max_attempts=self.max_attempts,
            history=tuple(self.history),
            status_message=self.status_message,
            target_card=self.target_card if self.is_terminal else None,
        )


@dataclass(frozen=True)
class GameSnapshot:
    """
    Immutable view of a session emitted after every tick or transition.

    error is only set when setup failed and the game cannot start.
    """
    game_id: str | None
    status: GameStatus | None
    candidate: Card | None
    fresh_detection: bool
    attempts_remaining: int
    max_attempts: int
    history: tuple[GuessRecord, ...]
    status_message: str
    target_card: Card | None = None
    error: str | None = None

    @classmethod
    def setup_failure(cls, message: str, max_attempts: int) -> GameSnapshot:
        return cls(
            game_id=None,
            status=None,
            candidate=None,
            fresh_detection=False,
            attempts_remaining=max_attempts,
            max_attempts=max_attempts,
            history=(),
            status_message=message,
            error=message,
        )
