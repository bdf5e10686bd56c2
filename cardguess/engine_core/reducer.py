"""
Reducer - Applies game transitions to a GameSession.

The reducer is the single point of session mutation.
All state changes go through GameReducer (or the module helpers).

Design principles:
- Synchronous: a transition runs to completion, nothing awaits
- Validates before applying; invalid requests are no-ops
- Returns TransitionResult with accepted/rejected
"""

from __future__ import annotations
from dataclasses import dataclass

from ..logging_utils import get_logger
from .action import RejectReason, TransitionResult
from .cards import Card
from .feedback import evaluate
from .state import GameSession, GameStatus, GuessRecord, StatusMessage

logger = get_logger(__name__)


@dataclass
class GameReducer:
    """
    Applies candidate updates and submissions.

    Stateless - all state lives in the GameSession passed in.
    """

    def apply_candidate(self, session: GameSession, card: Card) -> TransitionResult:
        """
        A freshly detected card replaces the current candidate.

        SCANNING moves to READY_TO_SUBMIT while attempts remain.
        """
        if session.is_terminal:
            return TransitionResult.rejected(RejectReason.GAME_OVER, session.status)

        changes = []
        if card != session.candidate:
            changes.append(f"Candidate: {card}")

        session.candidate = card
        session.fresh_detection = True
        session.status_message = StatusMessage.CARD_DETECTED

        if session.status == GameStatus.SCANNING and session.attempts_remaining > 0:
            session.status = GameStatus.READY_TO_SUBMIT
            changes.append("Ready to submit")

        return TransitionResult.applied(session.status, changes)

    def apply_no_detection(self, session: GameSession) -> TransitionResult:
        """
        Nothing qualifying this tick.

        The candidate is sticky: only the fresh flag drops.
        """
        if session.is_terminal:
            return TransitionResult.rejected(RejectReason.GAME_OVER, session.status)

        session.fresh_detection = False
        if session.candidate is None:
            session.status_message = StatusMessage.SCAN_A_CARD

        return TransitionResult.applied(session.status)

    def submit_guess(self, session: GameSession) -> TransitionResult:
        """
        Score the candidate against the target and advance the game.

        Only valid in READY_TO_SUBMIT; anything else is a no-op.
        """
        validation = self._validate_submission(session)
        if validation:
            logger.debug("Submission ignored: %s", validation.value)
            return TransitionResult.rejected(validation, session.status)

        guess = session.candidate
        feedback = evaluate(guess, session.target_card)
        record = GuessRecord(card=guess, feedback=feedback)

        session.history.append(record)
        session.attempts_remaining -= 1
        session.fresh_detection = False

        changes = [
            f"Guess {len(session.history)}: {guess} -> "
            f"{feedback.rank_relation.value}, color={feedback.color_match}, "
            f"suit={feedback.suit_match}"
        ]

        if feedback.is_win:
            session.status = GameStatus.WON
            session.status_message = StatusMessage.YOU_WIN
            changes.append("Game won")
        elif session.attempts_remaining == 0:
            session.status = GameStatus.LOST
            session.status_message = StatusMessage.GAME_OVER
            changes.append("Game lost")
        else:
            session.candidate = None
            session.status = GameStatus.SCANNING
            session.status_message = StatusMessage.SCAN_AGAIN

        return TransitionResult.applied(session.status, changes, record=record)

    def _validate_submission(self, session: GameSession) -> RejectReason | None:
        """Return why a submission cannot be applied, None if it can."""
        if session.is_terminal:
            return RejectReason.GAME_OVER
        if session.attempts_remaining <= 0:
            return RejectReason.NO_ATTEMPTS
        if session.status != GameStatus.READY_TO_SUBMIT or session.candidate is None:
            return RejectReason.NOT_READY
        return None


_default_reducer = GameReducer()


def apply_candidate(session: GameSession, card: Card) -> TransitionResult:
    """Convenience wrapper around GameReducer.apply_candidate."""
    return _default_reducer.apply_candidate(session, card)


def submit_guess(session: GameSession) -> TransitionResult:
    """Convenience wrapper around GameReducer.submit_guess."""
    return _default_reducer.submit_guess(session)
