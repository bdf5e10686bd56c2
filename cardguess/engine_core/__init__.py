"""
Engine Core - Deterministic game state and feedback.

The engine is the part of the game that:
1. Models cards (ranks, suits, label parsing)
2. Scores guesses against the target
3. Holds the GameSession
4. Applies transitions via the reducer
"""

from .cards import Card, Color, Rank, Suit, RANK_ORDER, parse_card_label, full_deck, draw_random_card
from .feedback import Feedback, RankRelation, evaluate
from .state import (
    GameSession,
    GameSnapshot,
    GameStatus,
    GuessRecord,
    StatusMessage,
    DEFAULT_MAX_ATTEMPTS,
)
from .action import RejectReason, TransitionResult
from .reducer import GameReducer, apply_candidate, submit_guess

__all__ = [
    "Card",
    "Color",
    "Rank",
    "Suit",
    "RANK_ORDER",
    "parse_card_label",
    "full_deck",
    "draw_random_card",
    "Feedback",
    "RankRelation",
    "evaluate",
    "GameSession",
    "GameSnapshot",
    "GameStatus",
    "GuessRecord",
    "StatusMessage",
    "DEFAULT_MAX_ATTEMPTS",
    "RejectReason",
    "TransitionResult",
    "GameReducer",
    "apply_candidate",
    "submit_guess",
]
