"""
Feedback Engine - Scores a guessed card against the target.

Pure and total: every (guess, target) pair of valid cards yields a
Feedback, with no side effects and no error conditions.

The rank relation is the direction the guesser should move:
- HIT: same rank
- HIGHER: the target ranks above the guess
- LOWER: the target ranks below the guess
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from .cards import Card


class RankRelation(Enum):
    HIT = "HIT"
    HIGHER = "HIGHER"
    LOWER = "LOWER"


_RANK_ICONS = {
    RankRelation.HIT: "✓",
    RankRelation.HIGHER: "↑",
    RankRelation.LOWER: "↓",
}


@dataclass(frozen=True)
class Feedback:
    """
    Result of comparing a guess to the target.

    color_match is implied by suit_match but is reported separately
    so partial feedback can be shown.
    """
    rank_relation: RankRelation
    color_match: bool
    suit_match: bool

    @property
    def is_win(self) -> bool:
        return (
            self.rank_relation == RankRelation.HIT
            and self.color_match
            and self.suit_match
        )

    def indicators(self) -> dict[str, str]:
        """Per-field icons for display (✓/↑/↓ for rank, ✓/✗ otherwise)."""
        return {
            "rank": _RANK_ICONS[self.rank_relation],
            "color": "✓" if self.color_match else "✗",
            "suit": "✓" if self.suit_match else "✗",
        }


def evaluate(guess: Card, target: Card) -> Feedback:
    """Compute feedback for a guess against the target card."""
    guess_idx = guess.rank.index
    target_idx = target.rank.index

    if guess_idx == target_idx:
        relation = RankRelation.HIT
    elif guess_idx < target_idx:
        relation = RankRelation.HIGHER
    else:
        relation = RankRelation.LOWER

    return Feedback(
        rank_relation=relation,
        color_match=guess.suit.color == target.suit.color,
        suit_match=guess.suit == target.suit,
    )
