"""
Card Model - Ranks, suits and concrete playing cards.

A Card is an immutable (rank, suit) pair. Ranks carry a total order
(A lowest, K highest) used by the feedback engine; suits carry a color.

Detector labels look like "10h", "Ks", "qd": a rank token followed by
a single suit letter. Parsing never raises - an unparseable label is
simply "no card observed".
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import random
import re


class Rank(Enum):
    """Card ranks in ascending order."""
    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"

    @property
    def index(self) -> int:
        """Position in RANK_ORDER (A=0 ... K=12)."""
        return RANK_ORDER.index(self)

    @classmethod
    def from_token(cls, token: str) -> Rank | None:
        """Look up a rank by its text ("10", "k", "A"). None if unknown."""
        return _RANKS_BY_TOKEN.get(token.upper())


class Color(Enum):
    RED = "red"
    BLACK = "black"


class Suit(Enum):
    """The four suits, tagged with color, glyph and detector letter."""
    SPADES = "spades"
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"

    @property
    def color(self) -> Color:
        if self in (Suit.HEARTS, Suit.DIAMONDS):
            return Color.RED
        return Color.BLACK

    @property
    def glyph(self) -> str:
        return _SUIT_GLYPHS[self]

    @property
    def letter(self) -> str:
        return self.value[0]

    @classmethod
    def from_letter(cls, letter: str) -> Suit | None:
        return _SUITS_BY_LETTER.get(letter.lower())


RANK_ORDER: tuple[Rank, ...] = tuple(Rank)

_RANKS_BY_TOKEN = {rank.value: rank for rank in Rank}

_SUIT_GLYPHS = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
}

_SUITS_BY_LETTER = {suit.letter: suit for suit in Suit}

# Rank token (1-2 digits or a face letter) + one suit letter, nothing else
LABEL_PATTERN = re.compile(r"(\d{1,2}|[AKQJ])([SHDC])", re.IGNORECASE)


@dataclass(frozen=True)
class Card:
    """
    A concrete playing card.

    Equality and hashing come from (rank, suit), so cards can be
    compared directly and used in sets.
    """
    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank.value}{self.suit.glyph}"

    @property
    def label(self) -> str:
        """Detector-style label, e.g. "10h"."""
        return f"{self.rank.value}{self.suit.letter}"

    @property
    def color(self) -> Color:
        return self.suit.color

    @classmethod
    def from_label(cls, raw: str) -> Card:
        """
        Parse a label that must be a card.

        Raises ValueError if it is not - use parse_card_label() where
        garbage is expected (detector output).
        """
        card = parse_card_label(raw)
        if card is None:
            raise ValueError(f"Not a card label: {raw!r}")
        return card


def parse_card_label(raw: str) -> Card | None:
    """
    Convert a raw detector label into a Card.

    Returns None for anything that does not match the label grammar,
    including digit tokens that are not real ranks ("1", "11", "01").
    """
    if not isinstance(raw, str):
        return None

    match = LABEL_PATTERN.fullmatch(raw)
    if not match:
        return None

    rank = Rank.from_token(match.group(1))
    suit = Suit.from_letter(match.group(2))
    if rank is None or suit is None:
        return None

    return Card(rank=rank, suit=suit)


def full_deck() -> list[Card]:
    """All 52 cards, rank-major."""
    return [Card(rank=rank, suit=suit) for rank in RANK_ORDER for suit in Suit]


def draw_random_card(rng: random.Random | None = None) -> Card:
    """Draw one card uniformly from the 52-card space."""
    rng = rng or random.Random()
    return rng.choice(full_deck())
