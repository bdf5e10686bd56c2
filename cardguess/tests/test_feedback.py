"""
Tests for the feedback engine.

Tests:
- Worked examples
- Properties over all 52x52 guess/target pairs
- Display indicators
"""

import itertools

from ..engine_core.cards import full_deck
from ..engine_core.feedback import Feedback, RankRelation, evaluate
from .conftest import card


ALL_PAIRS = list(itertools.product(full_deck(), repeat=2))


class TestExamples:
    """Worked examples."""

    def test_ten_of_hearts_against_seven_of_diamonds(self):
        """Guess ranks above target: go LOWER; both red, different suit."""
        feedback = evaluate(card("10h"), card("7d"))
        assert feedback == Feedback(RankRelation.LOWER, color_match=True, suit_match=False)

    def test_exact_match(self):
        feedback = evaluate(card("As"), card("As"))
        assert feedback == Feedback(RankRelation.HIT, color_match=True, suit_match=True)
        assert feedback.is_win

    def test_guess_below_target_says_higher(self):
        feedback = evaluate(card("2c"), card("Kh"))
        assert feedback.rank_relation == RankRelation.HIGHER
        assert not feedback.color_match
        assert not feedback.suit_match

    def test_same_rank_other_color(self):
        feedback = evaluate(card("Qs"), card("Qh"))
        assert feedback.rank_relation == RankRelation.HIT
        assert not feedback.color_match
        assert not feedback.is_win

    def test_same_color_other_suit(self):
        feedback = evaluate(card("5s"), card("5c"))
        assert feedback.color_match
        assert not feedback.suit_match
        assert not feedback.is_win


class TestProperties:
    """Properties that hold for every guess/target pair."""

    def test_deterministic(self):
        for guess, target in ALL_PAIRS:
            assert evaluate(guess, target) == evaluate(guess, target)

    def test_hit_iff_same_rank(self):
        for guess, target in ALL_PAIRS:
            is_hit = evaluate(guess, target).rank_relation == RankRelation.HIT
            assert is_hit == (guess.rank == target.rank)

    def test_relation_points_toward_target(self):
        for guess, target in ALL_PAIRS:
            relation = evaluate(guess, target).rank_relation
            if guess.rank.index < target.rank.index:
                assert relation == RankRelation.HIGHER
            elif guess.rank.index > target.rank.index:
                assert relation == RankRelation.LOWER

    def test_suit_match_implies_color_match(self):
        for guess, target in ALL_PAIRS:
            feedback = evaluate(guess, target)
            if feedback.suit_match:
                assert feedback.color_match

    def test_win_iff_cards_equal(self):
        for guess, target in ALL_PAIRS:
            assert evaluate(guess, target).is_win == (guess == target)


class TestIndicators:
    """Tests for display icons."""

    def test_indicators_for_partial_feedback(self):
        icons = evaluate(card("10h"), card("7d")).indicators()
        assert icons == {"rank": "↓", "color": "✓", "suit": "✗"}

    def test_indicators_for_win(self):
        icons = evaluate(card("Kc"), card("Kc")).indicators()
        assert icons == {"rank": "✓", "color": "✓", "suit": "✓"}

    def test_higher_arrow(self):
        assert evaluate(card("As"), card("2s")).indicators()["rank"] == "↑"
