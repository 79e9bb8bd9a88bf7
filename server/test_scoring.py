"""
Test suite for round resolution and pot distribution.

Covers:
- Closest-result winners for each target
- Color tie-breaks (independent of seat order)
- The pot distribution rules, including the forfeited "both" bet
- Malformed equations scoring as no valid result
- Pot conservation

Run with: pytest test_scoring.py -v
"""

import itertools

import pytest

from actions import BetType
from cards import CardColor, NumberCard
from game import Player
from scoring import evaluate_submissions, pick_target_winner, resolve


def make_player(player_id, bet_type, equations, cards=None):
    """Create a contestant who has already submitted."""
    player = Player(id=player_id, name=player_id.upper())
    player.cards = cards or [NumberCard(5, CardColor.SILVER), NumberCard(6, CardColor.SILVER)]
    player.bet_type = bet_type
    player.submitted_equations = equations
    return player


# =============================================================================
# Target Winners
# =============================================================================

class TestTargetWinners:
    """Closest result wins; ties go by color."""

    def test_closest_to_small_wins(self):
        a = make_player("a", BetType.SMALL, {"small": "3"})
        b = make_player("b", BetType.SMALL, {"small": "2-1"})
        assert pick_target_winner("small", [(a, 3.0), (b, 1.0)]) is b

    def test_distance_is_absolute(self):
        a = make_player("a", BetType.BIG, {"big": "19"})
        b = make_player("b", BetType.BIG, {"big": "22"})
        assert pick_target_winner("big", [(a, 19.0), (b, 22.0)]) is a

    def test_no_valid_results(self):
        a = make_player("a", BetType.SMALL, {"small": "1/0"})
        assert pick_target_winner("small", [(a, None)]) is None

    def test_small_tie_goes_to_weakest_color_of_lowest_card(self):
        a = make_player("a", BetType.SMALL, {"small": "1"},
                        cards=[NumberCard(1, CardColor.BRONZE), NumberCard(5, CardColor.DARK)])
        b = make_player("b", BetType.SMALL, {"small": "1"},
                        cards=[NumberCard(1, CardColor.DARK), NumberCard(7, CardColor.GOLD)])
        assert pick_target_winner("small", [(a, 1.0), (b, 1.0)]) is b

    def test_big_tie_goes_to_strongest_color_of_highest_card(self):
        a = make_player("a", BetType.BIG, {"big": "20"},
                        cards=[NumberCard(10, CardColor.SILVER), NumberCard(2, CardColor.GOLD)])
        b = make_player("b", BetType.BIG, {"big": "20"},
                        cards=[NumberCard(10, CardColor.GOLD), NumberCard(2, CardColor.DARK)])
        assert pick_target_winner("big", [(a, 20.0), (b, 20.0)]) is b

    def test_tiebreak_ignores_seat_order(self):
        a = make_player("a", BetType.SMALL, {"small": "2-1"},
                        cards=[NumberCard(2, CardColor.SILVER), NumberCard(1, CardColor.GOLD)])
        b = make_player("b", BetType.SMALL, {"small": "3-2"},
                        cards=[NumberCard(3, CardColor.DARK), NumberCard(2, CardColor.BRONZE)])
        c = make_player("c", BetType.SMALL, {"small": "4-3"},
                        cards=[NumberCard(4, CardColor.GOLD), NumberCard(3, CardColor.GOLD)])

        winners = set()
        for order in itertools.permutations([a, b, c]):
            winners.add(resolve(list(order), 90).winners["small"][0])
        # b's lowest card (2 bronze) is weaker than a's (1 gold) and c's (3 gold)
        assert winners == {"b"}


# =============================================================================
# Pot Distribution
# =============================================================================

class TestPotDistribution:

    def test_everyone_bet_small(self):
        a = make_player("a", BetType.SMALL, {"small": "3"})
        b = make_player("b", BetType.SMALL, {"small": "1"})
        result = resolve([a, b], 100)
        assert result.payouts == {"b": 100}
        assert result.winners == {"small": ["b"], "big": []}

    def test_split_between_small_and_big(self):
        a = make_player("a", BetType.SMALL, {"small": "1"})
        b = make_player("b", BetType.BIG, {"big": "20"})
        result = resolve([a, b], 101)
        assert result.payouts == {"a": 50, "b": 51}
        assert result.winners == {"small": ["a"], "big": ["b"]}

    def test_one_player_wins_both(self):
        a = make_player("a", BetType.BOTH, {"small": "1", "big": "20"})
        b = make_player("b", BetType.BIG, {"big": "18"})
        result = resolve([a, b], 200)
        assert result.payouts == {"a": 200}
        assert result.winners == {"small": ["a"], "big": ["a"]}

    def test_both_bettor_who_loses_a_target_forfeits(self):
        # X wins small exactly but Y is closer on big: X's "both" bet fails
        x = make_player("x", BetType.BOTH, {"small": "1", "big": "10"})
        y = make_player("y", BetType.BIG, {"big": "20"})
        result = resolve([x, y], 100)
        assert result.payouts == {"y": 100}
        assert "x" not in result.payouts
        assert result.winners["big"] == ["y"]

    def test_both_bettor_loss_hands_pot_to_small_winner(self):
        x = make_player("x", BetType.BOTH, {"small": "5", "big": "20"})
        y = make_player("y", BetType.SMALL, {"small": "1"})
        result = resolve([x, y], 60)
        assert result.payouts == {"y": 60}
        assert result.winners["small"] == ["y"]

    def test_only_one_target_has_a_valid_result(self):
        a = make_player("a", BetType.SMALL, {"small": "1/0"})
        b = make_player("b", BetType.BIG, {"big": "20"})
        result = resolve([a, b], 80)
        assert result.payouts == {"b": 80}

    def test_malformed_equation_cannot_win(self):
        a = make_player("a", BetType.SMALL, {"small": "1+"})
        b = make_player("b", BetType.SMALL, {"small": "9"})
        result = resolve([a, b], 40)
        assert result.payouts == {"b": 40}

    def test_no_valid_results_refunds_evenly(self):
        a = make_player("a", BetType.SMALL, {"small": "1/0"})
        b = make_player("b", BetType.BIG, {"big": "x"})
        result = resolve([a, b], 101)
        assert result.payouts == {"a": 51, "b": 50}

    @pytest.mark.parametrize("pot", [0, 1, 99, 100, 1001])
    def test_payouts_sum_to_pot(self, pot):
        players = [
            make_player("a", BetType.SMALL, {"small": "2"}),
            make_player("b", BetType.BIG, {"big": "17"}),
            make_player("c", BetType.BOTH, {"small": "0", "big": "21"}),
        ]
        result = resolve(players, pot)
        assert sum(result.payouts.values()) == pot


# =============================================================================
# Equation Table
# =============================================================================

class TestEquationResults:

    def test_results_table(self):
        a = make_player("a", BetType.BOTH, {"small": "2-1", "big": "5/0"})
        table = evaluate_submissions([a])
        assert len(table) == 1
        assert table[0].to_dict() == {
            "player_id": "a",
            "player_name": "A",
            "bet_type": "both",
            "equations": {
                "small": {"expression": "2-1", "result": 1.0},
                "big": {"expression": "5/0", "result": None},
            },
        }
