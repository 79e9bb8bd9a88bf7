"""
Scoring and pot distribution for Equation Poker.

resolve() is pure: it reads the contestants' cards, bet types and
submitted equations and returns who won each target and how the pot is
paid out. Applying the payouts to chip balances is the caller's job.

Targets:
    small: closest result to SMALL_TARGET (1)
    big:   closest result to BIG_TARGET (20)

Tie-breaks (exactly one winner per target):
    small: the player whose lowest-valued number card has the weakest
           color (dark < bronze < silver < gold)
    big:   the player whose highest-valued number card has the strongest
           color

Pot distribution, first matching rule wins:
    1. Everyone bet the same single target: that target's winner takes all.
    2. One player won both targets: they take all.
    3. A "both" bettor lost a target they had a valid result for: they
       forfeit, and the other target's winner takes all.
    4. Otherwise the pot is split: small winner gets floor(pot/2), big
       winner gets ceil(pot/2).
"""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from actions import BetType
from cards import NumberCard
from constants import BIG_TARGET, SMALL_TARGET
from equation import distance_to_target, evaluate

if TYPE_CHECKING:
    from game import Player


logger = logging.getLogger(__name__)

TARGETS: dict[str, int] = {"small": SMALL_TARGET, "big": BIG_TARGET}

# Results closer together than this count as equally close
DISTANCE_TOLERANCE = 1e-9


@dataclass
class EquationResult:
    """One player's submitted equations and what they evaluated to."""

    player_id: str
    player_name: str
    bet_type: BetType
    equations: dict[str, Optional[str]] = field(default_factory=dict)
    results: dict[str, Optional[float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "bet_type": self.bet_type.value,
            "equations": {
                target: {"expression": self.equations.get(target), "result": self.results.get(target)}
                for target in self.bet_type.targets
            },
        }


@dataclass
class Resolution:
    """
    Outcome of a round.

    Attributes:
        winners: Payee ids per target ("small" / "big"), at most one each.
        payouts: Chips credited to each payee. Sums to the pot exactly.
        equation_results: Per-player equation table for display.
    """

    winners: dict[str, list[str]] = field(default_factory=lambda: {"small": [], "big": []})
    payouts: dict[str, int] = field(default_factory=dict)
    equation_results: list[EquationResult] = field(default_factory=list)

    def pay(self, player_id: str, amount: int, target: Optional[str] = None) -> None:
        if amount:
            self.payouts[player_id] = self.payouts.get(player_id, 0) + amount
        if target and player_id not in self.winners[target]:
            self.winners[target].append(player_id)


# -------------------------------------------------------------------------
# Tie-breaks
# -------------------------------------------------------------------------


def _number_cards(player: "Player") -> list[NumberCard]:
    return [c for c in player.cards if isinstance(c, NumberCard)]


def _small_tiebreak_key(player: "Player") -> tuple:
    cards = _number_cards(player)
    if not cards:
        return (math.inf, math.inf, player.id)
    low = min(cards, key=lambda c: (c.value, c.color.rank))
    return (low.color.rank, low.value, player.id)


def _big_tiebreak_key(player: "Player") -> tuple:
    cards = _number_cards(player)
    if not cards:
        return (math.inf, math.inf, player.id)
    high = max(cards, key=lambda c: (c.value, c.color.rank))
    return (-high.color.rank, -high.value, player.id)


TIEBREAK_KEYS = {"small": _small_tiebreak_key, "big": _big_tiebreak_key}


def pick_target_winner(
    target: str,
    entries: list[tuple["Player", Optional[float]]],
) -> Optional["Player"]:
    """
    Choose the single winner for a target.

    Args:
        target: "small" or "big".
        entries: (player, evaluated result) pairs; None results are skipped.

    Returns:
        The winning player, or None if nobody has a valid result.
    """
    goal = TARGETS[target]
    scored = [
        (player, distance_to_target(value, goal))
        for player, value in entries
        if value is not None
    ]
    if not scored:
        return None

    best = min(distance for _, distance in scored)
    tied = [p for p, d in scored if math.isclose(d, best, rel_tol=0.0, abs_tol=DISTANCE_TOLERANCE)]
    return min(tied, key=TIEBREAK_KEYS[target])


# -------------------------------------------------------------------------
# Resolution
# -------------------------------------------------------------------------


def evaluate_submissions(players: list["Player"]) -> list[EquationResult]:
    """Evaluate every submitted equation of players who chose a bet type."""
    table = []
    for player in players:
        if player.bet_type is None:
            continue
        entry = EquationResult(player.id, player.name, player.bet_type)
        for target in player.bet_type.targets:
            expression = player.submitted_equations.get(target)
            entry.equations[target] = expression
            entry.results[target] = evaluate(expression)
        table.append(entry)
    return table


def resolve(players: list["Player"], pot: int) -> Resolution:
    """
    Score a finished equation phase.

    Args:
        players: The round's contestants (not folded, still active), in
            seat order.
        pot: Chips in the pot.

    Returns:
        Resolution whose payouts sum to exactly `pot` whenever there is at
        least one contestant.
    """
    resolution = Resolution(equation_results=evaluate_submissions(players))
    by_id = {p.id: p for p in players}

    target_winners: dict[str, Optional[str]] = {}
    for target in TARGETS:
        entries = [
            (by_id[r.player_id], r.results[target])
            for r in resolution.equation_results
            if target in r.results
        ]
        winner = pick_target_winner(target, entries)
        target_winners[target] = winner.id if winner else None

    small_id, big_id = target_winners["small"], target_winners["big"]

    # A "both" bettor who lost a target they had a valid result for
    both_losers = {
        r.player_id
        for r in resolution.equation_results
        if r.bet_type == BetType.BOTH
        and any(
            r.results[t] is not None and target_winners[t] != r.player_id
            for t in TARGETS
        )
    }

    bet_types = {r.bet_type for r in resolution.equation_results}

    if len(bet_types) == 1 and BetType.BOTH not in bet_types:
        target = bet_types.pop().value
        if target_winners[target]:
            resolution.pay(target_winners[target], pot, target)
            logger.info(f"All contestants bet {target}; {target_winners[target]} takes {pot}")
            return resolution

    if small_id and small_id == big_id:
        resolution.pay(small_id, pot, "small")
        resolution.pay(big_id, 0, "big")
        logger.info(f"{small_id} won both targets and takes {pot}")
        return resolution

    if both_losers:
        if small_id and small_id not in both_losers:
            resolution.pay(small_id, pot, "small")
            return resolution
        if big_id and big_id not in both_losers:
            resolution.pay(big_id, pot, "big")
            return resolution

    if small_id and big_id:
        resolution.pay(small_id, pot // 2, "small")
        resolution.pay(big_id, pot - pot // 2, "big")
    elif small_id or big_id:
        # Only one target produced a valid result
        target = "small" if small_id else "big"
        resolution.pay(target_winners[target], pot, target)
    elif players:
        _split_evenly(resolution, players, pot)
    return resolution


def _split_evenly(resolution: Resolution, players: list["Player"], pot: int) -> None:
    """Nobody produced a valid result: refund the pot evenly, remainder to the first seat."""
    share, remainder = divmod(pot, len(players))
    for i, player in enumerate(players):
        resolution.pay(player.id, share + (remainder if i == 0 else 0))
    logger.info(f"No valid equations; pot of {pot} split among {len(players)} contestants")
