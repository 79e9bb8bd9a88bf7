"""Automated players for Equation Poker."""

import itertools
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from actions import (
    BetAction,
    BetType,
    CallAction,
    Equations,
    FoldAction,
    GameAction,
    SelectBetTypeAction,
    SubmitEquationAction,
)
from cards import Card, NumberCard, OperationCard, OperationType, is_operation
from config import config
from equation import distance_to_target, evaluate, expression_from_cards
from scoring import TARGETS

if TYPE_CHECKING:
    from game import Game, Player


# Set BOT_DEBUG=true to log every bot decision
BOT_DEBUG = config.BOT_DEBUG

bot_logger = logging.getLogger("bot")
if BOT_DEBUG:
    bot_logger.setLevel(logging.DEBUG)


def bot_log(message: str):
    """Log bot decision info when BOT_DEBUG is enabled."""
    if BOT_DEBUG:
        bot_logger.debug(message)


# Results within this distance of a target count as exact
EXACT_TOLERANCE = 1e-9

# Smallest raise a bot makes over the current bet
MIN_RAISE = 10

# Fallback equation when a bot has nothing to build with
EMPTY_HAND_EQUATION = "0"


@dataclass
class BotProfile:
    """Personality of an automated player."""
    name: str
    style: str  # Brief description shown to players
    # Chance of raising instead of calling (0.0-1.0)
    aggression: float
    # Fraction of the stack a raise may put in (0.0-1.0)
    raise_fraction: float


BOT_PROFILES = [
    BotProfile(name="Ada", style="Calculated & Patient", aggression=0.1, raise_fraction=0.05),
    BotProfile(name="Euler", style="Steady Caller", aggression=0.2, raise_fraction=0.08),
    BotProfile(name="Hypatia", style="Pressure Player", aggression=0.45, raise_fraction=0.15),
    BotProfile(name="Ramanujan", style="Wild Card", aggression=0.6, raise_fraction=0.25),
]

DEFAULT_PROFILE = BOT_PROFILES[0]


def pick_profile(rng: Optional[random.Random] = None) -> BotProfile:
    """Pick a profile for a new practice bot."""
    return (rng or random).choice(BOT_PROFILES)


def get_profile(name: Optional[str]) -> BotProfile:
    for profile in BOT_PROFILES:
        if profile.name == name:
            return profile
    return DEFAULT_PROFILE


# =============================================================================
# Dealing
# =============================================================================


def choose_swap(operators: list[OperationType], rng: Optional[random.Random] = None) -> OperationType:
    """Pick which starting operator to give up for a multiply card (uniformly at random)."""
    return (rng or random).choice(operators)


# =============================================================================
# Equation Search
# =============================================================================


def _operator_cards(player: "Player") -> list[OperationCard]:
    """Binary operators the player can place between numbers."""
    held = list(player.operation_cards)
    held.extend(c for c in player.cards if is_operation(c, OperationType.MULTIPLY))
    return held


def candidate_arrangements(player: "Player"):
    """
    Yield card arrangements a player could lay out as an equation.

    Every arrangement uses all of the player's number cards with operators
    between them, and optionally one square root in front of a number.
    """
    numbers = player.number_cards
    if not numbers:
        return
    operators = _operator_cards(player)
    gaps = len(numbers) - 1
    if gaps > len(operators):
        return
    sqrt_card = next(
        (c for c in player.cards if is_operation(c, OperationType.SQUARE_ROOT)), None
    )
    sqrt_slots: list[Optional[int]] = [None]
    if sqrt_card is not None:
        sqrt_slots.extend(range(len(numbers)))

    for number_order in dict.fromkeys(itertools.permutations(numbers)):
        for operator_order in dict.fromkeys(itertools.permutations(operators, gaps)):
            for sqrt_at in sqrt_slots:
                arrangement: list[Card] = []
                for i, number in enumerate(number_order):
                    if i > 0:
                        arrangement.append(operator_order[i - 1])
                    if i == sqrt_at:
                        arrangement.append(sqrt_card)
                    arrangement.append(number)
                yield arrangement


def best_equation(player: "Player", target: str) -> Optional[tuple[str, float]]:
    """
    Search for the player's equation that lands closest to a target.

    Returns:
        (expression, value) for the best equation, or None if the hand
        can't form one.
    """
    goal = TARGETS[target]
    best: Optional[tuple[str, float]] = None
    best_distance = None
    for arrangement in candidate_arrangements(player):
        expression = expression_from_cards(arrangement)
        value = evaluate(expression)
        distance = distance_to_target(value, goal)
        if distance is None:
            continue
        if best_distance is None or distance < best_distance or (
            distance == best_distance and expression < best[0]
        ):
            best, best_distance = (expression, value), distance
            if distance <= EXACT_TOLERANCE:
                break
    return best


def choose_bet_type(player: "Player") -> BetType:
    """Play for the target the hand gets closest to, or both when both are exact."""
    distances = {}
    for target, goal in TARGETS.items():
        found = best_equation(player, target)
        if found is not None:
            distances[target] = distance_to_target(found[1], goal)

    if not distances:
        return BetType.SMALL
    if len(distances) == 2 and all(d <= EXACT_TOLERANCE for d in distances.values()):
        return BetType.BOTH
    return BetType(min(distances, key=lambda t: (distances[t], t != "small")))


# =============================================================================
# Decisions
# =============================================================================


def choose_betting_action(game: "Game", player: "Player", rng: Optional[random.Random] = None) -> GameAction:
    """Call when affordable, raise now and then, otherwise fold."""
    rng = rng or random
    profile = get_profile(player.bot_profile)
    owed = game.current_bet - player.bet

    # Calling the whole stack would knock the bot out
    if owed > 0 and owed >= player.chips:
        bot_log(f"{player.name} folds: calling {owed} needs all {player.chips} chips")
        return FoldAction(player_id=player.id)

    limit = min(game.bet_limit(), player.bet + player.chips - 1)
    if limit > game.current_bet and rng.random() < profile.aggression:
        step = max(MIN_RAISE, int(player.chips * profile.raise_fraction))
        amount = min(limit, game.current_bet + step)
        bot_log(f"{player.name} raises to {amount} (limit {limit})")
        return BetAction(player_id=player.id, amount=amount)

    bot_log(f"{player.name} calls {owed}")
    return CallAction(player_id=player.id)


def choose_equations(player: "Player") -> Equations:
    found = {}
    for target in player.bet_type.targets:
        best = best_equation(player, target)
        found[target] = best[0] if best else EMPTY_HAND_EQUATION
    return Equations(**found)


def choose_action(game: "Game", player: "Player", rng: Optional[random.Random] = None) -> Optional[GameAction]:
    """
    Decide the bot's next action for the current phase.

    Returns:
        The action to apply, or None if the bot has nothing to do.
    """
    from game import BETTING_PHASES, GamePhase

    if game.phase in BETTING_PHASES:
        return choose_betting_action(game, player, rng)

    if game.phase == GamePhase.EQUATION and not player.has_submitted:
        if player.bet_type is None:
            bet_type = choose_bet_type(player)
            bot_log(f"{player.name} holds {describe_hand(player)}, plays for {bet_type.value}")
            return SelectBetTypeAction(player_id=player.id, bet_type=bet_type)
        equations = choose_equations(player)
        bot_log(f"{player.name} submits {equations.model_dump(exclude_none=True)}")
        return SubmitEquationAction(player_id=player.id, equations=equations)

    return None


def describe_hand(player: "Player") -> str:
    parts = []
    for card in player.cards:
        if isinstance(card, NumberCard):
            parts.append(f"{card.value}{card.color.value[0]}")
        else:
            parts.append(card.operation.symbol)
    return " ".join(parts)
