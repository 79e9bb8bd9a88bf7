"""
Cards and deck building for Equation Poker.

The deck holds 52 cards:
    - 44 number cards: values 0-10 in each of four colors
    - 4 multiply cards
    - 4 square-root cards

Colors are ranked dark < bronze < silver < gold. The ranking only matters
for breaking ties between equally close equations.

Add, subtract and divide never appear in the deck; every player starts a
round holding one of each (see STARTING_OPERATIONS).
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from constants import (
    MAX_CARD_VALUE,
    MIN_CARD_VALUE,
    MULTIPLY_COPIES,
    SQUARE_ROOT_COPIES,
)
from errors import DeckExhausted


class CardColor(str, Enum):
    """Number card colors, declared weakest first."""

    DARK = "dark"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"

    @property
    def rank(self) -> int:
        return COLOR_RANKS[self]


COLOR_RANKS: dict[CardColor, int] = {color: i for i, color in enumerate(CardColor)}


class OperationType(str, Enum):
    """Operators that can appear on operation cards."""

    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    SQUARE_ROOT = "squareRoot"

    @property
    def symbol(self) -> str:
        return OPERATION_SYMBOLS[self]


# Symbols accepted by the equation evaluator for each operator
OPERATION_SYMBOLS: dict[OperationType, str] = {
    OperationType.ADD: "+",
    OperationType.SUBTRACT: "-",
    OperationType.MULTIPLY: "*",
    OperationType.DIVIDE: "/",
    OperationType.SQUARE_ROOT: "sqrt",
}

# Every player begins each round with exactly these operators
STARTING_OPERATIONS: tuple[OperationType, ...] = (
    OperationType.ADD,
    OperationType.SUBTRACT,
    OperationType.DIVIDE,
)


@dataclass(frozen=True)
class NumberCard:
    """A number card with its value and color."""

    value: int
    color: CardColor

    def to_dict(self) -> dict:
        return {"type": "number", "value": self.value, "color": self.color.value}


@dataclass(frozen=True)
class OperationCard:
    """An operation card (starting operator or one acquired while dealing)."""

    operation: OperationType

    def to_dict(self) -> dict:
        return {"type": "operation", "operation": self.operation.value}


Card = Union[NumberCard, OperationCard]


def card_from_dict(data: dict) -> Card:
    """Rebuild a card from its to_dict() form."""
    if data.get("type") == "number":
        return NumberCard(int(data["value"]), CardColor(data["color"]))
    return OperationCard(OperationType(data["operation"]))


def starting_operation_cards() -> list[OperationCard]:
    """Fresh set of the three starting operator cards."""
    return [OperationCard(op) for op in STARTING_OPERATIONS]


def is_operation(card: Card, operation: OperationType) -> bool:
    return isinstance(card, OperationCard) and card.operation == operation


class Deck:
    """
    A shuffled stack of cards owned by one session.

    Cards are drawn from the end of the list (the top of the stack).
    A deck is built fresh for every round and never reshuffled mid-hand:
    running out while dealing raises DeckExhausted.
    """

    def __init__(self, cards: Optional[list[Card]] = None, rng: Optional[random.Random] = None) -> None:
        """
        Initialize a deck.

        Args:
            cards: Explicit card order (top of the deck last). When None,
                the standard 52-card composition is built and shuffled.
            rng: Random source for the shuffle. Defaults to the module RNG.
        """
        if cards is None:
            cards = standard_cards()
            (rng or random).shuffle(cards)
        self.cards: list[Card] = list(cards)

    def draw(self) -> Card:
        """
        Draw the top card.

        Raises:
            DeckExhausted: If the deck is empty.
        """
        if not self.cards:
            raise DeckExhausted("Deck is empty but players still need cards")
        return self.cards.pop()

    def return_to_front(self, cards: list[Card]) -> None:
        """Put cards back at the bottom of the stack, in the given order."""
        self.cards[0:0] = cards

    def cards_remaining(self) -> int:
        return len(self.cards)

    def __len__(self) -> int:
        return len(self.cards)


def standard_cards() -> list[Card]:
    """The unshuffled 52-card composition."""
    cards: list[Card] = []
    for color in CardColor:
        for value in range(MIN_CARD_VALUE, MAX_CARD_VALUE + 1):
            cards.append(NumberCard(value, color))
    cards.extend(OperationCard(OperationType.MULTIPLY) for _ in range(MULTIPLY_COPIES))
    cards.extend(OperationCard(OperationType.SQUARE_ROOT) for _ in range(SQUARE_ROOT_COPIES))
    return cards


def build_deck(rng: Optional[random.Random] = None) -> Deck:
    """Build and shuffle a fresh deck for a new round."""
    return Deck(rng=rng)
