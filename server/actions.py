"""
Inbound game actions.

Each action kind is its own pydantic model carrying exactly the fields
that kind needs; `GameAction` is the discriminated union over the `type`
field. Payloads that don't match their tag's shape (unknown type, missing
or extra fields, wrong types) are rejected when parsed, before they reach
the game.

Wire shape (JSON):
    {"type": "bet", "player_id": "...", "amount": 50}
    {"type": "call", "player_id": "..."}
    {"type": "fold", "player_id": "..."}
    {"type": "select_bet_type", "player_id": "...", "bet_type": "small"}
    {"type": "submit_equation", "player_id": "...", "equations": {"small": "1+0"}}
    {"type": "swap_card", "player_id": "...", "operation": "divide"}
    {"type": "decline_swap", "player_id": "..."}
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from cards import OperationType
from constants import MAX_EQUATION_LENGTH
from errors import InvalidAction


class BetType(str, Enum):
    """Which target(s) a player plays for in the equation phase."""

    SMALL = "small"
    BIG = "big"
    BOTH = "both"

    @property
    def targets(self) -> tuple[str, ...]:
        """Equation slots this bet type requires ("small", "big")."""
        if self == BetType.BOTH:
            return ("small", "big")
        return (self.value,)


class ActionType(str, Enum):
    BET = "bet"
    CALL = "call"
    FOLD = "fold"
    SELECT_BET_TYPE = "select_bet_type"
    SUBMIT_EQUATION = "submit_equation"
    SWAP_CARD = "swap_card"
    DECLINE_SWAP = "decline_swap"


class _Action(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    player_id: str = Field(min_length=1)


class BetAction(_Action):
    type: Literal[ActionType.BET] = ActionType.BET
    amount: int = Field(gt=0)


class CallAction(_Action):
    type: Literal[ActionType.CALL] = ActionType.CALL


class FoldAction(_Action):
    type: Literal[ActionType.FOLD] = ActionType.FOLD


class SelectBetTypeAction(_Action):
    type: Literal[ActionType.SELECT_BET_TYPE] = ActionType.SELECT_BET_TYPE
    bet_type: BetType


class Equations(BaseModel):
    """Equation strings for the small and/or big target."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    small: Optional[str] = Field(default=None, max_length=MAX_EQUATION_LENGTH)
    big: Optional[str] = Field(default=None, max_length=MAX_EQUATION_LENGTH)

    def get(self, target: str) -> Optional[str]:
        return getattr(self, target)

    def provided(self) -> set[str]:
        return {t for t in ("small", "big") if self.get(t)}


class SubmitEquationAction(_Action):
    type: Literal[ActionType.SUBMIT_EQUATION] = ActionType.SUBMIT_EQUATION
    equations: Equations


class SwapCardAction(_Action):
    type: Literal[ActionType.SWAP_CARD] = ActionType.SWAP_CARD
    operation: OperationType


class DeclineSwapAction(_Action):
    type: Literal[ActionType.DECLINE_SWAP] = ActionType.DECLINE_SWAP


GameAction = Annotated[
    Union[
        BetAction,
        CallAction,
        FoldAction,
        SelectBetTypeAction,
        SubmitEquationAction,
        SwapCardAction,
        DeclineSwapAction,
    ],
    Field(discriminator="type"),
]

_action_adapter: TypeAdapter = TypeAdapter(GameAction)


def parse_action(data: dict) -> GameAction:
    """
    Build a GameAction from a client payload.

    Raises:
        InvalidAction: If the payload doesn't match any action shape.
    """
    try:
        return _action_adapter.validate_python(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'action'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidAction(f"Malformed action: {problems}") from None
