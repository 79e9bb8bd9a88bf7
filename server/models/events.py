"""
Outbound event definitions for Equation Poker.

The game never talks to a socket. Every state change it wants the outside
world to see is emitted as an OutboundEvent through the emitter the
owning session installs; the transport layer drains those events and
performs the actual fan-out.

Event kinds:
    - game_state:    full snapshot, broadcast to the whole session
    - swap_required: multiply-card interrupt, sent to one player only
    - error:         rejected action, sent to the requester only
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from errors import GameError


class EventType(str, Enum):
    """All outbound event types."""

    GAME_STATE = "game_state"
    SWAP_REQUIRED = "swap_required"
    ERROR = "error"


@dataclass
class OutboundEvent:
    """
    An event leaving the game core.

    Attributes:
        event_type: The kind of event (from EventType enum).
        session_id: Session the event belongs to.
        sequence_num: Monotonically increasing number within the session.
        recipient: Player id for targeted events, None for broadcasts.
        payload: Event-specific data fields.
        timestamp: When the event was produced (UTC).
    """

    event_type: EventType
    session_id: str
    sequence_num: int
    recipient: Optional[str] = None
    payload: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_broadcast(self) -> bool:
        return self.recipient is None

    def to_message(self) -> dict:
        """Wire message for the client: the event type plus its payload."""
        return {"type": self.event_type.value, **self.payload}

    def to_dict(self) -> dict:
        """Serialize event to a dictionary (for logs and debugging)."""
        return {
            "event_type": self.event_type.value,
            "session_id": self.session_id,
            "sequence_num": self.sequence_num,
            "recipient": self.recipient,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# Event Factory Functions
# =============================================================================


def game_state(session_id: str, sequence_num: int, state: dict) -> OutboundEvent:
    """Snapshot broadcast sent after every accepted mutation."""
    return OutboundEvent(
        event_type=EventType.GAME_STATE,
        session_id=session_id,
        sequence_num=sequence_num,
        payload={"game_state": state},
    )


def swap_required(
    session_id: str,
    sequence_num: int,
    player_id: str,
    player_name: str,
    available_cards: list[dict],
    multiply_card: dict,
) -> OutboundEvent:
    """
    Create a SwapRequired event.

    Args:
        session_id: Session the interrupted deal belongs to.
        sequence_num: Sequence number within the session.
        player_id: The interrupted player (sole recipient).
        player_name: Display name of that player.
        available_cards: Starting operator cards they may give up.
        multiply_card: The drawn multiply card on offer.
    """
    return OutboundEvent(
        event_type=EventType.SWAP_REQUIRED,
        session_id=session_id,
        sequence_num=sequence_num,
        recipient=player_id,
        payload={
            "player_id": player_id,
            "player_name": player_name,
            "available_cards": available_cards,
            "multiply_card": multiply_card,
        },
    )


def error_message(error: "GameError") -> dict:
    """Wire message for a rejected request, sent to the requester only."""
    return {"type": EventType.ERROR.value, **error.to_dict()}
