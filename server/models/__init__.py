"""Models package for Equation Poker."""

from .events import EventType, OutboundEvent

__all__ = [
    "EventType",
    "OutboundEvent",
]
