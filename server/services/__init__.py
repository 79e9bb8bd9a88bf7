"""Services package for Equation Poker business logic."""

from .game_service import GameService, get_game_service, set_game_service

__all__ = [
    "GameService",
    "get_game_service",
    "set_game_service",
]
