"""
Game API router for Equation Poker.

Provides request/response endpoints mirroring the WebSocket interface:
- Creating a game and reading its snapshot
- Joining (or rejoining) a game
- Starting a round
- Performing a game action
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from constants import MAX_NAME_LENGTH
from errors import GameError, InternalError, NotFound
from services.game_service import GameService, get_game_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["games"])


# -------------------------------------------------------------------------
# Request Models
# -------------------------------------------------------------------------

class JoinRequest(BaseModel):
    """Request to join a game; player_id rejoins as an existing player."""
    player_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    player_id: Optional[str] = None


# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------

def _service() -> GameService:
    service = get_game_service()
    if service is None:
        raise HTTPException(status_code=503, detail="Game service unavailable")
    return service


def _http_error(error: GameError) -> HTTPException:
    if isinstance(error, NotFound):
        status_code = 404
    elif isinstance(error, InternalError):
        status_code = 500
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=error.message)


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------

@router.post("")
async def create_game():
    """Create an empty game in the waiting phase."""
    session = _service().create_session()
    return {"session_id": session.id}


@router.get("/{session_id}")
async def get_game(session_id: str):
    """Current snapshot of a game."""
    try:
        return _service().get_session(session_id)
    except GameError as e:
        raise _http_error(e)


@router.post("/{session_id}/join")
async def join_game(session_id: str, request: JoinRequest):
    """
    Join a game.

    Joining after the game has started seats the player as a spectator.
    """
    try:
        player = await _service().join_session(session_id, request.player_name, request.player_id)
    except GameError as e:
        raise _http_error(e)
    return {
        "player_id": player.id,
        "player_name": player.name,
        "is_spectator": player.is_spectator,
    }


@router.post("/{session_id}/start")
async def start_game(session_id: str):
    """Start the first round, or a new round once the last one ended."""
    try:
        return await _service().start_session(session_id)
    except GameError as e:
        raise _http_error(e)


@router.post("/{session_id}/action")
async def perform_action(session_id: str, action: dict = Body(...)):
    """
    Perform a game action.

    Body is one action, e.g. {"type": "bet", "player_id": "...", "amount": 50}.
    """
    try:
        return await _service().perform_action(session_id, action)
    except GameError as e:
        raise _http_error(e)
