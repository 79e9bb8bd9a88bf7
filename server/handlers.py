"""WebSocket message handlers for Equation Poker.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict from handle_message().
Every rejected request is answered with one error message to the
requesting connection only.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from errors import GameError, InvalidAction
from models.events import error_message
from services.game_service import GameService
from session import Session

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: Optional[str] = None
    current_session: Optional[Session] = None


def _session_for(data: dict, ctx: ConnectionContext, game_service: GameService) -> Session:
    session_id = data.get("session_id")
    if session_id:
        return game_service.require_session(str(session_id))
    if ctx.current_session is None:
        raise InvalidAction("Join or subscribe to a game first")
    return ctx.current_session


def _subscribe(ctx: ConnectionContext, session: Session, player_id: Optional[str] = None) -> None:
    if ctx.current_session is not None and ctx.current_session is not session:
        ctx.current_session.detach(ctx.connection_id)
    session.attach(ctx.connection_id, ctx.websocket, player_id)
    ctx.current_session = session
    if player_id is not None:
        ctx.player_id = player_id


# ---------------------------------------------------------------------------
# Session handlers
# ---------------------------------------------------------------------------

async def handle_create_session(data: dict, ctx: ConnectionContext, *, game_service: GameService, **kw) -> None:
    session = game_service.create_session()
    _subscribe(ctx, session)
    await ctx.websocket.send_json({
        "type": "session_created",
        "session_id": session.id,
    })


async def handle_subscribe(data: dict, ctx: ConnectionContext, *, game_service: GameService, **kw) -> None:
    session = _session_for(data, ctx, game_service)
    player_id = data.get("player_id")
    if player_id is not None and session.game.get_player(player_id) is None:
        raise InvalidAction("Unknown player for this game")
    _subscribe(ctx, session, player_id)
    await ctx.websocket.send_json({
        "type": "game_state",
        "game_state": session.game.get_state(),
    })


async def handle_join_session(data: dict, ctx: ConnectionContext, *, game_service: GameService, **kw) -> None:
    session = _session_for(data, ctx, game_service)
    player_name = str(data.get("player_name", "")).strip()
    existing_id = data.get("player_id")

    # Subscribe before joining so this connection receives the join snapshot
    _subscribe(ctx, session)
    player = await game_service.join_session(session.id, player_name, existing_id)
    _subscribe(ctx, session, player.id)

    await ctx.websocket.send_json({
        "type": "joined",
        "session_id": session.id,
        "player_id": player.id,
        "player_name": player.name,
        "is_spectator": player.is_spectator,
    })


async def handle_start_session(data: dict, ctx: ConnectionContext, *, game_service: GameService, **kw) -> None:
    session = _session_for(data, ctx, game_service)
    await game_service.start_session(session.id)


# ---------------------------------------------------------------------------
# Gameplay
# ---------------------------------------------------------------------------

async def handle_game_action(data: dict, ctx: ConnectionContext, *, game_service: GameService, **kw) -> None:
    session = _session_for(data, ctx, game_service)
    action = data.get("action")
    if not isinstance(action, dict):
        raise InvalidAction("Missing action")

    action = dict(action)
    if ctx.player_id is not None:
        if action.setdefault("player_id", ctx.player_id) != ctx.player_id:
            raise InvalidAction("Cannot act for another player")
    await game_service.perform_action(session.id, action)


HANDLERS = {
    "create_session": handle_create_session,
    "subscribe": handle_subscribe,
    "join_session": handle_join_session,
    "start_session": handle_start_session,
    "game_action": handle_game_action,
}


async def handle_message(data: dict, ctx: ConnectionContext, **deps) -> None:
    """
    Dispatch one client message to its handler.

    Game errors are reported to this connection alone; nothing is
    broadcast for a rejected request.
    """
    message_type = data.get("type") if isinstance(data, dict) else None
    handler = HANDLERS.get(message_type)
    if handler is None:
        await ctx.websocket.send_json(error_message(InvalidAction(f"Unknown message type: {message_type}")))
        return

    try:
        await handler(data, ctx, **deps)
    except GameError as e:
        logger.debug(f"{message_type} from connection {ctx.connection_id} rejected: {e.message}")
        await ctx.websocket.send_json(error_message(e))


async def handle_disconnect(ctx: ConnectionContext, *, game_service: GameService, **kw) -> None:
    """Drop the connection's subscription and mark its player inactive."""
    session = ctx.current_session
    if session is None:
        return
    session.detach(ctx.connection_id)
    if ctx.player_id is not None:
        await game_service.notify_disconnect(session.id, ctx.player_id)
