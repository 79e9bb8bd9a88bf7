"""
Session management for Equation Poker.

A Session wraps one Game with everything the server needs around it:
    - A short numeric id players share to join
    - The WebSocket connections subscribed to it
    - A lock that serializes every mutation of the game
    - An outbox collecting the game's outbound events until they are sent

The SessionRegistry maps ids to sessions. It's the only state shared
across sessions.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from fastapi import WebSocket

from constants import SESSION_ID_DIGITS
from game import Game
from models.events import OutboundEvent


logger = logging.getLogger(__name__)


@dataclass
class Connection:
    """
    A WebSocket subscribed to a session.

    Attributes:
        id: Unique connection identifier.
        websocket: The client's WebSocket.
        player_id: Player this connection speaks for, if it has joined.
    """

    id: str
    websocket: WebSocket
    player_id: Optional[str] = None


@dataclass
class Session:
    """
    One game session and its live connections.

    Attributes:
        id: Numeric session id (e.g., "0427").
        game: The Game instance owning the authoritative state.
        connections: Subscribed connections by connection id.
        lock: asyncio.Lock serializing game mutations.
        outbox: Events emitted by the game and not yet delivered.
        bot_task: Pending deferred bot turn, if one is scheduled.
        swap_timers: Auto-decline tasks for pending swaps, by player id.
        faulted: Set after an internal dealing failure; the session then
            only serves reads.
    """

    id: str
    game: Optional[Game] = None
    connections: dict[str, Connection] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    outbox: list[OutboundEvent] = field(default_factory=list)
    bot_task: Optional[asyncio.Task] = field(default=None, repr=False)
    swap_timers: dict[str, asyncio.Task] = field(default_factory=dict, repr=False)
    faulted: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.game is None:
            self.game = Game(session_id=self.id)
        self.game.set_event_emitter(self.outbox.append)

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def attach(self, connection_id: str, websocket: WebSocket, player_id: Optional[str] = None) -> Connection:
        """Subscribe a connection (or rebind it to a player if already subscribed)."""
        connection = self.connections.get(connection_id)
        if connection is None:
            connection = Connection(id=connection_id, websocket=websocket)
            self.connections[connection_id] = connection
        if player_id is not None:
            connection.player_id = player_id
        return connection

    def detach(self, connection_id: str) -> Optional[Connection]:
        return self.connections.pop(connection_id, None)

    def player_is_connected(self, player_id: str) -> bool:
        return any(c.player_id == player_id for c in self.connections.values())

    async def broadcast(self, message: dict) -> None:
        """
        Send a message to every subscribed connection.

        Args:
            message: JSON-serializable message dict.
        """
        for connection in list(self.connections.values()):
            await self._send(connection, message)

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to every connection bound to one player.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        for connection in list(self.connections.values()):
            if connection.player_id == player_id:
                await self._send(connection, message)

    async def _send(self, connection: Connection, message: dict) -> None:
        try:
            await connection.websocket.send_json(message)
        except Exception as e:
            logger.debug(f"Send to connection {connection.id} in session {self.id} failed: {e}")

    # -------------------------------------------------------------------------
    # Outbox
    # -------------------------------------------------------------------------

    def discard_events_after(self, mark: int) -> None:
        """Drop events emitted after `mark` (events of a rolled-back action)."""
        del self.outbox[mark:]

    def take_events(self) -> list[OutboundEvent]:
        events = list(self.outbox)
        self.outbox.clear()
        return events

    async def flush(self) -> list[OutboundEvent]:
        """
        Deliver queued events in emission order.

        Must be called while holding `lock` so snapshots leave in the order
        their mutations were applied.

        Returns:
            The events that were delivered.
        """
        events = self.take_events()
        for event in events:
            if event.is_broadcast:
                await self.broadcast(event.to_message())
            else:
                await self.send_to(event.recipient, event.to_message())
        return events


class SessionRegistry:
    """
    Maps session ids to sessions.

    Provides creation with unique ids, lookup, and cleanup. A single
    registry instance is used by the server; tests build their own.
    """

    def __init__(self, id_digits: int = SESSION_ID_DIGITS, rng: Optional[random.Random] = None) -> None:
        """Initialize an empty registry."""
        self.sessions: dict[str, Session] = {}
        self.id_digits = id_digits
        self.rng = rng or random.Random()

    def _generate_id(self, max_attempts: int = 100) -> str:
        """Generate a unique zero-padded numeric session id."""
        for _ in range(max_attempts):
            session_id = f"{self.rng.randrange(10 ** self.id_digits):0{self.id_digits}d}"
            if session_id not in self.sessions:
                return session_id
        raise RuntimeError("Could not generate unique session id")

    def create_session(self) -> Session:
        """
        Create a new empty session with a unique id.

        Returns:
            The newly created Session.
        """
        session = Session(id=self._generate_id())
        self.sessions[session.id] = session
        logger.info(f"Session {session.id} created")
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """
        Get a session by its id.

        Args:
            session_id: The numeric session id.

        Returns:
            The Session if found, None otherwise.
        """
        return self.sessions.get(session_id.strip())

    def list_sessions(self) -> list[Session]:
        return list(self.sessions.values())

    def remove_session(self, session_id: str) -> None:
        """
        Delete a session.

        Args:
            session_id: The session id to remove.
        """
        session = self.sessions.pop(session_id, None)
        if session is not None:
            if session.bot_task and not session.bot_task.done():
                session.bot_task.cancel()
            for timer in session.swap_timers.values():
                timer.cancel()

    def find_player_session(self, player_id: str) -> Optional[Session]:
        """
        Find which session a player belongs to.

        Args:
            player_id: The player ID to search for.

        Returns:
            The Session containing the player, or None.
        """
        for session in self.sessions.values():
            if session.game.get_player(player_id) is not None:
                return session
        return None

    def __len__(self) -> int:
        return len(self.sessions)
