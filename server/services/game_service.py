"""
Game service: the inbound interface to Equation Poker sessions.

Both transports (REST routes and WebSocket handlers) go through this
service. It owns the rules for applying a mutation to a session:

    1. Take the session lock (one mutation at a time per session)
    2. Checkpoint the game
    3. Apply the mutation; on any error roll back and re-raise it as a
       GameError
    4. Emit exactly one snapshot and deliver queued events in order
    5. Schedule a deferred bot turn if a bot is now expected to act

Usage:
    service = GameService(SessionRegistry())
    session = service.create_session()
    player = await service.join_session(session.id, "Ada")
    state = await service.start_session(session.id)
"""

import asyncio
import logging
import random
from typing import Any, Callable, Optional, Union

import ai
from actions import DeclineSwapAction, GameAction, parse_action
from constants import BOT_TURN_DELAY, SWAP_DECISION_TIMEOUT
from errors import DeckExhausted, GameError, InternalError, InvalidAction, NotFound
from game import Game, Player
from logging_config import log_context
from session import Session, SessionRegistry

logger = logging.getLogger(__name__)


class GameService:
    """
    Serializes and applies all session mutations.

    Different sessions never block each other; within a session every
    mutation, bot turn and swap timeout runs under the session's lock.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        bot_turn_delay: float = BOT_TURN_DELAY,
        swap_decision_timeout: float = SWAP_DECISION_TIMEOUT,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the game service.

        Args:
            registry: Session registry to create and look up sessions in.
            bot_turn_delay: Pause before each bot action, in seconds.
            swap_decision_timeout: Seconds before a pending multiply swap
                is declined automatically. 0 waits forever.
            rng: Random source for bot decisions.
        """
        self.registry = registry
        self.bot_turn_delay = bot_turn_delay
        self.swap_decision_timeout = swap_decision_timeout
        self.rng = rng or random.Random()

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def create_session(self) -> Session:
        """Create an empty session in the waiting phase."""
        return self.registry.create_session()

    def require_session(self, session_id: str) -> Session:
        """
        Raises:
            NotFound: If no session has this id.
        """
        session = self.registry.get_session(session_id)
        if session is None:
            raise NotFound(f"Game {session_id} not found")
        return session

    def get_session(self, session_id: str) -> dict:
        """Current snapshot of a session."""
        return self.require_session(session_id).game.get_state()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def join_session(
        self,
        session_id: str,
        player_name: str,
        existing_player_id: Optional[str] = None,
    ) -> Player:
        """
        Join (or rejoin) a session.

        Returns:
            The player record; its id is what the client acts as.
        """
        session = self.require_session(session_id)
        async with session.lock:
            return await self._mutate(
                session,
                lambda game: game.join(player_name, existing_player_id),
                player_id=existing_player_id,
            )

    async def start_session(self, session_id: str) -> dict:
        """Start the first round, or a new one after the last ended."""
        session = self.require_session(session_id)
        async with session.lock:
            await self._mutate(session, lambda game: game.start())
            return session.game.get_state()

    async def perform_action(self, session_id: str, action: Union[GameAction, dict]) -> dict:
        """
        Apply one player action.

        Args:
            session_id: Target session.
            action: A GameAction, or a raw payload to parse into one.

        Returns:
            The snapshot after the action and all its cascading effects.

        Raises:
            GameError: If the action is rejected; nothing was applied.
        """
        session = self.require_session(session_id)
        if isinstance(action, dict):
            action = parse_action(action)
        async with session.lock:
            await self._mutate(session, lambda game: game.perform_action(action), player_id=action.player_id)
            return session.game.get_state()

    async def notify_disconnect(self, session_id: str, player_id: str) -> None:
        """Mark a player inactive after their last connection closed."""
        session = self.registry.get_session(session_id)
        if session is None:
            return
        async with session.lock:
            player = session.game.get_player(player_id)
            if player is None or not player.is_active or session.player_is_connected(player_id):
                return
            await self._mutate(session, lambda game: game.disconnect(player_id), player_id=player_id)

    async def _mutate(
        self,
        session: Session,
        mutation: Callable[[Game], Any],
        player_id: Optional[str] = None,
    ) -> Any:
        """
        Apply a mutation atomically. Caller must hold `session.lock`.

        Raises:
            GameError: The mutation was rejected and fully rolled back.
                Unexpected exceptions surface as InternalError.
        """
        with log_context(session_id=session.id, player_id=player_id):
            if session.faulted:
                raise InvalidAction("This game was halted by an internal error")

            game = session.game
            checkpoint = game.snapshot_state()
            mark = len(session.outbox)
            try:
                result = mutation(game)
            except DeckExhausted:
                logger.error(f"Session {session.id} ran out of cards while dealing; halting it", exc_info=True)
                self._roll_back(session, checkpoint, mark)
                session.faulted = True
                raise
            except GameError as e:
                logger.info(f"Rejected action in session {session.id}: {e.message}")
                self._roll_back(session, checkpoint, mark)
                raise
            except Exception as e:
                logger.error(f"Action in session {session.id} failed unexpectedly; rolled back", exc_info=True)
                self._roll_back(session, checkpoint, mark)
                raise InternalError("The action could not be applied") from e

            game.publish_state()
            self._sync_swap_timers(session)
            await session.flush()
            self._schedule_bots(session)
            return result

    def _roll_back(self, session: Session, checkpoint: dict, mark: int) -> None:
        session.game.restore_state(checkpoint)
        session.discard_events_after(mark)

    # -------------------------------------------------------------------------
    # Deferred continuations
    # -------------------------------------------------------------------------

    def _schedule_bots(self, session: Session) -> None:
        if not session.game.bots_to_act():
            return
        if session.bot_task is not None and not session.bot_task.done():
            return
        session.bot_task = asyncio.create_task(self._run_bots(session))

    async def _run_bots(self, session: Session) -> None:
        """
        Play bot turns until no bot is expected to act.

        Each pass pauses outside the lock, then applies one action per
        waiting bot through the same path as human actions.
        """
        while True:
            await asyncio.sleep(self.bot_turn_delay)
            async with session.lock:
                if session.faulted or self.registry.get_session(session.id) is not session:
                    return
                bots = session.game.bots_to_act()
                if not bots:
                    return
                for bot in bots:
                    action = ai.choose_action(session.game, bot, self.rng)
                    if action is None:
                        continue
                    try:
                        await self._mutate(
                            session,
                            lambda game, action=action: game.perform_action(action),
                            player_id=bot.id,
                        )
                    except GameError as e:
                        logger.error(f"Bot {bot.name} in session {session.id} made an illegal move: {e.message}")
                        return

    def _sync_swap_timers(self, session: Session) -> None:
        """Start auto-decline timers for new pending swaps and drop stale ones."""
        if self.swap_decision_timeout <= 0:
            return
        pending = {p.id for p in session.game.players if p.pending_swap}
        for player_id in list(session.swap_timers):
            if player_id not in pending:
                session.swap_timers.pop(player_id).cancel()
        for player_id in pending - session.swap_timers.keys():
            session.swap_timers[player_id] = asyncio.create_task(
                self._expire_swap(session, player_id)
            )

    async def _expire_swap(self, session: Session, player_id: str) -> None:
        await asyncio.sleep(self.swap_decision_timeout)
        async with session.lock:
            session.swap_timers.pop(player_id, None)
            player = session.game.get_player(player_id)
            if player is None or not player.pending_swap or session.faulted:
                return
            logger.info(f"Swap decision for {player.name} timed out; declining")
            try:
                await self._mutate(
                    session,
                    lambda game: game.perform_action(DeclineSwapAction(player_id=player_id)),
                    player_id=player_id,
                )
            except GameError as e:
                logger.error(f"Auto-decline for {player_id} in session {session.id} failed: {e.message}")

    async def shutdown(self) -> None:
        """Cancel every pending bot turn and swap timer."""
        for session in self.registry.list_sessions():
            tasks = list(session.swap_timers.values())
            if session.bot_task is not None:
                tasks.append(session.bot_task)
            for task in tasks:
                task.cancel()
            session.swap_timers.clear()


# Global service instance (set up in main.py)
_game_service: Optional[GameService] = None


def get_game_service() -> Optional[GameService]:
    """
    Get the global game service instance.

    Returns:
        GameService if initialized, None otherwise.
    """
    return _game_service


def set_game_service(service: GameService) -> None:
    """
    Set the global game service instance.

    Called during application startup in main.py.
    """
    global _game_service
    _game_service = service
