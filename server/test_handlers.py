"""
Test suite for WebSocket message handlers.

Tests handler flows and validation using mock WebSockets against a real
GameService.

Run with: pytest test_handlers.py -v
"""

import pytest

from cards import CardColor, Deck, NumberCard, OperationCard, OperationType
from handlers import ConnectionContext, handle_disconnect, handle_message
from services.game_service import GameService
from session import SessionRegistry


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def last_message(self) -> dict:
        return self.messages[-1] if self.messages else {}

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]


def make_ctx(websocket=None, connection_id="conn_123"):
    """Create a ConnectionContext with sensible defaults."""
    ws = websocket or MockWebSocket()
    return ConnectionContext(websocket=ws, connection_id=connection_id)


def make_service():
    """Create a GameService with no bot delay for testing."""
    return GameService(SessionRegistry(), bot_turn_delay=0)


async def send(ctx, service, **message):
    await handle_message(message, ctx, game_service=service)


async def make_table(service):
    """Create a session with two joined players; returns (session, ctx_a, ctx_b)."""
    ctx_a = make_ctx(connection_id="conn_a")
    ctx_b = make_ctx(connection_id="conn_b")
    await send(ctx_a, service, type="create_session")
    session = ctx_a.current_session
    await send(ctx_a, service, type="join_session", session_id=session.id, player_name="Ada")
    await send(ctx_b, service, type="join_session", session_id=session.id, player_name="Grace")
    return session, ctx_a, ctx_b


# =============================================================================
# Session handlers
# =============================================================================

class TestCreateAndJoin:

    @pytest.mark.asyncio
    async def test_create_session(self):
        service = make_service()
        ctx = make_ctx()

        await send(ctx, service, type="create_session")

        msg = ctx.websocket.last_message()
        assert msg["type"] == "session_created"
        assert ctx.current_session is not None
        assert msg["session_id"] == ctx.current_session.id

    @pytest.mark.asyncio
    async def test_join_session(self):
        service = make_service()
        ctx = make_ctx()
        await send(ctx, service, type="create_session")

        await send(ctx, service, type="join_session", player_name="Ada")

        joined = ctx.websocket.messages_of_type("joined")
        assert len(joined) == 1
        assert joined[0]["player_name"] == "Ada"
        assert joined[0]["is_spectator"] is False
        assert ctx.player_id == joined[0]["player_id"]

        states = ctx.websocket.messages_of_type("game_state")
        assert len(states) == 1
        assert [p["name"] for p in states[0]["game_state"]["players"]] == ["Ada"]

    @pytest.mark.asyncio
    async def test_join_unknown_session(self):
        service = make_service()
        ctx = make_ctx()

        await send(ctx, service, type="join_session", session_id="9999", player_name="Ada")

        msg = ctx.websocket.last_message()
        assert msg["type"] == "error"
        assert msg["code"] == "not_found"
        assert ctx.player_id is None

    @pytest.mark.asyncio
    async def test_join_without_session(self):
        service = make_service()
        ctx = make_ctx()
        await send(ctx, service, type="join_session", player_name="Ada")
        assert ctx.websocket.last_message()["code"] == "invalid_action"

    @pytest.mark.asyncio
    async def test_join_with_long_name(self):
        service = make_service()
        ctx = make_ctx()
        await send(ctx, service, type="create_session")

        await send(ctx, service, type="join_session", player_name="A" * 41)

        msg = ctx.websocket.last_message()
        assert msg["type"] == "error"
        assert msg["code"] == "invalid_action"
        assert ctx.player_id is None
        assert ctx.current_session.game.players == []

    @pytest.mark.asyncio
    async def test_late_join_is_spectator(self):
        service = make_service()
        session, ctx_a, _ = await make_table(service)
        await send(ctx_a, service, type="start_session")

        ctx_c = make_ctx(connection_id="conn_c")
        await send(ctx_c, service, type="join_session", session_id=session.id, player_name="Zed")

        joined = ctx_c.websocket.messages_of_type("joined")[0]
        assert joined["is_spectator"] is True
        assert joined["player_name"] == "Zed (Spectator)"

    @pytest.mark.asyncio
    async def test_subscribe_receives_snapshot_and_broadcasts(self):
        service = make_service()
        session, ctx_a, _ = await make_table(service)
        watcher = make_ctx(connection_id="conn_w")

        await send(watcher, service, type="subscribe", session_id=session.id)
        assert watcher.websocket.last_message()["type"] == "game_state"

        await send(ctx_a, service, type="start_session")
        assert watcher.websocket.last_message()["game_state"]["phase"] == "preflop"

    @pytest.mark.asyncio
    async def test_unknown_message_type(self):
        service = make_service()
        ctx = make_ctx()
        await send(ctx, service, type="teleport")
        msg = ctx.websocket.last_message()
        assert msg["type"] == "error"
        assert "Unknown message type" in msg["message"]


# =============================================================================
# Gameplay
# =============================================================================

class TestGameAction:

    @pytest.mark.asyncio
    async def test_start_broadcasts_to_all(self):
        service = make_service()
        _, ctx_a, ctx_b = await make_table(service)

        await send(ctx_a, service, type="start_session")

        for ctx in (ctx_a, ctx_b):
            state = ctx.websocket.last_message()["game_state"]
            assert state["phase"] == "preflop"
            assert state["current_player"] == ctx_a.player_id

    @pytest.mark.asyncio
    async def test_bet_broadcasts_one_snapshot(self):
        service = make_service()
        _, ctx_a, ctx_b = await make_table(service)
        await send(ctx_a, service, type="start_session")
        before = len(ctx_b.websocket.messages_of_type("game_state"))

        await send(ctx_a, service, type="game_action", action={"type": "bet", "amount": 50})

        states = ctx_b.websocket.messages_of_type("game_state")
        assert len(states) == before + 1
        assert states[-1]["game_state"]["pot"] == 50

    @pytest.mark.asyncio
    async def test_out_of_turn_error_goes_to_requester_only(self):
        service = make_service()
        _, ctx_a, ctx_b = await make_table(service)
        await send(ctx_a, service, type="start_session")
        a_count = len(ctx_a.websocket.messages)
        b_count = len(ctx_b.websocket.messages)

        await send(ctx_b, service, type="game_action", action={"type": "bet", "amount": 50})

        assert len(ctx_a.websocket.messages) == a_count
        assert len(ctx_b.websocket.messages) == b_count + 1
        msg = ctx_b.websocket.last_message()
        assert msg["type"] == "error"
        assert msg["code"] == "invalid_action"

    @pytest.mark.asyncio
    async def test_cannot_act_for_another_player(self):
        service = make_service()
        _, ctx_a, ctx_b = await make_table(service)
        await send(ctx_a, service, type="start_session")

        await send(ctx_b, service, type="game_action",
                   action={"type": "call", "player_id": ctx_a.player_id})

        assert ctx_b.websocket.last_message()["message"] == "Cannot act for another player"

    @pytest.mark.asyncio
    async def test_malformed_action(self):
        service = make_service()
        _, ctx_a, _ = await make_table(service)
        await send(ctx_a, service, type="start_session")

        await send(ctx_a, service, type="game_action", action={"type": "bet", "amount": "lots"})
        assert ctx_a.websocket.last_message()["code"] == "invalid_action"

        await send(ctx_a, service, type="game_action")
        assert ctx_a.websocket.last_message()["message"] == "Missing action"

    @pytest.mark.asyncio
    async def test_over_betting_reports_insufficient_chips(self):
        service = make_service()
        _, ctx_a, _ = await make_table(service)
        await send(ctx_a, service, type="start_session")

        await send(ctx_a, service, type="game_action", action={"type": "bet", "amount": 5000})

        assert ctx_a.websocket.last_message()["code"] == "insufficient_chips"

    @pytest.mark.asyncio
    async def test_swap_prompt_goes_to_drawing_player_only(self):
        service = make_service()
        session, ctx_a, ctx_b = await make_table(service)
        await send(ctx_a, service, type="start_session")
        numbers = [NumberCard(v, CardColor.DARK) for v in range(1, 5)]
        session.game.deck = Deck(cards=list(reversed([OperationCard(OperationType.MULTIPLY)] + numbers)))

        await send(ctx_a, service, type="game_action", action={"type": "call"})
        await send(ctx_b, service, type="game_action", action={"type": "call"})

        prompts = ctx_a.websocket.messages_of_type("swap_required")
        assert len(prompts) == 1
        assert prompts[0]["player_id"] == ctx_a.player_id
        assert prompts[0]["multiply_card"] == {"type": "operation", "operation": "multiply"}
        assert ctx_b.websocket.messages_of_type("swap_required") == []
        assert ctx_b.websocket.last_message()["game_state"]["phase"] == "dealing1"

        await send(ctx_a, service, type="game_action", action={"type": "swap_card", "operation": "divide"})
        assert ctx_b.websocket.last_message()["game_state"]["phase"] == "betting1"


# =============================================================================
# Disconnect
# =============================================================================

class TestDisconnect:

    @pytest.mark.asyncio
    async def test_disconnect_marks_player_inactive(self):
        service = make_service()
        session, ctx_a, ctx_b = await make_table(service)

        await handle_disconnect(ctx_b, game_service=service)

        assert "conn_b" not in session.connections
        players = ctx_a.websocket.last_message()["game_state"]["players"]
        assert [p["is_active"] for p in players] == [True, False]

    @pytest.mark.asyncio
    async def test_disconnect_mid_round_hands_pot_to_survivor(self):
        service = make_service()
        session, ctx_a, ctx_b = await make_table(service)
        await send(ctx_a, service, type="start_session")
        await send(ctx_a, service, type="game_action", action={"type": "bet", "amount": 50})

        await handle_disconnect(ctx_b, game_service=service)

        state = ctx_a.websocket.last_message()["game_state"]
        assert state["phase"] == "ended"
        assert state["winners"]["small"] == [ctx_a.player_id]

    @pytest.mark.asyncio
    async def test_disconnect_without_session(self):
        service = make_service()
        ctx = make_ctx()
        await handle_disconnect(ctx, game_service=service)
        assert ctx.websocket.messages == []

    @pytest.mark.asyncio
    async def test_rejoin_after_disconnect(self):
        service = make_service()
        session, ctx_a, ctx_b = await make_table(service)
        player_id = ctx_b.player_id
        await handle_disconnect(ctx_b, game_service=service)

        ctx_b2 = make_ctx(connection_id="conn_b2")
        await send(ctx_b2, service, type="join_session", session_id=session.id,
                   player_name="Grace", player_id=player_id)

        assert ctx_b2.player_id == player_id
        assert session.game.get_player(player_id).is_active
