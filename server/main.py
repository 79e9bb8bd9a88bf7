"""FastAPI WebSocket server for Equation Poker."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from handlers import ConnectionContext, handle_disconnect, handle_message
from logging_config import setup_logging
from services.game_service import GameService, set_game_service
from session import SessionRegistry

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


session_registry = SessionRegistry()
game_service = GameService(session_registry)
set_game_service(game_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    from routers.health import set_health_dependencies
    set_health_dependencies(registry=session_registry)

    logger.info(f"Equation Poker server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    from routers.health import mark_shutting_down
    mark_shutting_down()
    await game_service.shutdown()
    await _close_all_websockets()
    logger.info("Shutdown complete")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for session in session_registry.list_sessions():
        for connection in list(session.connections.values()):
            try:
                await connection.websocket.close(code=1001, reason="Server shutting down")
            except Exception as e:
                logger.debug(f"Closing connection {connection.id} failed: {e}")
    logger.info("All WebSocket connections closed")


app = FastAPI(
    title="Equation Poker",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Middleware Setup
# =============================================================================

from middleware.request_id import RequestIDMiddleware
app.add_middleware(RequestIDMiddleware)


# =============================================================================
# Routers
# =============================================================================

from routers.games import router as games_router
from routers.health import router as health_router
app.include_router(games_router)
app.include_router(health_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(
        game_service=game_service,
    )

    try:
        while True:
            data = await websocket.receive_json()
            await handle_message(data, ctx, **handler_deps)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    finally:
        await handle_disconnect(ctx, **handler_deps)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Equation Poker server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
