"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app handle requests?)
- /metrics - Application metrics for monitoring
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from game import GamePhase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_registry = None
_shutting_down = False


def set_health_dependencies(registry=None) -> None:
    """Set dependencies for health checks."""
    global _registry, _shutting_down
    _registry = registry
    _shutting_down = False


def mark_shutting_down() -> None:
    """Fail readiness checks while the server drains."""
    global _shutting_down
    _shutting_down = True


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Returns 503 until the session registry is wired up, and while
    shutting down.
    """
    checks = {
        "sessions": {"status": "ok" if _registry is not None else "not_configured"},
    }
    ready = _registry is not None and not _shutting_down

    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "unavailable",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.get("/metrics")
async def metrics():
    """
    Expose application metrics for monitoring.

    Returns operational metrics useful for dashboards and alerting.
    """
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _registry is not None:
        sessions = _registry.list_sessions()
        metrics_data.update({
            "active_sessions": len(sessions),
            "total_players": sum(
                1 for s in sessions for p in s.game.players if not p.is_spectator
            ),
            "spectators": sum(
                1 for s in sessions for p in s.game.players if p.is_spectator
            ),
            "connections": sum(len(s.connections) for s in sessions),
            "games_in_progress": sum(
                1 for s in sessions
                if s.game.phase not in (GamePhase.WAITING, GamePhase.ENDED)
            ),
            "faulted_sessions": sum(1 for s in sessions if s.faulted),
        })

    return metrics_data
