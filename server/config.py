"""
Centralized configuration for the Equation Poker server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game.starting_chips)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameSettings:
    """Table rules that operators may tune without code changes."""
    starting_chips: int = 1000
    small_target: int = 1
    big_target: int = 20
    bot_turn_delay: float = 1.0
    # 0 waits for the human forever
    swap_decision_timeout: float = 0.0


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Session settings
    MAX_PLAYERS_PER_SESSION: int = 6
    SESSION_ID_DIGITS: int = 4

    BOT_DEBUG: bool = False

    game: GameSettings = field(default_factory=GameSettings)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            MAX_PLAYERS_PER_SESSION=get_env_int("MAX_PLAYERS_PER_SESSION", 6),
            SESSION_ID_DIGITS=get_env_int("SESSION_ID_DIGITS", 4),
            BOT_DEBUG=get_env_bool("BOT_DEBUG", False),
            game=GameSettings(
                starting_chips=get_env_int("STARTING_CHIPS", 1000),
                small_target=get_env_int("SMALL_TARGET", 1),
                big_target=get_env_int("BIG_TARGET", 20),
                bot_turn_delay=get_env_float("BOT_TURN_DELAY", 1.0),
                swap_decision_timeout=get_env_float("SWAP_DECISION_TIMEOUT", 0.0),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
