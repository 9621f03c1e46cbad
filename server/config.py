"""
Centralized configuration for the Flip 7 rules engine.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.TARGET_SCORE)
    print(config.ROUND_START_DELAY_SECONDS)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
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
class EngineConfig:
    """Engine configuration."""
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Game defaults
    TARGET_SCORE: int = 200
    MAX_PLAYERS: int = 6
    TURN_TIMEOUT_SECONDS: int = 30

    # Lifecycle
    MIN_PLAYERS: int = 3
    ROUND_START_DELAY_SECONDS: float = 3.0

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        return cls(
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            DEBUG=get_env_bool("DEBUG", False),
            TARGET_SCORE=get_env_int("TARGET_SCORE", 200),
            MAX_PLAYERS=get_env_int("MAX_PLAYERS", 6),
            TURN_TIMEOUT_SECONDS=get_env_int("TURN_TIMEOUT_SECONDS", 30),
            MIN_PLAYERS=get_env_int("MIN_PLAYERS", 3),
            ROUND_START_DELAY_SECONDS=get_env_float("ROUND_START_DELAY_SECONDS", 3.0),
        )


# Global config instance - loaded once at module import
config = EngineConfig.from_env()


def reload_config() -> EngineConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = EngineConfig.from_env()
    return config
