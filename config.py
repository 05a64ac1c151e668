"""
Maze drive configuration.

Settings come from MAZE_* environment variables or a local .env file.
"""

from __future__ import annotations

import logging
import secrets

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from paths import DEFAULT_SECRET_TEMPLATE

logger = logging.getLogger(__name__)

RANDOM_SEED = "random"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


def _parse_seed(token: str) -> int:
    # Plain decimal first so "010" stays 10; then 0x/0o/0b prefixes.
    try:
        return int(token)
    except ValueError:
        return int(token, 0)


class Settings(BaseSettings):
    # Maze shape
    ROWS: int = 64
    COLS: int = 64

    # Integer seed, or "random" for a fresh layout per process
    SEED: str = "1953459557"

    SECRET_TEMPLATE: str = DEFAULT_SECRET_TEMPLATE
    DRIVE_NAME: str = "Maze"

    # Session store (.db -> SQLite, anything else -> JSON)
    DB_PATH: str = "maze_sessions.db"

    LOG_LEVEL: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="MAZE_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("ROWS", "COLS")
    @classmethod
    def validate_dimension(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"maze dimensions must be positive, got {value}")
        return value

    @field_validator("SEED")
    @classmethod
    def validate_seed(cls, value: str) -> str:
        token = value.strip()
        if token.lower() == RANDOM_SEED:
            return RANDOM_SEED
        try:
            _parse_seed(token)
        except ValueError as exc:
            raise ValueError(f"SEED must be an integer or '{RANDOM_SEED}', got: {value}") from exc
        return token

    @field_validator("SECRET_TEMPLATE")
    @classmethod
    def validate_template(cls, value: str) -> str:
        if "{code}" not in value:
            raise ValueError("SECRET_TEMPLATE must contain a {code} placeholder")
        try:
            value.format(code="0" * 8)
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(f"SECRET_TEMPLATE is not a valid format string: {value!r}") from exc
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got: {value}")
        return level

    @property
    def is_random_seed(self) -> bool:
        return self.SEED == RANDOM_SEED

    def resolved_seed(self) -> int:
        """Integer seed for the generator. A random seed is drawn on every call."""
        if self.is_random_seed:
            seed = secrets.randbits(32)
            logger.warning("Using per-process random maze seed %s", seed)
            return seed
        return _parse_seed(self.SEED)
