"""Environment configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "./nzbforge.sqlite"
DEFAULT_COMPLETION_THRESHOLD = 100


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, value, default)
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Configuration settings loaded from the environment."""

    database_url: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    )
    completion_threshold: int = field(
        default_factory=lambda: _int_env(
            "COMPLETION_THRESHOLD", DEFAULT_COMPLETION_THRESHOLD
        )
    )
    db_echo: bool = field(default_factory=lambda: _bool_env("DB_ECHO"))
    schedule_interval_seconds: int = field(
        default_factory=lambda: _int_env("SCHEDULE_INTERVAL_SECONDS", 300)
    )

    def __post_init__(self) -> None:
        if self.completion_threshold <= 0:
            logger.warning(
                "COMPLETION_THRESHOLD (%s) must be positive; using %s",
                self.completion_threshold,
                DEFAULT_COMPLETION_THRESHOLD,
            )
            self.completion_threshold = DEFAULT_COMPLETION_THRESHOLD
        if self.schedule_interval_seconds <= 0:
            self.schedule_interval_seconds = 300

    def reload(self) -> None:
        """Reload settings from the current environment."""
        new = type(self)()
        self.__dict__.update(vars(new))


settings = Settings()
