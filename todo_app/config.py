"""
Service configuration, read once from the environment at startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    credentials_path: Optional[str] = None
    emulator_host: Optional[str] = None
    project_id: str = "demo-todo"
    database: str = "(default)"
    collection: str = "todo"
    host: str = "0.0.0.0"
    port: int = 9000
    shutdown_grace: int = 5
    idle_timeout: int = 60
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.collection:
            raise ValueError("TODO_COLLECTION must not be empty.")
        if not self.database:
            raise ValueError("TODO_DATABASE must not be empty.")
        if not 0 < self.port < 65536:
            raise ValueError(f"PORT must be between 1 and 65535, got {self.port}")
        if self.shutdown_grace < 0:
            raise ValueError("TODO_SHUTDOWN_GRACE must not be negative.")
        if self.idle_timeout < 0:
            raise ValueError("TODO_IDLE_TIMEOUT must not be negative.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {self.log_level!r}")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None,
            emulator_host=os.getenv("FIRESTORE_EMULATOR_HOST") or None,
            project_id=os.getenv("TODO_PROJECT_ID", "demo-todo"),
            database=os.getenv("TODO_DATABASE", "(default)"),
            collection=os.getenv("TODO_COLLECTION", "todo"),
            host=os.getenv("TODO_HOST", "0.0.0.0"),
            port=_int_env("PORT", 9000),
            shutdown_grace=_int_env("TODO_SHUTDOWN_GRACE", 5),
            idle_timeout=_int_env("TODO_IDLE_TIMEOUT", 60),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
