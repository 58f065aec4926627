# action_lock_guard/config.py

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

BACKENDS = ("memory", "file", "database")


def env_default(name: str, default: str | None = None) -> str | None:
    """Retrieve env var, returning default if unset or empty."""
    val = os.getenv(name)
    return val if val not in (None, "") else default


def env_bool(name: str, default: bool = False) -> bool:
    """
    Parses an environment variable as a boolean.
    Returns the default value if the variable is unset.
    True values: "1", "true", "t", "yes", "y", "on" (case-insensitive).
    """
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def env_int(name: str, default: int, *, min_value: int = 1) -> int:
    """
    Parses an environment variable as an integer.
    Returns the default value if the variable is unset.
    """
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        val = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got={raw!r}") from e
    if val < min_value:
        raise ValueError(f"{name} must be >= {min_value}, got={val}")
    return val


@dataclass(frozen=True)
class GuardSettings:
    """Immutable container for guard and backend settings."""
    backend: str
    lock_dir: Path
    database_url: str | None
    max_key_length: int
    console_output: bool
    log_category: str


def load_guard_settings() -> GuardSettings:
    """
    Loads guard settings from environment variables.

    - ACTION_GUARD_BACKEND: file (default) | database | memory (single process only)
    - ACTION_GUARD_LOCK_DIR: directory for lock files (file backend)
    - ACTION_GUARD_DATABASE_URL: SQLAlchemy URL (database backend)
    - ACTION_GUARD_MAX_KEY_LENGTH: longest accepted lock key
    - ACTION_GUARD_CONSOLE_OUTPUT: echo guard messages to stdout
    - ACTION_GUARD_LOG_CATEGORY: category attached to forwarded log messages
    """
    backend = (env_default("ACTION_GUARD_BACKEND", "file") or "file").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"ACTION_GUARD_BACKEND must be one of {BACKENDS}, got={backend!r}")

    return GuardSettings(
        backend=backend,
        lock_dir=Path(env_default("ACTION_GUARD_LOCK_DIR", ".locks") or ".locks"),
        database_url=env_default("ACTION_GUARD_DATABASE_URL"),
        max_key_length=env_int("ACTION_GUARD_MAX_KEY_LENGTH", 255, min_value=1),
        console_output=env_bool("ACTION_GUARD_CONSOLE_OUTPUT", default=True),
        log_category=env_default("ACTION_GUARD_LOG_CATEGORY", "action_lock_guard.ActionGuard")
                     or "action_lock_guard.ActionGuard",
    )


def configure_logging(level: str | None = None) -> None:
    """Configure loguru sinks (stderr console, plus a rotating file when LOG_DIR is set)."""
    logger.remove()

    # Console sink
    logger.add(
        sys.stderr,
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        colorize=True,
        backtrace=False,
        diagnose=False,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level}</level> | "
               "<level>{message}</level>",
    )

    log_dir = env_default("LOG_DIR")
    if log_dir is None:
        return

    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)

    # File sink
    logger.add(
        str(path / "action_guard.log"),
        rotation="10 MB",
        retention="7 days",
        level="DEBUG",
        backtrace=False,
        diagnose=False,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
    )
