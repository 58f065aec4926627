# action_lock_guard/utils/sinks.py

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from action_lock_guard.ports.sink import LogLevel, Sink


@dataclass(frozen=True)
class LoguruSink(Sink):
    """Forwards guard messages to loguru, tagged with the guard's category."""

    def write(self, message: str, level: LogLevel, category: str) -> None:
        logger.bind(category=category).log(LogLevel(level).value, message)


@dataclass(frozen=True)
class NullSink(Sink):
    def write(self, message: str, level: LogLevel, category: str) -> None:
        return
