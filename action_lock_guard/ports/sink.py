# action_lock_guard/ports/sink.py

from __future__ import annotations

from enum import Enum
from typing import Protocol


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Sink(Protocol):
    def write(self, message: str, level: LogLevel, category: str) -> None: ...
