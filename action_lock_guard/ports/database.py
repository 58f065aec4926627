# action_lock_guard/ports/database.py

from __future__ import annotations

from typing import Protocol

from sqlalchemy.engine import Connection, Engine


class Database(Protocol):
    engine: Engine

    @property
    def dialect_name(self) -> str: ...

    def connect(self) -> Connection: ...
