# action_lock_guard/ports/context.py

from __future__ import annotations

from typing import Protocol


class OperationContext(Protocol):
    route: str | None
    proceed: bool
