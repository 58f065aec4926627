# action_lock_guard/ports/lock.py

from __future__ import annotations

from typing import Protocol


class LockBackend(Protocol):
    def acquire(self, key: str, timeout: float = 0.0) -> bool: ...
    def release(self, key: str) -> bool: ...
