# action_lock_guard/locks/memory.py

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from loguru import logger

from action_lock_guard.ports.lock import LockBackend


@dataclass(frozen=True)
class InMemoryLockBackend(LockBackend):
    """
    Process-local lock backend.

    Notes:
    - Shared by every guard of the process that is given the same instance.
    - `timeout > 0` polls until the key frees up or the deadline passes.
    """
    poll_s: float = 0.05

    _held: set[str] = field(default_factory=set, init=False, repr=False, compare=False)
    _mutex: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def _try_acquire(self, key: str) -> bool:
        with self._mutex:
            if key in self._held:
                return False
            self._held.add(key)
            return True

    def acquire(self, key: str, timeout: float = 0.0) -> bool:
        if not key:
            return False

        deadline = time.monotonic() + max(timeout, 0.0)

        while True:
            if self._try_acquire(key):
                logger.debug(f"Memory lock acquired: {key}")
                return True

            if time.monotonic() >= deadline:
                return False

            time.sleep(self.poll_s)

    def release(self, key: str) -> bool:
        with self._mutex:
            if key not in self._held:
                return False
            self._held.discard(key)

        logger.debug(f"Memory lock released: {key}")
        return True

    def is_locked(self, key: str) -> bool:
        with self._mutex:
            return key in self._held
