# tests/conftest.py

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from action_lock_guard.core.action_guard import ActionGuard
from action_lock_guard.locks.memory import InMemoryLockBackend
from action_lock_guard.ports.sink import LogLevel


@dataclass
class RecordingBackend:
    """Memory backend that remembers every call made to it."""
    inner: InMemoryLockBackend = field(default_factory=InMemoryLockBackend)
    acquire_calls: list[tuple[str, float]] = field(default_factory=list)
    release_calls: list[str] = field(default_factory=list)

    def acquire(self, key: str, timeout: float = 0.0) -> bool:
        self.acquire_calls.append((key, timeout))
        return self.inner.acquire(key, timeout)

    def release(self, key: str) -> bool:
        self.release_calls.append(key)
        return self.inner.release(key)


@dataclass
class RecordingSink:
    records: list[tuple[str, LogLevel, str]] = field(default_factory=list)

    def write(self, message: str, level: LogLevel, category: str) -> None:
        self.records.append((message, level, category))

    @property
    def messages(self) -> list[str]:
        return [message for message, _, _ in self.records]


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_guard(backend, sink):
    def _make(**kwargs) -> ActionGuard:
        kwargs.setdefault("backend", backend)
        kwargs.setdefault("sink", sink)
        kwargs.setdefault("console_output", False)
        kwargs.setdefault("log_category", "tests")
        return ActionGuard(**kwargs)

    return _make
