# action_lock_guard/core/action_guard.py

from __future__ import annotations

import random
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, TypeVar

import click
from loguru import logger

from action_lock_guard.ports.context import OperationContext
from action_lock_guard.ports.lock import LockBackend
from action_lock_guard.ports.sink import LogLevel, Sink

T = TypeVar("T")

# Either a fixed key or a function deriving the key from the context
KeySource = str | Callable[[Any], str | None] | None

# MySQL GET_LOCK limit
KEY_LENGTH_LIMIT = 255

TOKEN_MIN = 1
TOKEN_MAX = 1000 * 1000


@dataclass(frozen=True)
class LockTicket:
    """Key and token of one guarded execution."""
    key: str | None
    token: int | None


@dataclass(frozen=True)
class ActionGuard:
    """
    Prevents two executions of the same operation from running at the same time.

    A dispatcher calls `before_action` before running the operation and
    `after_action` once it is done. The lock is taken with a single
    non-blocking attempt; when it is already held the context's `proceed`
    flag is set to False and the operation must not run.

    Notes:
    - The key is derived per call from `key` (fixed string or callable) or
      from `context.route` when `key` is not configured.
    - Tickets of running executions are tracked per context, so one guard can
      serve overlapping operations and only ever releases what it acquired.
    - The ticket table holds the context itself until release, so a context
      dropped without `after_action` is still freed by `close()`.
    - Every failure is reported through the return value and the sink, never
      by raising.
    """
    backend: LockBackend | None
    key: KeySource = None
    max_key_length: int = KEY_LENGTH_LIMIT
    console_output: bool = True
    sink: Sink | None = None
    log_category: str = "action_lock_guard.ActionGuard"

    # id(context) -> (context, ticket); the context reference keeps its id from being reused
    _tickets: dict[int, tuple[OperationContext, LockTicket]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _tickets_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_key_length < 1:
            raise ValueError(f"max_key_length must be >= 1, got={self.max_key_length}")

    def __enter__(self) -> ActionGuard:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __del__(self) -> None:
        # Last resort only: sinks may already be gone, so stay silent
        if getattr(self, "_tickets", None):
            self.release_all(verbose=False)

    # ------------------------------------------------------------------

    def derive_key(self, context: OperationContext) -> str | None:
        if callable(self.key):
            return self.key(context)
        if self.key is not None:
            return self.key
        # Route of the operation by default
        return getattr(context, "route", None)

    def held_key(self, context: OperationContext) -> str | None:
        """Key currently locked on behalf of `context`, if any."""
        with self._tickets_lock:
            entry = self._tickets.get(id(context))
        return entry[1].key if entry else None

    def before_action(self, context: OperationContext) -> bool:
        if not context.proceed:
            logger.debug("Operation already rejected, lock not attempted")
            return False

        held = self.held_key(context)
        if held is not None:
            self.log(f"Operation already holds key `{held}`", LogLevel.INFO)
            context.proceed = False
            return False

        key = self.derive_key(context)

        if key is not None and len(key) > self.max_key_length:
            self.log(f"Key length must be smaller than {self.max_key_length} symbols", LogLevel.INFO)
            context.proceed = False
            return False

        ticket = LockTicket(key=key, token=random.randint(TOKEN_MIN, TOKEN_MAX))

        if not self.lock(ticket):
            self.log("Cannot lock key record", LogLevel.INFO)
            context.proceed = False
            return False

        # Rejected by a collaborator while the key was derived: do not keep the lock
        if not context.proceed:
            self.free(ticket.key)
            return False

        with self._tickets_lock:
            self._tickets[id(context)] = (context, ticket)

        return context.proceed

    def after_action(self, context: OperationContext) -> bool:
        with self._tickets_lock:
            entry = self._tickets.pop(id(context), None)

        self.free(entry[1].key if entry else None)

        return context.proceed

    def lock(self, ticket: LockTicket) -> bool:
        if not ticket.key or not ticket.token:
            self.log("Key and token cannot be empty", LogLevel.INFO)
            return False

        if self.backend is None:
            return True

        locked = bool(self.backend.acquire(ticket.key, 0))

        if not locked:
            self.log(f"Key `{ticket.key}` already locked", LogLevel.INFO)

        return locked

    def free(self, key: str | None, verbose: bool = True) -> bool:
        if self.backend is None:
            return True

        freed = bool(self.backend.release(key)) if key else False

        if verbose and not freed:
            self.log(f"Cannot free key `{key}` from source", LogLevel.INFO)

        return freed

    def release_all(self, verbose: bool = False) -> bool:
        """Free every key still held by this guard."""
        with self._tickets_lock:
            tickets = [ticket for _, ticket in self._tickets.values()]
            self._tickets.clear()

        freed = True
        for ticket in tickets:
            freed = self.free(ticket.key, verbose=verbose) and freed
        return freed

    def close(self) -> None:
        self.release_all(verbose=False)

    # ------------------------------------------------------------------

    @contextmanager
    def guarded(self, context: OperationContext) -> Iterator[bool]:
        """
        Scoped form of before/after: yields whether the operation may run and
        releases the lock on exit, including when the body raises.
        """
        allowed = self.before_action(context)
        try:
            yield allowed
        finally:
            if allowed:
                self.after_action(context)

    def run(
            self,
            context: OperationContext,
            operation: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T | None:
        """Run `operation` under the lock; returns None when the guard rejected it."""
        with self.guarded(context) as allowed:
            if not allowed:
                return None
            return operation(*args, **kwargs)

    def log(self, message: str, level: LogLevel) -> None:
        if self.console_output:
            click.echo(message)

        if self.sink is None:
            return

        self.sink.write(message, level, self.log_category)
