# action_lock_guard/db/lock.py

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import ClassVar

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from action_lock_guard.ports.database import Database
from action_lock_guard.ports.lock import LockBackend


@dataclass(frozen=True)
class AdvisoryLockBackend(LockBackend):
    """
    Lock backend on top of database session locks.

    Notes:
    - PostgreSQL uses `pg_try_advisory_lock` with a hashed string key,
      MySQL uses `GET_LOCK` with a zero wait.
    - Session locks belong to the connection, so one connection is kept open
      per held key and the unlock runs on that same connection.
    - Database errors are logged and reported as a failed acquire/release.
    """
    db: Database
    poll_s: float = 0.2

    _STATEMENTS: ClassVar[dict[str, tuple[str, str]]] = {
        "postgresql": (
            "SELECT pg_try_advisory_lock(hashtext(:k)::bigint)",
            "SELECT pg_advisory_unlock(hashtext(:k)::bigint)",
        ),
        "mysql": (
            "SELECT GET_LOCK(:k, 0)",
            "SELECT RELEASE_LOCK(:k)",
        ),
    }

    _connections: dict[str, Connection] = field(default_factory=dict, init=False, repr=False, compare=False)
    _mutex: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.db.dialect_name not in self._STATEMENTS:
            raise ValueError(f"Unsupported database dialect for advisory locks: {self.db.dialect_name!r}")

    def _lock_sql(self) -> TextClause:
        return text(self._STATEMENTS[self.db.dialect_name][0])

    def _unlock_sql(self) -> TextClause:
        return text(self._STATEMENTS[self.db.dialect_name][1])

    def _try_acquire(self, key: str) -> bool:
        with self._mutex:
            # Session locks are re-entrant in both databases; refuse a second hold here
            if key in self._connections:
                return False

            conn = self.db.connect()
            try:
                is_acquired = bool(conn.execute(self._lock_sql(), {"k": key}).scalar())
                # Do not leave the session idle in transaction while the lock is held
                conn.commit()
            except BaseException:
                conn.close()
                raise

            if not is_acquired:
                conn.close()
                return False

            self._connections[key] = conn
            return True

    def acquire(self, key: str, timeout: float = 0.0) -> bool:
        if not key:
            return False

        start_time = time.monotonic()

        # Polling loop: try to acquire the lock non-blockingly
        while True:
            try:
                if self._try_acquire(key):
                    logger.debug(f"Advisory lock acquired: {key}")
                    return True
            except SQLAlchemyError as e:
                logger.warning(f"Failed to acquire advisory lock '{key}': {e}")
                return False

            if (time.monotonic() - start_time) >= timeout:
                return False

            time.sleep(self.poll_s)

    def release(self, key: str) -> bool:
        with self._mutex:
            conn = self._connections.pop(key, None)

        if conn is None:
            return False

        # Always release using the same connection that took the lock
        try:
            freed = bool(conn.execute(self._unlock_sql(), {"k": key}).scalar())
            conn.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Failed to release advisory lock '{key}': {e}")
            return False
        finally:
            conn.close()

        if freed:
            logger.debug(f"Advisory lock released: {key}")
        return freed

    def close(self) -> None:
        """Release every lock held by this backend and return its connections."""
        for key in list(self._connections):
            self.release(key)
