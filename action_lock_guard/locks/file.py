# action_lock_guard/locks/file.py

from __future__ import annotations

import errno
import fcntl
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from action_lock_guard.ports.lock import LockBackend
from action_lock_guard.utils.keys import lock_file_name


@dataclass(frozen=True)
class FileLockBackend(LockBackend):
    """
    Cross-process lock backend based on `fcntl.flock`.

    Notes:
    - One lock file per key inside `lock_dir`; files are left in place after release.
    - The file descriptor stays open while the lock is held; the kernel drops
      the lock if the process dies.
    - Works on local filesystems. Not suited for shared network storage.
    """
    lock_dir: Path
    poll_s: float = 0.05

    _handles: dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)
    _mutex: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lock_dir", Path(self.lock_dir))
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.lock_dir / lock_file_name(key)

    def _try_acquire(self, key: str) -> bool:
        with self._mutex:
            # flock is per open file description, guard against re-entry here
            if key in self._handles:
                return False

            fd = os.open(self.path_for(key), os.O_RDWR | os.O_CREAT, 0o644)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError as e:
                os.close(fd)
                if e.errno in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                    return False
                raise

            self._handles[key] = fd
            return True

    def acquire(self, key: str, timeout: float = 0.0) -> bool:
        if not key:
            return False

        deadline = time.monotonic() + max(timeout, 0.0)

        while True:
            try:
                if self._try_acquire(key):
                    logger.debug(f"File lock acquired: {key}")
                    return True
            except OSError as e:
                logger.warning(f"Failed to acquire file lock '{key}': {e}")
                return False

            if time.monotonic() >= deadline:
                return False

            time.sleep(self.poll_s)

    def release(self, key: str) -> bool:
        with self._mutex:
            fd = self._handles.pop(key, None)
            if fd is None:
                return False

            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            except OSError as e:
                logger.warning(f"Failed to release file lock '{key}': {e}")
                return False
            finally:
                os.close(fd)

        logger.debug(f"File lock released: {key}")
        return True

    def close(self) -> None:
        """Release every lock held by this backend."""
        for key in list(self._handles):
            self.release(key)
