"""Per-question mutual exclusion for choice pool updates.

Two submissions that answer the same gated question must not both read the
pool before either writes it back, otherwise the later write resurrects the
option the earlier one removed.  Every pool read-modify-write therefore runs
while holding the lock keyed by the question id.  Acquisition waits a bounded
time per attempt and backs off exponentially between attempts.
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator

from choice_eliminator.exceptions import PoolLockTimeoutError

logger = logging.getLogger(__name__)


class QuestionLockRegistry:
    """Hands out one lock per key, created on first use."""

    def __init__(
        self,
        timeout: float = 2.0,
        retries: int = 3,
        backoff: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if timeout < 0 or retries < 0 or backoff < 0:
            raise ValueError("timeout, retries and backoff must be non-negative")
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff
        self._sleep = sleep
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for *key* for the duration of the ``with`` block.

        Raises
        ------
        PoolLockTimeoutError
            If the lock is still taken after ``retries + 1`` attempts.
        """
        lock = self._lock_for(key)
        attempts = self._retries + 1
        for attempt in range(attempts):
            if lock.acquire(timeout=self._timeout):
                break
            if attempt + 1 < attempts:
                delay = self._backoff * (2**attempt)
                logger.debug(
                    "Lock for %s busy (attempt %d/%d); retrying in %.3fs",
                    key,
                    attempt + 1,
                    attempts,
                    delay,
                )
                self._sleep(delay)
        else:
            raise PoolLockTimeoutError(key, attempts)

        try:
            yield
        finally:
            lock.release()
