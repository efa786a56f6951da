"""Process-wide ceiling on concurrent sandbox calls"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from codejudge.assessment import config


class ConcurrencyLimiter:
    """Bounded-capacity resource shared by every dispatcher call site.

    Slots are handed out through ``slot()``, which always releases on exit,
    including when the holder raises.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._semaphore = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._in_use = 0

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    def acquire(self, timeout: Optional[float] = None) -> bool:
        if timeout is not None and timeout <= 0:
            acquired = self._semaphore.acquire(blocking=False)
        else:
            acquired = self._semaphore.acquire(timeout=timeout)
        if acquired:
            with self._lock:
                self._in_use += 1
        return acquired

    def release(self) -> None:
        with self._lock:
            self._in_use -= 1
        self._semaphore.release()

    @contextmanager
    def slot(self, timeout: Optional[float] = None) -> Iterator[bool]:
        """Yields whether a slot was obtained before ``timeout``"""
        acquired = self.acquire(timeout)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


_shared_limiter: Optional[ConcurrencyLimiter] = None
_shared_lock = threading.Lock()


def get_shared_limiter() -> ConcurrencyLimiter:
    """The one limiter every dispatcher in this process uses by default"""
    global _shared_limiter
    with _shared_lock:
        if _shared_limiter is None:
            _shared_limiter = ConcurrencyLimiter(config.JUDGE_MAX_CONCURRENCY)
        return _shared_limiter
