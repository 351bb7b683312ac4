"""Counting admission gate for concurrent backend calls."""

from __future__ import annotations

import asyncio
import threading

MAX_CONCURRENT_REQUESTS = 3


class ConcurrencyLimiter:
    """At most ``permits`` holders at a time; waiters are admitted in FIFO order.

    Bound to the event loop that first waits on it, so create one per dispatch.
    """

    def __init__(self, permits: int = MAX_CONCURRENT_REQUESTS) -> None:
        if permits < 1:
            raise ValueError("permits must be at least 1")
        self.permits = permits
        self._semaphore = asyncio.Semaphore(permits)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        with self._lock:
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        with self._lock:
            if self._in_flight == 0:
                raise RuntimeError("release() called more times than acquire()")
            self._in_flight -= 1
        self._semaphore.release()

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.release()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak(self) -> int:
        return self._peak
