"""
ocr_limiter.py — process-wide OCR concurrency limiter.

Counting semaphore with a FIFO wait queue. Create ONE instance at process
start (see main.create_pipeline) and inject it into every OCRService; never
instantiate at module level — asyncio objects must be created inside the
running event loop.

    limiter = OCRLimiter(capacity=2)
    async with limiter:
        ...  # at most `capacity` bodies run at once
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque

logger = logging.getLogger(__name__)


class OCRLimiter:
    """
    FIFO counting semaphore.

    release() hands a freed slot directly to the oldest waiter, so a newly
    arriving caller can never overtake a queued one.
    """

    def __init__(self, capacity: int = 2) -> None:
        if capacity < 1:
            raise ValueError(f"OCRLimiter capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._running = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def running(self) -> int:
        """Slots currently held."""
        return self._running

    @property
    def waiting(self) -> int:
        """Callers queued for a slot."""
        return sum(1 for fut in self._waiters if not fut.done())

    async def acquire(self) -> None:
        if self._running < self._capacity and not self._waiters:
            self._running += 1
            return

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        logger.debug(
            "OCR slot busy — queued (running=%d waiting=%d)",
            self._running,
            len(self._waiters),
        )
        try:
            await fut
        except asyncio.CancelledError:
            if fut.cancelled():
                # Cancelled while still queued: drop out of the line
                try:
                    self._waiters.remove(fut)
                except ValueError:
                    pass
            else:
                # Slot was handed over just as we were cancelled: pass it on
                self.release()
            raise

    def release(self) -> None:
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                # Running count is unchanged: the slot moves to the waiter
                fut.set_result(None)
                return
        if self._running == 0:
            raise RuntimeError("OCRLimiter.release() called more times than acquire()")
        self._running -= 1

    async def __aenter__(self) -> "OCRLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
