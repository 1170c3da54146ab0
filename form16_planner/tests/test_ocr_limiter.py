"""
OCR limiter tests — ceiling, FIFO hand-over and cancellation.
"""
from __future__ import annotations

import asyncio

import pytest

from form16_planner.agents.input_agent.ocr_limiter import OCRLimiter


@pytest.mark.asyncio
async def test_never_more_than_capacity_running() -> None:
    limiter = OCRLimiter(capacity=2)
    active = 0
    peak = 0

    async def job() -> None:
        nonlocal active, peak
        async with limiter:
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(job() for _ in range(6)))

    assert peak == 2
    assert limiter.running == 0
    assert limiter.waiting == 0


@pytest.mark.asyncio
async def test_waiters_served_in_arrival_order() -> None:
    limiter = OCRLimiter(capacity=1)
    order: list[int] = []

    async def job(n: int) -> None:
        async with limiter:
            order.append(n)
            await asyncio.sleep(0)

    await limiter.acquire()
    tasks = []
    for n in range(4):
        tasks.append(asyncio.create_task(job(n)))
        await asyncio.sleep(0)      # let the task queue before the next one
    assert limiter.waiting == 4

    limiter.release()
    await asyncio.gather(*tasks)
    assert order == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_new_caller_cannot_overtake_queue() -> None:
    limiter = OCRLimiter(capacity=1)
    order: list[str] = []

    async def job(name: str) -> None:
        async with limiter:
            order.append(name)

    await limiter.acquire()
    queued = asyncio.create_task(job("queued"))
    await asyncio.sleep(0)

    limiter.release()               # slot handed to "queued"
    late = asyncio.create_task(job("late"))
    await asyncio.gather(queued, late)
    assert order == ["queued", "late"]


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_queue_without_leaking_slot() -> None:
    limiter = OCRLimiter(capacity=1)
    await limiter.acquire()

    waiter = asyncio.create_task(limiter.acquire())
    await asyncio.sleep(0)
    assert limiter.waiting == 1

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert limiter.waiting == 0

    limiter.release()
    assert limiter.running == 0

    await asyncio.wait_for(limiter.acquire(), timeout=1)
    assert limiter.running == 1
    limiter.release()


@pytest.mark.asyncio
async def test_slot_released_when_body_raises() -> None:
    limiter = OCRLimiter(capacity=1)
    with pytest.raises(RuntimeError):
        async with limiter:
            raise RuntimeError("boom")
    assert limiter.running == 0


def test_release_without_acquire_raises() -> None:
    with pytest.raises(RuntimeError):
        OCRLimiter(capacity=2).release()


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity(capacity: int) -> None:
    with pytest.raises(ValueError):
        OCRLimiter(capacity=capacity)
