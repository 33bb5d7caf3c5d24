"""
Helpers for bounded asynchronous fan-out.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    processor: Callable[[T], Awaitable[R]],
    max_concurrent: int = 5,
) -> List[R]:
    """
    Run ``processor`` over every item with at most ``max_concurrent`` in flight.

    Results keep the order of ``items``. The processor is expected to turn its
    own failures into values; an exception here aborts the whole gather.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrent))

    async def process_with_semaphore(item: T) -> R:
        async with semaphore:
            return await processor(item)

    return list(await asyncio.gather(*[process_with_semaphore(item) for item in items]))


async def run_with_deadline(coro: Awaitable[T], deadline: Optional[float]) -> T:
    """
    Await ``coro``, cancelling it after ``deadline`` seconds.

    Raises ``asyncio.TimeoutError`` when the deadline passes.
    """
    if deadline is None:
        return await coro
    return await asyncio.wait_for(coro, timeout=deadline)
