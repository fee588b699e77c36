"""Fixed-size batches: sequential across batches, concurrent within one."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive chunks of ``size`` (last may be smaller)."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_batches(
    items: Sequence[T],
    batch_size: int,
    work: Callable[[T], Awaitable[object]],
    on_batch_start: Callable[[list[T]], None] | None = None,
    inter_batch_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[int]:
    """Run ``work`` for every item, at most ``batch_size`` at a time.

    Each batch starts only after the previous one has fully settled, and
    ``on_batch_start`` sees the whole batch before any of its work begins.
    An exception from one item is logged and does not cancel the others.
    Returns the size of each batch that ran.
    """
    batches = chunked(items, batch_size)
    sizes: list[int] = []

    for index, batch in enumerate(batches):
        if on_batch_start is not None:
            on_batch_start(batch)

        logger.debug("Batch %d/%d: %d items", index + 1, len(batches), len(batch))
        outcomes = await asyncio.gather(
            *(work(item) for item in batch),
            return_exceptions=True,
        )
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Unhandled error in batch work for %r: %s", item, outcome)
        sizes.append(len(batch))

        # Courtesy pause for the upstream service
        if index < len(batches) - 1:
            await sleep(inter_batch_delay)

    return sizes
