"""Bounded-concurrency work queue over a list of items.

A fixed number of worker coroutines pull the next unclaimed index from a
shared counter. The counter is only touched between awaits, so on a single
event loop each claim is atomic. Results keep input order; a failed item
becomes None without stopping the others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger("enricher.work_queue")

T = TypeVar("T")
R = TypeVar("R")


class BoundedWorkQueue(Generic[T, R]):
    def __init__(self, concurrency: int = 2) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> list[R | None]:
        results: list[R | None] = [None] * len(items)
        next_index = 0
        failures = 0

        async def _worker_loop(worker_id: int) -> None:
            nonlocal next_index, failures
            while next_index < len(items):
                index = next_index
                next_index += 1
                try:
                    results[index] = await worker(items[index])
                except Exception as exc:
                    log.error(
                        "work_item_failed",
                        index=index,
                        worker_id=worker_id,
                        error_type=type(exc).__name__,
                        error=str(exc)[:200],
                    )
                    results[index] = None
                    failures += 1

        num_workers = min(self.concurrency, len(items))
        if num_workers:
            await asyncio.gather(*(_worker_loop(i) for i in range(num_workers)))

        log.info(
            "work_queue_complete",
            total=len(items),
            concurrency=num_workers,
            failed=failures,
        )
        return results


async def process_queue(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = 2,
) -> list[R | None]:
    """Run `worker` over `items` with at most `concurrency` in flight."""
    return await BoundedWorkQueue(concurrency).run(items, worker)
