"""Fixed-size batch writer for enriched products.

Products accumulate until the batch is full, then every member is written
concurrently and the whole round is awaited before the next one starts.
Each write gets its own UpdateOutcome; a failed member never fails its
siblings or the run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import structlog

from enricher.models.contracts import BatchReport, EnrichedProduct, UpdateOutcome

log = structlog.get_logger("enricher.batch")

WriteFn = Callable[[EnrichedProduct], Awaitable[Any]]


class BatchUpdater:
    def __init__(self, write: WriteFn, batch_size: int = 5) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._write = write
        self.batch_size = batch_size
        self._pending: list[EnrichedProduct] = []
        self.report = BatchReport()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def add(self, product: EnrichedProduct) -> list[UpdateOutcome]:
        """Stage one product; writes the batch when it reaches batch_size.

        Returns the outcomes of the round this call triggered, else [].
        """
        self._pending.append(product)
        if len(self._pending) >= self.batch_size:
            return await self._write_round()
        return []

    async def flush(self) -> list[UpdateOutcome]:
        """Write whatever is staged, even a partial batch."""
        if not self._pending:
            return []
        return await self._write_round()

    async def update_all(self, products: Iterable[EnrichedProduct]) -> BatchReport:
        for product in products:
            await self.add(product)
        await self.flush()
        return self.report

    async def _write_round(self) -> list[UpdateOutcome]:
        batch, self._pending = self._pending, []
        self.report.rounds += 1
        round_number = self.report.rounds

        raw_results = await asyncio.gather(
            *(self._write(p) for p in batch),
            return_exceptions=True,
        )

        outcomes: list[UpdateOutcome] = []
        for product, result in zip(batch, raw_results, strict=True):
            if isinstance(result, BaseException):
                log.warning(
                    "batch_write_raised",
                    product_id=product.id,
                    round=round_number,
                    error_type=type(result).__name__,
                    error=str(result)[:200],
                )
                outcomes.append(
                    UpdateOutcome(product_id=product.id, status="failed", error=str(result)[:200])
                )
            elif result is None:
                log.warning("batch_write_rejected", product_id=product.id, round=round_number)
                outcomes.append(
                    UpdateOutcome(
                        product_id=product.id, status="failed", error="catalog rejected update"
                    )
                )
            else:
                outcomes.append(UpdateOutcome(product_id=product.id, status="updated"))

        failed = sum(1 for o in outcomes if o.status == "failed")
        log.info(
            "batch_round_complete",
            round=round_number,
            size=len(batch),
            updated=len(batch) - failed,
            failed=failed,
        )
        self.report.outcomes.extend(outcomes)
        return outcomes
