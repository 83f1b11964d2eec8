"""Batch enrichment driver and CLI entrypoint.

Run locally with:
    python -m enricher.runner --limit 50 --batch-size 5

Fetches products from Shopify, enriches them through a bounded work queue,
writes them back in fixed-size rounds and records the written IDs in the
progress checkpoint. Per-product failures never change the exit code; an
exception escaping the run exits 1 and an interrupted run exits 130.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass

import anthropic
import httpx
import structlog

from enricher.config import Settings, settings
from enricher.logging import configure_logging
from enricher.models.contracts import EnrichedProduct, Product, RunSummary
from enricher.pipeline.batch import BatchUpdater
from enricher.pipeline.classify import GenerativeClassifier
from enricher.pipeline.enrich import EnrichmentPipeline
from enricher.pipeline.images import ImageResolver
from enricher.pipeline.taxonomy import TaxonomyMatcher, TaxonomyTable
from enricher.utils.progress import load_progress, merge_completed, save_progress
from enricher.utils.shopify import ShopifyCatalog
from enricher.utils.work_queue import BoundedWorkQueue

logger = structlog.get_logger()


@dataclass
class RunOptions:
    limit: int
    batch_size: int
    concurrency: int
    use_progress: bool = True


def build_pipeline(config: Settings, http_client: httpx.AsyncClient) -> EnrichmentPipeline:
    """Wire the matcher, classifier and image resolver from configuration.

    Without an Anthropic key the generative fallback is disabled; without an
    Unsplash key no images are looked up.
    """
    table = TaxonomyTable()
    classifier = None
    if config.anthropic_api_key:
        classifier = GenerativeClassifier(
            anthropic.AsyncAnthropic(api_key=config.anthropic_api_key),
            config,
            table,
        )
    else:
        logger.warning("generative_classifier_disabled", reason="ANTHROPIC_API_KEY not set")

    images = None
    if config.unsplash_access_key:
        images = ImageResolver(http_client, config.unsplash_access_key)
    else:
        logger.warning("image_resolver_disabled", reason="UNSPLASH_ACCESS_KEY not set")

    return EnrichmentPipeline(
        TaxonomyMatcher(table),
        classifier,
        images,
        max_attempts=config.enrich_max_attempts,
        retry_delay=config.enrich_retry_delay_seconds,
    )


async def enrich_and_update(
    products: list[Product],
    pipeline: EnrichmentPipeline,
    catalog: ShopifyCatalog,
    batch_size: int,
    concurrency: int,
) -> tuple[list[EnrichedProduct], BatchUpdater]:
    """Enrich `products` (bounded concurrency), then write them in batches."""
    queue: BoundedWorkQueue[Product, EnrichedProduct] = BoundedWorkQueue(concurrency)
    results = await queue.run(products, pipeline.enrich)
    enriched = [e for e in results if e is not None]

    updater = BatchUpdater(catalog.update_product, batch_size)
    await updater.update_all(enriched)
    return enriched, updater


async def run_enrichment(config: Settings, options: RunOptions) -> RunSummary:
    """One full pass: fetch, skip already-completed, enrich, write, checkpoint."""
    summary = RunSummary()
    progress = load_progress(config.progress_file) if options.use_progress else None
    completed = set(progress.completed) if progress else set()

    logger.info(
        "run_start",
        limit=options.limit,
        batch_size=options.batch_size,
        concurrency=options.concurrency,
        previously_completed=len(completed),
    )

    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as http_client:
        catalog = ShopifyCatalog(http_client, config)
        products = await catalog.fetch_products(options.limit)
        summary.fetched = len(products)

        pending = [p for p in products if p.id not in completed]
        summary.skipped = len(products) - len(pending)
        if not pending:
            logger.info("run_nothing_to_do", fetched=summary.fetched, skipped=summary.skipped)
            return summary

        pipeline = build_pipeline(config, http_client)
        enriched, updater = await enrich_and_update(
            pending, pipeline, catalog, options.batch_size, options.concurrency
        )

    report = updater.report
    summary.enriched = len(enriched)
    summary.updated = len(report.updated_ids)
    summary.failed = report.failed_count + (len(pending) - len(enriched))
    summary.rounds = report.rounds

    if progress is not None:
        save_progress(config.progress_file, merge_completed(progress, report.updated_ids))

    logger.info("run_complete", **summary.model_dump())
    return summary


def parse_args(argv: list[str] | None, config: Settings) -> RunOptions:
    parser = argparse.ArgumentParser(
        prog="catalog-enricher",
        description="Classify, tag and illustrate Shopify products in batches.",
    )
    parser.add_argument(
        "--limit", type=int, default=config.default_limit, help="Products to fetch"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=config.default_batch_size,
        help="Catalog writes issued concurrently per round",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=config.default_concurrency,
        help="Products enriched in parallel",
    )
    parser.add_argument(
        "--ignore-progress",
        action="store_true",
        help="Process every fetched product and leave the checkpoint untouched",
    )
    args = parser.parse_args(argv)

    for name in ("limit", "batch_size", "concurrency"):
        if getattr(args, name) < 1:
            parser.error(f"--{name.replace('_', '-')} must be >= 1")

    return RunOptions(
        limit=args.limit,
        batch_size=args.batch_size,
        concurrency=args.concurrency,
        use_progress=not args.ignore_progress,
    )


def main(argv: list[str] | None = None) -> None:
    """Entrypoint for `python -m enricher.runner` and `catalog-enricher`."""
    options = parse_args(argv, settings)
    configure_logging(settings)
    try:
        asyncio.run(run_enrichment(settings, options))
    except KeyboardInterrupt:
        # progress is only saved at the end of a run, so nothing was checkpointed
        logger.warning("run_interrupted")
        sys.exit(130)
    except Exception:
        logger.exception("run_fatal_error")
        sys.exit(1)


if __name__ == "__main__":
    main()
