"""Catalog endpoints: list products and categorize an ad-hoc selection."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query

from enricher.api.deps import get_catalog, get_pipeline
from enricher.config import settings
from enricher.models.contracts import CategorizeRequest, CategorizeResponse, Product
from enricher.pipeline.enrich import EnrichmentPipeline
from enricher.runner import enrich_and_update
from enricher.utils.shopify import ShopifyCatalog

logger = structlog.get_logger()

router = APIRouter(tags=["products"])


@router.get("/products", response_model=list[Product])
async def list_products(
    limit: int = Query(default=50, ge=1, le=250),
    catalog: ShopifyCatalog = Depends(get_catalog),
) -> list[Product]:
    """Products straight from the catalog. An unreachable catalog yields []."""
    return await catalog.fetch_products(limit)


@router.post("/categorize", response_model=CategorizeResponse)
async def categorize_products(
    body: CategorizeRequest,
    catalog: ShopifyCatalog = Depends(get_catalog),
    pipeline: EnrichmentPipeline = Depends(get_pipeline),
) -> CategorizeResponse:
    """Enrich the posted products and write them back to the catalog.

    Per-product write failures are reported in `outcomes`, not as an HTTP error.
    """
    logger.info("categorize_request", count=len(body.products))
    enriched, updater = await enrich_and_update(
        body.products,
        pipeline,
        catalog,
        batch_size=settings.default_batch_size,
        concurrency=settings.default_concurrency,
    )
    return CategorizeResponse(products=enriched, outcomes=updater.report.outcomes)
