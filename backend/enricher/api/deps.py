"""FastAPI dependencies: per-request access to the shared HTTP client and pipeline."""

from __future__ import annotations

import httpx
from fastapi import Depends, Request

from enricher.config import settings
from enricher.pipeline.enrich import EnrichmentPipeline
from enricher.runner import build_pipeline
from enricher.utils.shopify import ShopifyCatalog


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_catalog(http_client: httpx.AsyncClient = Depends(get_http_client)) -> ShopifyCatalog:
    return ShopifyCatalog(http_client, settings)


def get_pipeline(
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> EnrichmentPipeline:
    return build_pipeline(settings, http_client)
