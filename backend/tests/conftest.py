"""Shared fixtures: in-process API client and test settings."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from enricher.config import Settings
from enricher.main import app


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's .env and environment."""
    return Settings(
        _env_file=None,
        shopify_domain="test-shop.myshopify.com",
        shopify_api_version="2025-01",
        shopify_admin_api_access_token="shpat_test",
        anthropic_api_key="sk-ant-test",
        unsplash_access_key="unsplash-test",
        classifier_models=["primary-model", "fallback-model"],
        classifier_max_attempts=3,
        classifier_backoff_base_seconds=10.0,
        enrich_max_attempts=3,
        enrich_retry_delay_seconds=5.0,
    )


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
