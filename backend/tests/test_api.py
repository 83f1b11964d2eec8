"""Tests for the HTTP surface: health, product listing, categorize, error shapes."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from enricher.api.deps import get_catalog, get_pipeline
from enricher.main import app
from enricher.models.contracts import Classification, EnrichedProduct, Product
from enricher.pipeline.classify import GenerativeClassifier
from enricher.pipeline.enrich import EnrichmentPipeline
from enricher.pipeline.taxonomy import TaxonomyMatcher


class _FakeCatalog:
    def __init__(self, products: list[Product] | None = None, fail_ids: set[int] | None = None):
        self.products = products or []
        self.fail_ids = fail_ids or set()
        self.updates: list[EnrichedProduct] = []

    async def fetch_products(self, limit: int = 50) -> list[Product]:
        return self.products[:limit]

    async def update_product(self, product: EnrichedProduct):
        self.updates.append(product)
        return None if product.id in self.fail_ids else {"id": product.id}


def _pipeline() -> tuple[EnrichmentPipeline, MagicMock]:
    classifier = MagicMock(spec=GenerativeClassifier)
    classifier.classify = AsyncMock(
        return_value=Classification(
            main_category="Home Improvement", sub_category="Tools", age_group="All Ages"
        )
    )
    return EnrichmentPipeline(TaxonomyMatcher(), classifier, None), classifier


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_returns_200(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"] == "0.1.0"
        assert "environment" in body

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, client):
        resp = await client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 36


class TestListProducts:
    @pytest.mark.asyncio
    async def test_lists_catalog_products(self, client):
        catalog = _FakeCatalog([Product(id=1, title="Blue Mens Shirt", tags=["new"])])
        app.dependency_overrides[get_catalog] = lambda: catalog

        resp = await client.get("/api/v1/products", params={"limit": 5})

        assert resp.status_code == 200
        assert resp.json() == [
            {"id": 1, "title": "Blue Mens Shirt", "body_html": None, "tags": ["new"]}
        ]

    @pytest.mark.asyncio
    async def test_unreachable_catalog_lists_nothing(self, client):
        app.dependency_overrides[get_catalog] = lambda: _FakeCatalog([])
        resp = await client.get("/api/v1/products")
        assert resp.status_code == 200
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_limit_out_of_range_is_validation_error(self, client):
        app.dependency_overrides[get_catalog] = lambda: _FakeCatalog([])
        resp = await client.get("/api/v1/products", params={"limit": 0})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "validation_error"
        assert "limit" in body["message"]
        assert body["retryable"] is False


class TestCategorize:
    @pytest.mark.asyncio
    async def test_enriches_and_writes(self, client):
        catalog = _FakeCatalog()
        pipeline, classifier = _pipeline()
        app.dependency_overrides[get_catalog] = lambda: catalog
        app.dependency_overrides[get_pipeline] = lambda: pipeline

        resp = await client.post(
            "/api/v1/categorize",
            json={
                "products": [
                    {"id": 1, "title": "Blue Mens Shirt"},
                    {"id": 2, "title": "Quantum Flux Capacitor", "body_html": "<p>88mph</p>"},
                ]
            },
        )

        assert resp.status_code == 200
        body = resp.json()
        assert [p["tags"] for p in body["products"]] == [
            ["Men", "Shirts", "Adult"],
            ["Home Improvement", "Tools", "All Ages"],
        ]
        assert [o["status"] for o in body["outcomes"]] == ["updated", "updated"]
        assert sorted(p.id for p in catalog.updates) == [1, 2]
        assert classifier.classify.await_count == 1

    @pytest.mark.asyncio
    async def test_write_failure_reported_in_outcomes(self, client):
        catalog = _FakeCatalog(fail_ids={1})
        pipeline, _ = _pipeline()
        app.dependency_overrides[get_catalog] = lambda: catalog
        app.dependency_overrides[get_pipeline] = lambda: pipeline

        resp = await client.post(
            "/api/v1/categorize", json={"products": [{"id": 1, "title": "Kids Toys"}]}
        )

        assert resp.status_code == 200
        outcome = resp.json()["outcomes"][0]
        assert outcome["product_id"] == 1
        assert outcome["status"] == "failed"

    @pytest.mark.asyncio
    async def test_missing_products_is_validation_error(self, client):
        app.dependency_overrides[get_catalog] = lambda: _FakeCatalog()
        app.dependency_overrides[get_pipeline] = lambda: _pipeline()[0]
        resp = await client.post("/api/v1/categorize", json={})
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"


class TestUnhandledErrors:
    @pytest.mark.asyncio
    async def test_unexpected_exception_returns_error_response(self):
        class _ExplodingCatalog(_FakeCatalog):
            async def fetch_products(self, limit: int = 50) -> list[Product]:
                raise RuntimeError("boom")

        app.dependency_overrides[get_catalog] = lambda: _ExplodingCatalog()
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        try:
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
                resp = await c.get("/api/v1/products")
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 500
        assert resp.json() == {
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        }
