"""Shopify Admin REST client: reads products and writes enrichment results.

Both calls absorb their own failures: a failed read yields an empty list
and a failed write yields None, so one bad response never stops a run.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from enricher.config import Settings
from enricher.models.contracts import EnrichedProduct, Product

log = structlog.get_logger("enricher.shopify")


def build_update_payload(product: EnrichedProduct) -> dict[str, Any]:
    """Shopify PUT body: tags as a comma-joined string, image list or []."""
    return {
        "product": {
            "id": product.id,
            "title": product.title,
            "tags": ", ".join(product.tags),
            "images": [product.image.model_dump()] if product.image else [],
        }
    }


class ShopifyCatalog:
    def __init__(self, http_client: httpx.AsyncClient, settings: Settings) -> None:
        self._http = http_client
        self._base_url = (
            f"https://{settings.shopify_domain}/admin/api/{settings.shopify_api_version}"
        )
        self._headers = {
            "X-Shopify-Access-Token": settings.shopify_admin_api_access_token,
            "Content-Type": "application/json",
        }
        self._timeout = settings.http_timeout_seconds

    async def fetch_products(self, limit: int = 50) -> list[Product]:
        """Read up to `limit` products. Returns [] on any transport or API error."""
        url = f"{self._base_url}/products.json"
        try:
            resp = await self._http.get(
                url, params={"limit": limit}, headers=self._headers, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            log.error("shopify_fetch_error", error_type=type(exc).__name__, error=str(exc)[:200])
            return []

        if not resp.is_success:
            log.error("shopify_fetch_failed", status=resp.status_code, body=resp.text[:200])
            return []

        try:
            raw = resp.json().get("products") or []
        except (ValueError, AttributeError) as exc:
            log.error("shopify_fetch_bad_body", error=str(exc)[:200])
            return []

        products: list[Product] = []
        for item in raw:
            try:
                products.append(Product.model_validate(item))
            except ValidationError as exc:
                log.warning(
                    "shopify_product_dropped",
                    product_id=item.get("id") if isinstance(item, dict) else None,
                    error=str(exc)[:200],
                )
        log.info("shopify_products_fetched", requested=limit, count=len(products))
        return products

    async def update_product(self, product: EnrichedProduct) -> dict[str, Any] | None:
        """Write one enriched product. Returns Shopify's product JSON, or None on failure.

        Safe to repeat with the same payload.
        """
        url = f"{self._base_url}/products/{product.id}.json"
        try:
            resp = await self._http.put(
                url,
                json=build_update_payload(product),
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            log.error(
                "shopify_update_error",
                product_id=product.id,
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
            return None

        if not resp.is_success:
            log.error(
                "shopify_update_failed",
                product_id=product.id,
                status=resp.status_code,
                body=resp.text[:200],
            )
            return None

        log.info(
            "shopify_product_updated",
            product_id=product.id,
            title=product.title,
            tags=product.tags,
        )
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body.get("product", {}) if isinstance(body, dict) else {}
