"""Representative product image lookup via the Unsplash search API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from enricher.models.contracts import ImageRef

log = structlog.get_logger("enricher.images")

UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"


class ImageResolver:
    """Finds one full-resolution image for a product title.

    A missing image is a normal outcome: every failure is logged and
    returns None. No retries.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        access_key: str,
        timeout: float = 15.0,
    ) -> None:
        self._http = http_client
        self._access_key = access_key
        self._timeout = timeout

    async def find_image(self, title: str) -> ImageRef | None:
        if not title.strip():
            log.info("image_skipped_empty_title")
            return None

        params: dict[str, Any] = {
            "query": title,
            "per_page": 1,
            "client_id": self._access_key,
        }
        try:
            resp = await self._http.get(UNSPLASH_SEARCH_URL, params=params, timeout=self._timeout)
        except httpx.HTTPError as exc:
            log.warning(
                "image_search_error",
                title=title[:80],
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
            return None

        if resp.status_code != 200:
            log.warning("image_search_failed", status=resp.status_code, title=title[:80])
            return None

        try:
            results = resp.json().get("results") or []
            src = results[0]["urls"]["full"] if results else None
        except (ValueError, AttributeError, KeyError, IndexError, TypeError) as exc:
            log.warning("image_search_bad_body", title=title[:80], error=str(exc)[:200])
            return None

        if not src:
            log.warning("image_not_found", title=title[:80])
            return None
        return ImageRef(src=src)
