"""Per-product enrichment: keyword match, image lookup, generative fallback.

enrich() never raises. The generative classifier is consulted only when
keyword matching lands on the sentinel category, and any failure there
leaves the keyword result in place.
"""

from __future__ import annotations

import asyncio

import structlog

from enricher.models.contracts import Classification, EnrichedProduct, Product
from enricher.pipeline.classify import ClassificationError, GenerativeClassifier
from enricher.pipeline.images import ImageResolver
from enricher.pipeline.taxonomy import TaxonomyMatcher

log = structlog.get_logger("enricher.enrich")


class EnrichmentPipeline:
    def __init__(
        self,
        matcher: TaxonomyMatcher,
        classifier: GenerativeClassifier | None,
        images: ImageResolver | None,
        max_attempts: int = 3,
        retry_delay: float = 5.0,
    ) -> None:
        self.matcher = matcher
        self.classifier = classifier
        self.images = images
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def _classify_with_retries(self, product: Product) -> Classification | None:
        """Outer retry loop around a whole generative classification.

        A sentinel answer is not an error but still earns another attempt.
        Returns None when the budget runs out without a real category.
        """
        if self.classifier is None:
            return None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await self.classifier.classify(product)
            except ClassificationError as exc:
                log.warning(
                    "enrich_classification_failed",
                    product_id=product.id,
                    attempt=attempt,
                    error=str(exc)[:200],
                )
            else:
                if not result.is_sentinel:
                    return result
                log.info("enrich_classification_inconclusive", product_id=product.id, attempt=attempt)

            if attempt < self.max_attempts:
                await asyncio.sleep(self.retry_delay)

        log.warning(
            "enrich_classification_gave_up",
            product_id=product.id,
            attempts=self.max_attempts,
        )
        return None

    async def enrich(self, product: Product) -> EnrichedProduct:
        classification = self.matcher.classify(product)
        image = await self.images.find_image(product.title) if self.images else None
        title = product.title
        source = "taxonomy"

        if classification.is_sentinel:
            generated = await self._classify_with_retries(product)
            if generated is not None:
                classification = generated
                title = generated.suggested_title or product.title
                source = "generative"

        enriched = EnrichedProduct(
            id=product.id,
            title=title,
            tags=[
                classification.main_category,
                classification.sub_category,
                classification.age_group,
            ],
            image=image,
        )
        log.info(
            "product_enriched",
            product_id=product.id,
            source=source,
            tags=enriched.tags,
            has_image=image is not None,
        )
        return enriched
