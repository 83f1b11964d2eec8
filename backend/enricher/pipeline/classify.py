"""Generative fallback classifier: asks a language model for a category.

Used only when keyword matching finds nothing. Walks an ordered model list
(primary, then fallbacks). Rate limits back off exponentially and retry the
same model; every other failure, including an unparseable reply, abandons
that model for the next one. When the list is exhausted the last error is
raised wrapped in ClassificationExhausted.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import anthropic
import structlog
from pydantic import ValidationError

from enricher.config import Settings
from enricher.models.contracts import (
    DEFAULT_AGE_GROUP,
    SENTINEL_CATEGORY,
    SENTINEL_SUB_CATEGORY,
    Classification,
    GenerativeClassification,
    Product,
)
from enricher.pipeline.taxonomy import TaxonomyTable

log = structlog.get_logger("enricher.classify")

SYSTEM_PROMPT = (
    "You are a product categorizer for an e-commerce catalog. "
    "Reply with a single JSON object and nothing else, shaped as "
    '{{"category": str, "subCategory": str, "ageGroup": str, "suggestedTitle": str}}. '
    "Allowed categories, in order: {categories}. "
    'If none fits, use "Miscellaneous".'
)

USER_PROMPT = 'Categorize this product: "{title}". Description: "{description}".'


class ClassificationError(Exception):
    """Base class for generative classification failures."""


class MalformedClassificationError(ClassificationError):
    """The model replied, but not with the expected JSON object."""


class ClassificationExhausted(ClassificationError):
    """Every model and attempt failed; `last_error` is the final cause."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Classification failed after {attempts} attempts: {last_error}")


@dataclass
class RetryState:
    """Progress through the model list for a single classify() call."""

    model_index: int = 0
    attempt: int = 0
    calls: int = 0
    last_error: BaseException | None = None


def _strip_code_fence(text: str) -> str:
    """Remove markdown code fences from model replies."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    text = text.removeprefix("```")
    for lang in ("json", "JSON"):
        text = text.removeprefix(lang)
    text = text.lstrip("\n")
    return text.rsplit("```", 1)[0].strip()


def _extract_json(text: str) -> dict[str, Any]:
    """Parse the JSON object in a model reply.

    Accepts pure JSON, code-fenced JSON, or JSON surrounded by prose (the
    outermost {...} span). Raises MalformedClassificationError otherwise.
    """
    text = _strip_code_fence(text)
    if not text:
        raise MalformedClassificationError("Empty reply")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedClassificationError(f"No JSON object in reply: {text[:80]!r}") from None
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise MalformedClassificationError(f"Invalid JSON in reply: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedClassificationError(f"Expected JSON object, got {type(data).__name__}")
    return data


def _response_text(response: Any) -> str:
    return "".join(block.text for block in response.content if hasattr(block, "text"))


class GenerativeClassifier:
    """Language-model classifier with model fallback and rate-limit backoff."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        settings: Settings,
        table: TaxonomyTable | None = None,
    ) -> None:
        if not settings.classifier_models:
            raise ValueError("At least one classifier model is required")
        self._client = client
        self._table = table or TaxonomyTable()
        self.models = list(settings.classifier_models)
        self.max_attempts = settings.classifier_max_attempts
        self.backoff_base = settings.classifier_backoff_base_seconds
        self.temperature = settings.classifier_temperature
        self.max_tokens = settings.classifier_max_tokens
        self._system_prompt = SYSTEM_PROMPT.format(
            categories=", ".join(self._table.category_names)
        )

    def build_messages(self, product: Product) -> list[dict[str, str]]:
        content = USER_PROMPT.format(title=product.title, description=product.body_html or "")
        return [{"role": "user", "content": content}]

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) rate-limited attempt."""
        return self.backoff_base * 2 ** (attempt - 1)

    def normalize(self, reply: GenerativeClassification) -> Classification:
        """Map a model reply onto the taxonomy.

        Unknown categories collapse to the sentinel (a non-answer); unknown
        sub-categories become "Other".
        """
        entry = self._table.get(reply.category)
        if entry is None:
            if reply.category.lower() != SENTINEL_CATEGORY.lower():
                log.info("classifier_unknown_category", category=reply.category)
            return Classification(
                main_category=SENTINEL_CATEGORY,
                sub_category=SENTINEL_SUB_CATEGORY,
                age_group=reply.age_group or DEFAULT_AGE_GROUP,
                suggested_title=reply.suggested_title or None,
            )

        sub = SENTINEL_SUB_CATEGORY
        if reply.sub_category:
            wanted = reply.sub_category.strip().lower()
            sub = next(
                (s for s in entry.sub_categories if s.lower() == wanted),
                SENTINEL_SUB_CATEGORY,
            )
        return Classification(
            main_category=entry.name,
            sub_category=sub,
            age_group=(reply.age_group or "").strip() or DEFAULT_AGE_GROUP,
            suggested_title=(reply.suggested_title or "").strip() or None,
        )

    async def _call_model(self, model: str, messages: list[dict[str, str]]) -> Classification:
        response = await self._client.messages.create(
            model=model,
            system=self._system_prompt,
            messages=messages,  # type: ignore[arg-type]
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        data = _extract_json(_response_text(response))
        try:
            reply = GenerativeClassification.model_validate(data)
        except ValidationError as exc:
            raise MalformedClassificationError(f"Reply failed validation: {exc}") from exc
        return self.normalize(reply)

    async def classify(self, product: Product) -> Classification:
        """Classify one product, trying each model in order.

        Raises ClassificationExhausted when no model produced a valid reply.
        """
        messages = self.build_messages(product)
        state = RetryState()

        for model_index, model in enumerate(self.models):
            state.model_index = model_index
            for attempt in range(1, self.max_attempts + 1):
                state.attempt = attempt
                state.calls += 1
                try:
                    result = await self._call_model(model, messages)
                except anthropic.RateLimitError as exc:
                    state.last_error = exc
                    if state.attempt == self.max_attempts:
                        log.warning(
                            "classifier_rate_limited_final",
                            model=model,
                            product_id=product.id,
                            attempt=state.attempt,
                        )
                        break
                    delay = self.backoff_delay(state.attempt)
                    log.warning(
                        "classifier_rate_limited",
                        model=model,
                        product_id=product.id,
                        attempt=state.attempt,
                        wait_seconds=delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                except Exception as exc:
                    state.last_error = exc
                    log.warning(
                        "classifier_model_failed",
                        model=model,
                        product_id=product.id,
                        attempt=state.attempt,
                        error_type=type(exc).__name__,
                        error=str(exc)[:200],
                    )
                    break

                log.info(
                    "classifier_succeeded",
                    model=model,
                    product_id=product.id,
                    attempt=state.attempt,
                    category=result.main_category,
                )
                return result

            if state.model_index + 1 < len(self.models):
                log.info(
                    "classifier_switching_model",
                    from_model=model,
                    to_model=self.models[state.model_index + 1],
                )

        log.error(
            "classifier_exhausted",
            product_id=product.id,
            calls=state.calls,
            error=str(state.last_error)[:200],
        )
        raise ClassificationExhausted(state.calls, state.last_error) from state.last_error
