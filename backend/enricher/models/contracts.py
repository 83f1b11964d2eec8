"""Catalog enrichment contract models.

Records exchanged between the catalog client, the enrichment pipeline, the
batch updater and the HTTP surface. Shopify JSON uses snake_case
(`body_html`); the generative classifier replies in camelCase
(`subCategory`), hence the aliases on GenerativeClassification.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SENTINEL_CATEGORY = "Miscellaneous"
SENTINEL_SUB_CATEGORY = "Other"
DEFAULT_AGE_GROUP = "All"

# === Catalog Records ===


class Product(BaseModel):
    """A storefront product as read from the catalog. Read-only input."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    body_html: str | None = None
    tags: list[str] = []

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: object) -> object:
        # Shopify REST returns tags as one comma-separated string
        if value is None:
            return []
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        return value


class ImageRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    src: str


class Classification(BaseModel):
    """Category decision from either the keyword matcher or the model."""

    model_config = ConfigDict(frozen=True)

    main_category: str
    sub_category: str
    age_group: str
    suggested_title: str | None = None

    @property
    def is_sentinel(self) -> bool:
        return self.main_category == SENTINEL_CATEGORY


class EnrichedProduct(BaseModel):
    """Pipeline output unit. Immutable; written to the catalog once."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    tags: list[str] = Field(min_length=3, max_length=3)
    image: ImageRef | None = None


# === Generative Classifier ===


class GenerativeClassification(BaseModel):
    """Validated JSON reply from the language model.

    Only `category` is required; a reply without it is malformed.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    category: str = Field(min_length=1)
    sub_category: str | None = Field(default=None, alias="subCategory")
    age_group: str | None = Field(default=None, alias="ageGroup")
    suggested_title: str | None = Field(default=None, alias="suggestedTitle")

    @field_validator("category")
    @classmethod
    def _strip_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be blank")
        return value


# === Batch Updates ===


class UpdateOutcome(BaseModel):
    product_id: int
    status: Literal["updated", "failed"]
    error: str | None = None


class BatchReport(BaseModel):
    rounds: int = 0
    outcomes: list[UpdateOutcome] = []

    @property
    def updated_ids(self) -> list[int]:
        return [o.product_id for o in self.outcomes if o.status == "updated"]

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")


class RunSummary(BaseModel):
    """Counters for one top-level enrichment run."""

    fetched: int = 0
    skipped: int = 0
    enriched: int = 0
    updated: int = 0
    failed: int = 0
    rounds: int = 0


class Progress(BaseModel):
    """Best-effort checkpoint of product IDs written in earlier runs."""

    completed: list[int] = []


# === API ===


class CategorizeRequest(BaseModel):
    products: list[Product]


class CategorizeResponse(BaseModel):
    products: list[EnrichedProduct]
    outcomes: list[UpdateOutcome]


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool = False
