"""Keyword taxonomy and the deterministic first-pass classifier.

The table is an ordered tuple: matching is first-match-wins in declaration
order, so reordering entries changes results. Matching runs in two passes:
first a keyword must start a word of the title ("womens" matches Women, not
Men), then, only if nothing matched, a keyword anywhere in the title counts
("sportsmen" matches Men).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeVar

from enricher.models.contracts import (
    DEFAULT_AGE_GROUP,
    SENTINEL_CATEGORY,
    SENTINEL_SUB_CATEGORY,
    Classification,
    Product,
)

T = TypeVar("T")


@dataclass(frozen=True)
class TaxonomyEntry:
    """One main category with its ordered sub-categories and age groups."""

    name: str
    sub_categories: tuple[str, ...]
    age_groups: tuple[str, ...]

    @property
    def default_age_group(self) -> str:
        return self.age_groups[0] if self.age_groups else DEFAULT_AGE_GROUP


DEFAULT_TAXONOMY: tuple[TaxonomyEntry, ...] = (
    TaxonomyEntry("Men", ("Shirts", "Shoes", "Accessories", "Pants"), ("Adult", "Teen")),
    TaxonomyEntry("Women", ("Dresses", "Shoes", "Accessories"), ("Adult", "Teen")),
    TaxonomyEntry(
        "Kids",
        ("Boys", "Girls", "Toys", "Shoes", "Accessories"),
        ("0-2", "3-5", "6-12", "13-17"),
    ),
    TaxonomyEntry("Beauty", ("Makeup Tools", "Skincare", "Hair Care"), ("Adults", "All Ages")),
    TaxonomyEntry(
        "Home Improvement",
        ("Furniture", "Decor", "Tools", "Lighting"),
        ("All Ages",),
    ),
    TaxonomyEntry("Clothing", ("Loungewear", "Casual", "Formal"), ("Adults", "All Ages")),
)


def _keywords(label: str) -> tuple[str, ...]:
    """Lower-cased match forms for a label: itself plus its singular stem.

    "Shirts" -> ("shirts", "shirt"); "Men" -> ("men",).
    """
    lowered = label.lower()
    if len(lowered) > 3 and lowered.endswith("s"):
        return (lowered, lowered[:-1])
    return (lowered,)


@lru_cache(maxsize=256)
def _pattern(label: str) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(k) for k in _keywords(label))
    return re.compile(rf"\b(?:{alternatives})")


def _matches(label: str, title: str) -> bool:
    return _pattern(label).search(title) is not None


def _contains(label: str, title: str) -> bool:
    return any(k in title for k in _keywords(label))


def _first_match(labels: Iterable[T], key: Callable[[T], str], title: str) -> T | None:
    """First label starting a word of `title`, else first contained anywhere."""
    candidates = tuple(labels)
    for matcher in (_matches, _contains):
        for candidate in candidates:
            if matcher(key(candidate), title):
                return candidate
    return None


class TaxonomyTable:
    """Read-only ordered lookup over taxonomy entries."""

    def __init__(self, entries: tuple[TaxonomyEntry, ...] = DEFAULT_TAXONOMY) -> None:
        names = [e.name for e in entries]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate taxonomy categories: {names}")
        self._entries = tuple(entries)
        self._by_key = {e.name.lower(): e for e in self._entries}

    @property
    def entries(self) -> tuple[TaxonomyEntry, ...]:
        return self._entries

    @property
    def category_names(self) -> list[str]:
        return [e.name for e in self._entries]

    def get(self, category: str) -> TaxonomyEntry | None:
        """Case-insensitive lookup by category name."""
        return self._by_key.get(category.strip().lower())


class TaxonomyMatcher:
    """Deterministic keyword classifier over a TaxonomyTable.

    Pure: no I/O, same title and table always give the same Classification.
    """

    def __init__(self, table: TaxonomyTable | None = None) -> None:
        self.table = table or TaxonomyTable()

    def match_category(self, title: str) -> TaxonomyEntry | None:
        return _first_match(self.table.entries, lambda e: e.name, title.lower())

    def match_sub_category(self, entry: TaxonomyEntry, title: str) -> str:
        sub = _first_match(entry.sub_categories, lambda s: s, title.lower())
        return sub or SENTINEL_SUB_CATEGORY

    def classify(self, product: Product) -> Classification:
        entry = self.match_category(product.title)
        if entry is None:
            return Classification(
                main_category=SENTINEL_CATEGORY,
                sub_category=SENTINEL_SUB_CATEGORY,
                age_group=DEFAULT_AGE_GROUP,
            )
        return Classification(
            main_category=entry.name,
            sub_category=self.match_sub_category(entry, product.title),
            age_group=entry.default_age_group,
        )
