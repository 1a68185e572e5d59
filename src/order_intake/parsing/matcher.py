"""Catalog matching for extracted product phrases."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from rapidfuzz.distance import Levenshtein

from order_intake.parsing.normalize import normalize_product_name, strip_filler

FUZZY_SIMILARITY_THRESHOLD = 0.6


class MatchType(str, Enum):
    """Outcome of matching a phrase against the catalog."""

    EXACT = "exact"
    CONTAINS = "contains"
    FUZZY = "fuzzy"
    NO_MATCH = "no_match"
    NO_PRODUCTS = "no_products"
    INVALID_NAME = "invalid_name"


CONFIDENCE_MODIFIERS: dict[MatchType, float] = {
    MatchType.EXACT: 0.0,
    MatchType.CONTAINS: -0.05,
    MatchType.FUZZY: -0.15,
}


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """A product as seen by the matcher."""

    id: int
    name: str


@dataclass(frozen=True, slots=True)
class ProductMatch:
    """Result of resolving a phrase against the catalog.

    Attributes:
        product: Resolved catalog entry, None when nothing matched.
        match_type: How the product was found (or why not).
        confidence_modifier: Adjustment applied by the scorer.
    """

    product: CatalogEntry | None
    match_type: MatchType
    confidence_modifier: float = 0.0

    @property
    def is_resolved(self) -> bool:
        """Check if a catalog product was found."""
        return self.product is not None


def levenshtein_distance(a: str, b: str) -> int:
    """Compute the unit-cost edit distance between two strings.

    Args:
        a: First string.
        b: Second string.

    Returns:
        Minimum number of single-character inserts, deletes and
        substitutions turning ``a`` into ``b``.
    """
    return Levenshtein.distance(a, b)


def _resolved(entry: CatalogEntry, match_type: MatchType) -> ProductMatch:
    return ProductMatch(
        product=entry,
        match_type=match_type,
        confidence_modifier=CONFIDENCE_MODIFIERS[match_type],
    )


def match_product(raw_phrase: str, catalog: Sequence[CatalogEntry]) -> ProductMatch:
    """Resolve an extracted phrase against the product catalog.

    Tiers are tried in order and the first hit wins:

    1. exact: the phrase as written (filler words aside) equals a catalog
       name, ignoring case.
    2. contains: the normalized phrase contains a catalog name or vice
       versa. The first such entry in catalog order wins.
    3. fuzzy: smallest Levenshtein distance among names whose similarity
       to the normalized phrase exceeds 0.6. Ties go to the earlier entry.

    A phrase that only equals a catalog name after plural stripping is a
    "contains" hit: "Monitors" against "Monitor" scores as contains, not
    exact.

    Args:
        raw_phrase: Product phrase captured by a parsing rule.
        catalog: Catalog snapshot in storage order.

    Returns:
        Product match classification.
    """
    normalized = normalize_product_name(raw_phrase)
    if not normalized:
        return ProductMatch(product=None, match_type=MatchType.INVALID_NAME)

    if not catalog:
        return ProductMatch(product=None, match_type=MatchType.NO_PRODUCTS)

    written = strip_filler(raw_phrase).lower()
    for entry in catalog:
        if entry.name.lower() == written:
            return _resolved(entry, MatchType.EXACT)

    needle = normalized.lower()
    for entry in catalog:
        name = entry.name.lower()
        if name and (name in needle or needle in name):
            return _resolved(entry, MatchType.CONTAINS)

    best: CatalogEntry | None = None
    best_distance: int | None = None
    for entry in catalog:
        name = entry.name.lower()
        distance = levenshtein_distance(needle, name)
        score = 1 - distance / max(len(needle), len(name))
        if score > FUZZY_SIMILARITY_THRESHOLD and (best_distance is None or distance < best_distance):
            best = entry
            best_distance = distance

    if best is not None:
        return _resolved(best, MatchType.FUZZY)

    return ProductMatch(product=None, match_type=MatchType.NO_MATCH)
