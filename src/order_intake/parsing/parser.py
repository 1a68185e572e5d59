"""Email body parsing: normalize, extract, match and score."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from order_intake.parsing.matcher import CatalogEntry, MatchType, ProductMatch, match_product
from order_intake.parsing.normalize import clean_body
from order_intake.parsing.patterns import ParseCandidate, extract_candidate
from order_intake.parsing.scoring import score_confidence

UNPARSEABLE = "UNPARSEABLE"


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """Parsing produced no usable order."""

    message: str
    error_type: str = UNPARSEABLE


@dataclass(frozen=True, slots=True)
class ParsedOrder:
    """A candidate resolved against the catalog and scored."""

    candidate: ParseCandidate
    match: ProductMatch
    confidence: float

    @property
    def quantity(self) -> int:
        """Extracted order quantity."""
        return self.candidate.quantity

    @property
    def product_id(self) -> int | None:
        """Catalog id of the resolved product."""
        return self.match.product.id if self.match.product else None

    @property
    def product_name(self) -> str:
        """Catalog name when resolved, otherwise the phrase as extracted."""
        if self.match.product is not None:
            return self.match.product.name
        return self.candidate.raw_phrase

    @property
    def match_type(self) -> MatchType:
        """How the product was matched."""
        return self.match.match_type


def extract_order(body: object) -> ParseCandidate | ParseFailure:
    """Extract a parse candidate from a raw email body.

    Args:
        body: Raw body; anything other than a non-empty string fails.

    Returns:
        The first rule's candidate or an UNPARSEABLE failure.
    """
    if not isinstance(body, str) or not body:
        return ParseFailure("Empty or invalid email body")

    text = clean_body(body)
    if not text:
        return ParseFailure("Empty or invalid email body")

    candidate = extract_candidate(text)
    if candidate is None:
        return ParseFailure("No matching pattern found in email")
    return candidate


def resolve_candidate(candidate: ParseCandidate, catalog: Sequence[CatalogEntry]) -> ParsedOrder:
    """Match a candidate against the catalog and compute its confidence."""
    match = match_product(candidate.raw_phrase, catalog)
    return ParsedOrder(
        candidate=candidate,
        match=match,
        confidence=score_confidence(candidate.base_confidence, match),
    )


def parse_email_body(body: object, catalog: Sequence[CatalogEntry]) -> ParsedOrder | ParseFailure:
    """Run the full parse for a body against a catalog snapshot.

    Pure: no I/O and no side effects, so identical input always gives an
    identical result.
    """
    outcome = extract_order(body)
    if isinstance(outcome, ParseFailure):
        return outcome
    return resolve_candidate(outcome, catalog)
