"""Confidence scoring for parsed orders."""

from __future__ import annotations

from order_intake.parsing.matcher import ProductMatch

NO_MATCH_PENALTY = 0.30


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp a value to the inclusive range [lower, upper]."""
    return max(lower, min(upper, value))


def score_confidence(base_confidence: float, match: ProductMatch) -> float:
    """Combine a rule's base confidence with the catalog match quality.

    Args:
        base_confidence: Confidence configured on the matching rule.
        match: Catalog match for the extracted phrase.

    Returns:
        Final confidence in [0, 1], rounded to four decimals.
    """
    if match.is_resolved:
        score = base_confidence + match.confidence_modifier
    else:
        score = base_confidence - NO_MATCH_PENALTY
    return round(clamp(score), 4)
