"""Order email parsing: normalization, extraction rules, matching and scoring."""

from order_intake.parsing.matcher import (
    CatalogEntry,
    MatchType,
    ProductMatch,
    levenshtein_distance,
    match_product,
)
from order_intake.parsing.normalize import clean_body, normalize_product_name
from order_intake.parsing.parser import (
    UNPARSEABLE,
    ParsedOrder,
    ParseFailure,
    extract_order,
    parse_email_body,
    resolve_candidate,
)
from order_intake.parsing.patterns import (
    PARSING_RULES,
    ExtractionRule,
    ParseCandidate,
    extract_candidate,
)
from order_intake.parsing.scoring import score_confidence

__all__ = [
    "PARSING_RULES",
    "UNPARSEABLE",
    "CatalogEntry",
    "ExtractionRule",
    "MatchType",
    "ParseCandidate",
    "ParseFailure",
    "ParsedOrder",
    "ProductMatch",
    "clean_body",
    "extract_candidate",
    "extract_order",
    "levenshtein_distance",
    "match_product",
    "normalize_product_name",
    "parse_email_body",
    "resolve_candidate",
    "score_confidence",
]
