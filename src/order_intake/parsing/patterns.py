"""Ordered extraction rules for order emails.

Each rule pairs a regular expression with a base confidence. Rules are tried
strictly in the order of ``PARSING_RULES``; the first rule that yields a
valid quantity wins, so the list runs from the most precise phrasing down to
the generic "number + capitalized phrase" fallback.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

MIN_QUANTITY = 1
MAX_QUANTITY = 9999

GERMAN_NUMBERS: dict[str, int] = {
    "ein": 1,
    "eine": 1,
    "einen": 1,
    "eins": 1,
    "zwei": 2,
    "zwo": 2,
    "drei": 3,
    "vier": 4,
    "fuenf": 5,
    "fünf": 5,
    "sechs": 6,
    "sieben": 7,
    "acht": 8,
    "neun": 9,
    "zehn": 10,
    "elf": 11,
    "zwoelf": 12,
    "zwölf": 12,
}

ENGLISH_NUMBERS: dict[str, int] = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}

_GERMAN_VERBS = (
    r"möchte|moechte|will|brauche|benötige|benotige|hätte\s+gern|haette\s+gern"
)
_ENGLISH_VERBS = r"need|want|would\s+like|order"
_END = r"(?:\.|!|\?|$)"


def _words(table: Mapping[str, int]) -> str:
    """Build a regex alternation from a number-word table, longest first."""
    words = sorted(table, key=len, reverse=True)
    return "|".join(re.escape(word) for word in words)


@dataclass(frozen=True, slots=True)
class ParseCandidate:
    """Order data extracted by a single rule, before catalog matching."""

    quantity: int
    raw_phrase: str
    pattern_name: str
    base_confidence: float


@dataclass(frozen=True, slots=True)
class ExtractionRule:
    """A named text-extraction rule with a fixed base confidence."""

    name: str
    pattern: re.Pattern[str]
    base_confidence: float
    quantity_words: Mapping[str, int] | None = None
    quantity_group: int = 1
    product_group: int = 2

    def resolve_quantity(self, token: str) -> int | None:
        """Turn a captured quantity token into an order quantity.

        Returns:
            The quantity, or None when the token is not a number or falls
            outside the accepted range.
        """
        value: int | None = None
        if self.quantity_words is not None:
            value = self.quantity_words.get(token.lower())
        if value is None:
            try:
                value = int(token)
            except ValueError:
                return None
        if not MIN_QUANTITY <= value <= MAX_QUANTITY:
            return None
        return value

    def apply(self, text: str) -> ParseCandidate | None:
        """Run the rule against normalized text.

        Returns:
            A candidate, or None when the pattern does not match or the
            quantity is invalid (the caller moves on to the next rule).
        """
        match = self.pattern.search(text)
        if match is None:
            return None

        quantity = self.resolve_quantity(match.group(self.quantity_group))
        if quantity is None:
            return None

        return ParseCandidate(
            quantity=quantity,
            raw_phrase=match.group(self.product_group).strip(),
            pattern_name=self.name,
            base_confidence=self.base_confidence,
        )


PARSING_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        name="german_strict",
        pattern=re.compile(
            rf"\bich\s+(?:{_GERMAN_VERBS})\s+(\d+)\s*[x]?\s+(.+?)"
            r"(?:\s+bestellen|\s+kaufen|\s+ordern|\.|!|\?|$)",
            re.IGNORECASE,
        ),
        base_confidence=0.95,
    ),
    ExtractionRule(
        name="bestellung_colon",
        pattern=re.compile(rf"\bbestellung\s*:?\s*(\d+)\s*[x]?\s+(.+?){_END}", re.IGNORECASE),
        base_confidence=0.90,
    ),
    ExtractionRule(
        name="english_strict",
        pattern=re.compile(
            rf"\bI\s+(?:{_ENGLISH_VERBS}|am\s+ordering)\s+(\d+)\s*[x]?\s+(.+?){_END}",
            re.IGNORECASE,
        ),
        base_confidence=0.90,
    ),
    ExtractionRule(
        name="please_order",
        pattern=re.compile(
            rf"\b(?:bitte|please)\s+(?:bestellen|order)\s*:?\s*(\d+)\s*[x]?\s+(.+?){_END}",
            re.IGNORECASE,
        ),
        base_confidence=0.85,
    ),
    ExtractionRule(
        name="german_text_qty",
        pattern=re.compile(
            rf"\bich\s+(?:{_GERMAN_VERBS})\s+({_words(GERMAN_NUMBERS)})\s+(.+?){_END}",
            re.IGNORECASE,
        ),
        base_confidence=0.85,
        quantity_words=GERMAN_NUMBERS,
    ),
    ExtractionRule(
        name="english_text_qty",
        pattern=re.compile(
            rf"\bI\s+(?:{_ENGLISH_VERBS})\s+({_words(ENGLISH_NUMBERS)})\s+(.+?){_END}",
            re.IGNORECASE,
        ),
        base_confidence=0.80,
        quantity_words=ENGLISH_NUMBERS,
    ),
    # Case-sensitive: the product must start with a capital letter
    ExtractionRule(
        name="number_first",
        pattern=re.compile(
            r"(\d+)\s*[xX]?\s+([A-ZÄÖÜ][A-Za-zÄÖÜäöüß0-9\s\-]+?)(?:\.|!|\?|,|$)"
        ),
        base_confidence=0.75,
    ),
)


def extract_candidate(
    text: str,
    rules: Iterable[ExtractionRule] = PARSING_RULES,
) -> ParseCandidate | None:
    """Return the candidate of the first matching rule, if any.

    Args:
        text: Normalized email body.
        rules: Rules in priority order.

    Returns:
        First candidate produced, or None if no rule matched.
    """
    for rule in rules:
        candidate = rule.apply(text)
        if candidate is not None:
            return candidate
    return None
