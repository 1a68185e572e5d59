"""Tests for order_intake.parsing.patterns."""

from __future__ import annotations

import re

import pytest

from order_intake.parsing.patterns import (
    ENGLISH_NUMBERS,
    GERMAN_NUMBERS,
    PARSING_RULES,
    ExtractionRule,
    extract_candidate,
)


class TestRuleOrder:
    """Tests for the rule table itself."""

    def test_priority_order_and_confidence(self) -> None:
        """Test that rules are ordered from most to least precise."""
        assert [(r.name, r.base_confidence) for r in PARSING_RULES] == [
            ("german_strict", 0.95),
            ("bestellung_colon", 0.90),
            ("english_strict", 0.90),
            ("please_order", 0.85),
            ("german_text_qty", 0.85),
            ("english_text_qty", 0.80),
            ("number_first", 0.75),
        ]

    def test_number_words_cover_one_to_twelve(self) -> None:
        """Test that both word tables map onto 1-12."""
        assert set(GERMAN_NUMBERS.values()) == set(range(1, 13))
        assert set(ENGLISH_NUMBERS.values()) == set(range(1, 13))
        assert GERMAN_NUMBERS["ein"] == GERMAN_NUMBERS["eine"] == 1
        assert ENGLISH_NUMBERS["a"] == ENGLISH_NUMBERS["an"] == 1


class TestExtractCandidate:
    """Tests for extract_candidate."""

    @pytest.mark.parametrize(
        ("text", "pattern", "quantity", "phrase"),
        [
            ("Ich möchte 3 Laptop bestellen", "german_strict", 3, "Laptop"),
            ("Hallo, ich brauche 12x Monitore.", "german_strict", 12, "Monitore"),
            ("Bestellung: 10 Maus.", "bestellung_colon", 10, "Maus"),
            ("I would like 2 Keyboards!", "english_strict", 2, "Keyboards"),
            ("I am ordering 7 Cables", "english_strict", 7, "Cables"),
            ("Please order: 4 Headsets.", "please_order", 4, "Headsets"),
            ("Bitte bestellen 6 Drucker", "please_order", 6, "Drucker"),
            ("Ich brauche zwei Drucker.", "german_text_qty", 2, "Drucker"),
            ("Ich möchte einen Laptop.", "german_text_qty", 1, "Laptop"),
            ("Ich hätte gern zwölf Stühle", "german_text_qty", 12, "Stühle"),
            ("I need five Printers.", "english_text_qty", 5, "Printers"),
            ("I want an Adapter", "english_text_qty", 1, "Adapter"),
            ("3x Laptop, danke", "number_first", 3, "Laptop"),
            ("Hi team: 25 Webcams", "number_first", 25, "Webcams"),
        ],
    )
    def test_rules(self, text: str, pattern: str, quantity: int, phrase: str) -> None:
        """Test each rule on representative phrasing."""
        candidate = extract_candidate(text)

        assert candidate is not None
        assert candidate.pattern_name == pattern
        assert candidate.quantity == quantity
        assert candidate.raw_phrase == phrase

    def test_first_rule_wins(self) -> None:
        """Test that an earlier rule shadows a later one in the same text."""
        candidate = extract_candidate("Ich möchte 3 Laptop bestellen. Bestellung: 5 Maus")

        assert candidate is not None
        assert candidate.pattern_name == "german_strict"
        assert candidate.base_confidence == 0.95

    def test_invalid_quantity_moves_to_next_rule(self) -> None:
        """Test that an out-of-range quantity does not abort the parse."""
        candidate = extract_candidate("Ich möchte 10000 Laptops bestellen. Bestellung: 2 Laptops")

        assert candidate is not None
        assert candidate.pattern_name == "bestellung_colon"
        assert candidate.quantity == 2

    @pytest.mark.parametrize("text", ["Ich möchte 0 Laptop bestellen", "Bestellung: 0 Maus"])
    def test_zero_quantity_is_not_an_order(self, text: str) -> None:
        """Test that zero quantities never produce a candidate."""
        assert extract_candidate(text) is None

    def test_no_match(self) -> None:
        """Test text without any order phrasing."""
        assert extract_candidate("asdkj random text") is None

    def test_number_first_requires_capitalized_product(self) -> None:
        """Test that the fallback rule ignores lowercase phrases."""
        assert extract_candidate("see you at 5 pm") is None

    def test_custom_rules(self) -> None:
        """Test running a custom rule list."""
        rule = ExtractionRule(
            name="sku",
            pattern=re.compile(r"SKU-(\w+) qty (\d+)"),
            base_confidence=0.5,
            quantity_group=2,
            product_group=1,
        )

        candidate = extract_candidate("SKU-AB12 qty 4", rules=[rule])

        assert candidate is not None
        assert candidate.quantity == 4
        assert candidate.raw_phrase == "AB12"


class TestExtractionRule:
    """Tests for ExtractionRule.resolve_quantity."""

    @pytest.fixture
    def rule(self) -> ExtractionRule:
        """Create a rule with German number words."""
        return ExtractionRule(
            name="test",
            pattern=re.compile(r"(\w+) (\w+)"),
            base_confidence=0.5,
            quantity_words=GERMAN_NUMBERS,
        )

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("3", 3),
            ("9999", 9999),
            ("Drei", 3),
            ("zwo", 2),
            ("10000", None),
            ("0", None),
            ("viele", None),
        ],
    )
    def test_resolve_quantity(self, rule: ExtractionRule, token: str, expected: int | None) -> None:
        """Test numeric, word and invalid quantities."""
        assert rule.resolve_quantity(token) == expected
