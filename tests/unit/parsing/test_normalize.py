"""Tests for order_intake.parsing.normalize."""

from __future__ import annotations

import pytest

from order_intake.parsing.normalize import (
    clean_body,
    collapse_whitespace,
    normalize_product_name,
    strip_filler,
)


class TestCleanBody:
    """Tests for clean_body."""

    def test_strips_tags_and_collapses(self) -> None:
        """Test that tags become spaces and whitespace collapses."""
        body = "<p>Ich möchte</p>\n<b>3</b>   Laptop<br/>bestellen"
        assert clean_body(body) == "Ich möchte 3 Laptop bestellen"

    def test_decodes_nbsp(self) -> None:
        """Test that &nbsp; is decoded to a space."""
        assert clean_body("3&nbsp;Laptop") == "3 Laptop"

    def test_empty(self) -> None:
        """Test that an empty body stays empty."""
        assert clean_body("") == ""
        assert clean_body("   <br>  ") == ""


class TestCollapseWhitespace:
    """Tests for collapse_whitespace."""

    def test_tabs_and_newlines(self) -> None:
        """Test that all whitespace runs collapse."""
        assert collapse_whitespace("  a\t\tb\r\n c  ") == "a b c"


class TestStripFiller:
    """Tests for strip_filler."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Laptop bitte", "Laptop"),
            ("Printer please", "Printer"),
            ("Monitor ASAP", "Monitor"),
            ("Maus danke", "Maus"),
            ("Laptop", "Laptop"),
        ],
    )
    def test_trailing_filler(self, raw: str, expected: str) -> None:
        """Test dropping one trailing filler word."""
        assert strip_filler(raw) == expected

    def test_only_one_filler_removed(self) -> None:
        """Test that only the last filler word is dropped."""
        assert strip_filler("Laptop bitte danke") == "Laptop bitte"

    def test_none(self) -> None:
        """Test None input."""
        assert strip_filler(None) == ""


class TestNormalizeProductName:
    """Tests for normalize_product_name."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Laptops", "Laptop"),
            ("Printers", "Printer"),
            ("Monitore", "Monitor"),
            ("Lampen", "Lamp"),
            ("Glass", "Glass"),
            ("  HP   Laptop bitte ", "HP Laptop"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        """Test plural and filler stripping."""
        assert normalize_product_name(raw) == expected

    def test_empty_after_stripping(self) -> None:
        """Test that a phrase reduced to nothing returns an empty string."""
        assert normalize_product_name("") == ""
        assert normalize_product_name("   ") == ""
        assert normalize_product_name("e") == ""
