"""Text normalization for email bodies and extracted product names."""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Politeness markers customers tack onto the product name
FILLER_WORDS = ("bitte", "please", "danke", "thanks", "asap")
_TRAILING_FILLER_RE = re.compile(
    r"\s+(?:" + "|".join(FILLER_WORDS) + r")$",
    re.IGNORECASE,
)

# Simple German plural endings (Monitore, Lampen)
_GERMAN_PLURAL_RE = re.compile(r"(?:en|e)$")


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_body(text: str) -> str:
    """Flatten a raw (possibly HTML) email body to plain text.

    Tags are replaced by spaces, ``&nbsp;`` is decoded and all whitespace
    (including line breaks) is collapsed.

    Args:
        text: Raw email body.

    Returns:
        Single-line plain text.
    """
    text = _TAG_RE.sub(" ", text)
    text = text.replace("&nbsp;", " ")
    return collapse_whitespace(text)


def strip_filler(raw: str | None) -> str:
    """Trim a product phrase and drop one trailing politeness marker."""
    if not raw:
        return ""
    phrase = _TRAILING_FILLER_RE.sub("", raw.strip())
    return collapse_whitespace(phrase)


def normalize_product_name(raw: str | None) -> str:
    """Normalize an extracted product phrase for catalog lookup.

    The rules are lossy.

    1. Drop a trailing filler word ("Laptop bitte" -> "Laptop").
    2. Drop a single trailing "s" unless the phrase ends in "ss".
    3. Drop a trailing "en" or "e".
    4. Collapse whitespace.

    Args:
        raw: Product phrase as captured by a parsing rule.

    Returns:
        Normalized phrase, or an empty string if nothing is left.
    """
    name = strip_filler(raw)
    if name.endswith("s") and not name.endswith("ss"):
        name = name[:-1]
    name = _GERMAN_PLURAL_RE.sub("", name)
    return collapse_whitespace(name)
