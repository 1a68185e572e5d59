"""Shared type definitions."""

from __future__ import annotations

from typing import TypedDict


class EmailData(TypedDict, total=False):
    """Email data structure from parsing a raw message."""

    message_id: str | None
    from_email: str
    from_name: str | None
    subject: str
    date_str: str | None
    body_text: str
    body_html: str | None
