"""Decoding of raw RFC 822 messages into order email data."""

from __future__ import annotations

import email
from datetime import datetime
from email.header import decode_header
from email.message import Message
from email.utils import parseaddr, parsedate_to_datetime

from order_intake.core.types import EmailData


def decode_header_value(value: str | None) -> str:
    """Decode RFC 2047 encoded header values.

    Args:
        value: Header value to decode.

    Returns:
        Decoded string.
    """
    if not value:
        return ""

    result = []
    for part, charset in decode_header(str(value)):
        if isinstance(part, bytes):
            result.append(_decode_payload(part, charset))
        else:
            result.append(part)
    return "".join(result)


def _decode_payload(payload: bytes, charset: str | None) -> str:
    """Decode payload bytes to string with charset fallback."""
    try:
        return payload.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def _part_text(part: Message) -> str | None:
    payload = part.get_payload(decode=True)
    if isinstance(payload, bytes):
        return _decode_payload(payload, part.get_content_charset())
    raw = part.get_payload()
    return raw if isinstance(raw, str) else None


def get_body(msg: Message) -> tuple[str, str]:
    """Extract body text and HTML from a message.

    Attachments are skipped. When there is no plain text part the HTML is
    used as text; the parser strips the tags.

    Args:
        msg: Parsed message.

    Returns:
        Tuple of (body_text, body_html).
    """
    text_parts: list[str] = []
    html_parts: list[str] = []

    parts = msg.walk() if msg.is_multipart() else [msg]
    for part in parts:
        if "attachment" in str(part.get("Content-Disposition", "")):
            continue
        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        text = _part_text(part)
        if text is None:
            continue
        if content_type == "text/html":
            html_parts.append(text)
        else:
            text_parts.append(text)

    body_text = "\n".join(text_parts)
    body_html = "\n".join(html_parts)

    if not body_text and body_html:
        body_text = body_html

    return body_text, body_html


def parse_received_at(date_str: str | None) -> datetime | None:
    """Parse a Date header, returning None when it is missing or malformed."""
    if not date_str:
        return None
    try:
        return parsedate_to_datetime(date_str)
    except (TypeError, ValueError):
        return None


def parse_raw_email(raw: bytes) -> EmailData:
    """Parse a raw message into the fields the intake needs.

    Args:
        raw: Message bytes as fetched from the mailbox.

    Returns:
        Normalized email data.
    """
    msg = email.message_from_bytes(raw)
    body_text, body_html = get_body(msg)
    from_name, from_email = parseaddr(decode_header_value(msg.get("From", "")))
    message_id = (msg.get("Message-ID") or "").strip()

    return {
        "message_id": message_id or None,
        "from_email": from_email.lower(),
        "from_name": from_name or None,
        "subject": decode_header_value(msg.get("Subject", "")),
        "date_str": msg.get("Date"),
        "body_text": body_text,
        "body_html": body_html or None,
    }
