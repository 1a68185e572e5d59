"""Tests for raw message decoding."""

from __future__ import annotations

from datetime import UTC, datetime
from email.message import EmailMessage

from order_intake.mail.message import (
    decode_header_value,
    get_body,
    parse_raw_email,
    parse_received_at,
)


def multipart_message() -> bytes:
    """Build a multipart message with text, HTML and an attachment."""
    msg = EmailMessage()
    msg["From"] = "=?utf-8?q?J=C3=BCrgen_M=C3=BCller?= <Juergen@Example.de>"
    msg["Subject"] = "=?utf-8?q?Bestellung_f=C3=BCr_B=C3=BCro?="
    msg["Message-ID"] = "<abc@example.de>"
    msg["Date"] = "Fri, 01 Mar 2024 12:00:00 +0000"
    msg.set_content("Ich möchte 3 Laptop bestellen")
    msg.add_alternative("<p>Ich möchte <b>3</b> Laptop bestellen</p>", subtype="html")
    msg.add_attachment(b"%PDF", maintype="application", subtype="pdf", filename="po.pdf")
    return msg.as_bytes()


class TestDecodeHeaderValue:
    """Tests for decode_header_value."""

    def test_encoded_word(self) -> None:
        """Test RFC 2047 decoding."""
        assert decode_header_value("=?utf-8?q?Gr=C3=BC=C3=9Fe?=") == "Grüße"

    def test_plain(self) -> None:
        """Test plain values pass through."""
        assert decode_header_value("Hello") == "Hello"

    def test_empty(self) -> None:
        """Test missing values."""
        assert decode_header_value(None) == ""
        assert decode_header_value("") == ""


class TestParseRawEmail:
    """Tests for parse_raw_email."""

    def test_multipart(self) -> None:
        """Test fields of a multipart message."""
        data = parse_raw_email(multipart_message())

        assert data["from_email"] == "juergen@example.de"
        assert data["from_name"] == "Jürgen Müller"
        assert data["subject"] == "Bestellung für Büro"
        assert data["message_id"] == "<abc@example.de>"
        assert data["body_text"].strip() == "Ich möchte 3 Laptop bestellen"
        assert data["body_html"] is not None
        assert "<b>3</b>" in data["body_html"]

    def test_html_only_falls_back_to_html_text(self) -> None:
        """Test that an HTML-only message uses the HTML as text."""
        raw = (
            b"From: a@example.com\r\n"
            b"Content-Type: text/html; charset=utf-8\r\n"
            b"\r\n"
            b"<p>Bestellung: 2 Monitore</p>\r\n"
        )

        data = parse_raw_email(raw)

        assert "Bestellung: 2 Monitore" in data["body_text"]
        assert data["message_id"] is None

    def test_latin1_body(self) -> None:
        """Test decoding with the declared charset."""
        raw = (
            b"From: a@example.com\r\n"
            b"Content-Type: text/plain; charset=iso-8859-1\r\n"
            b"\r\n"
            b"Ich m\xf6chte 3 Laptop bestellen\r\n"
        )

        assert "möchte" in parse_raw_email(raw)["body_text"]

    def test_unknown_charset(self) -> None:
        """Test that an unknown charset falls back to UTF-8."""
        raw = (
            b"From: a@example.com\r\n"
            b"Content-Type: text/plain; charset=x-unknown\r\n"
            b"\r\n"
            b"Bestellung: 2 Maus\r\n"
        )

        assert "Bestellung: 2 Maus" in parse_raw_email(raw)["body_text"]


class TestGetBody:
    """Tests for get_body."""

    def test_skips_attachments(self) -> None:
        """Test that attachments are not part of the body."""
        msg = EmailMessage()
        msg.set_content("Bestellung: 1 Laptop")
        msg.add_attachment("not the body", filename="notes.txt")

        text, html = get_body(msg)

        assert "not the body" not in text
        assert html == ""


class TestParseReceivedAt:
    """Tests for parse_received_at."""

    def test_valid(self) -> None:
        """Test parsing a Date header."""
        assert parse_received_at("Fri, 01 Mar 2024 12:00:00 +0000") == datetime(
            2024, 3, 1, 12, 0, 0, tzinfo=UTC
        )

    def test_invalid(self) -> None:
        """Test missing or malformed dates."""
        assert parse_received_at(None) is None
        assert parse_received_at("not a date") is None
