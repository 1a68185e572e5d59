"""Inbound mail: mailbox access and message decoding."""

from order_intake.mail.imap import ImapMailbox, MailboxError, MailboxSource, RawMessage
from order_intake.mail.message import parse_raw_email, parse_received_at

__all__ = [
    "ImapMailbox",
    "MailboxError",
    "MailboxSource",
    "RawMessage",
    "parse_raw_email",
    "parse_received_at",
]
