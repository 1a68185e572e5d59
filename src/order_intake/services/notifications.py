"""Outbound notifications to order senders."""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from collections.abc import Mapping
from email.message import EmailMessage
from enum import Enum
from html import escape
from typing import Any

import structlog

from order_intake.core.config import Config

logger = structlog.get_logger(__name__)


class NotificationKind(str, Enum):
    """Kinds of notices sent to order senders."""

    APPROVAL = "approval"
    CLARIFICATION = "clarification"
    REJECTION = "rejection"


class NotificationError(Exception):
    """Raised when a notice could not be delivered."""

    def __init__(self, kind: NotificationKind, recipient: str, reason: str) -> None:
        """Initialize error.

        Args:
            kind: Notice kind.
            recipient: Intended recipient.
            reason: Failure description.
        """
        self.kind = kind
        self.recipient = recipient
        super().__init__(f"Failed to send {kind.value} notice to {recipient}: {reason}")


class SmtpConnectionError(Exception):
    """Raised when the SMTP server cannot be reached or refuses the login."""


_SIGNATURE = "<p>Beste Gruesse,<br>ERP System</p>"

_APPROVAL_HTML = """\
<h2>Bestellung bestaetigt</h2>
<p>Vielen Dank fuer Ihre Email-Bestellung!</p>
<table border="1" cellpadding="10" style="border-collapse: collapse;">
  <tr><td><strong>Bestellnummer:</strong></td><td>#{order_id}</td></tr>
  <tr><td><strong>Produkt:</strong></td><td>{product_name}</td></tr>
  <tr><td><strong>Menge:</strong></td><td>{quantity}</td></tr>
  <tr><td><strong>Status:</strong></td><td>Genehmigt und verarbeitet</td></tr>
</table>
<p>Falls Sie Fragen haben, antworten Sie auf diese E-Mail.</p>
"""

_CLARIFICATION_HTML = """\
<h2>Bestellung konnte nicht verarbeitet werden</h2>
<p>Vielen Dank fuer Ihre Bestellung!</p>
<p>Leider konnte Ihre Email nicht automatisch verarbeitet werden:</p>
<p><strong>Grund:</strong> {reason}</p>
<h3>Naechste Schritte:</h3>
<ol>
  <li>Bitte antworten Sie auf diese Email mit den genauen Produktdetails</li>
  <li>Verwenden Sie das Format: "Ich moechte [Anzahl] [Produktname] bestellen"</li>
</ol>
<p>Beispiel: "Ich moechte 2 HP Laptop bestellen"</p>
"""

_REJECTION_HTML = """\
<h2>Bestellung abgelehnt</h2>
<p>Ihre Bestellung konnte leider nicht bearbeitet werden.</p>
<p><strong>Grund:</strong> {reason}</p>
<p>Bitte kontaktieren Sie uns bei Fragen.</p>
"""


def render_notification(kind: NotificationKind, payload: Mapping[str, Any]) -> tuple[str, str]:
    """Render subject and HTML body of a notice.

    Args:
        kind: Notice kind.
        payload: Values for the template (order_id, product_name,
                 quantity, reason).

    Returns:
        Tuple of (subject, html body).
    """
    values = {key: escape(str(value)) for key, value in payload.items()}
    if kind is NotificationKind.APPROVAL:
        subject = f"Bestellung bestaetigt #{values.get('order_id', '')}"
        body = _APPROVAL_HTML.format(
            order_id=values.get("order_id", ""),
            product_name=values.get("product_name", ""),
            quantity=values.get("quantity", ""),
        )
    elif kind is NotificationKind.CLARIFICATION:
        subject = "Re: Bestellung - Manuelle Bearbeitung erforderlich"
        body = _CLARIFICATION_HTML.format(reason=values.get("reason", ""))
    else:
        subject = "Bestellung abgelehnt"
        body = _REJECTION_HTML.format(reason=values.get("reason", "Order rejected"))
    return subject, body + _SIGNATURE


class Notifier(ABC):
    """Delivers notices to order senders."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Check if notices can actually be delivered."""

    @abstractmethod
    async def notify(
        self,
        kind: NotificationKind,
        recipient: str,
        payload: Mapping[str, Any],
    ) -> None:
        """Send a notice.

        Args:
            kind: Notice kind.
            recipient: Recipient address.
            payload: Template values.

        Raises:
            NotificationError: If delivery fails.
        """


class NullNotifier(Notifier):
    """Notifier used when no outbound mail is configured."""

    @property
    def is_configured(self) -> bool:
        """Check if notices can actually be delivered."""
        return False

    async def notify(
        self,
        kind: NotificationKind,
        recipient: str,
        payload: Mapping[str, Any],
    ) -> None:
        """Log and drop the notice."""
        await logger.ainfo("notification_skipped", kind=kind.value, recipient=recipient)


class SmtpNotifier(Notifier):
    """Sends HTML notices through an SMTP server.

    ``smtplib`` blocks, so each send runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str | None = None,
        password: str | None = None,
        secure: bool = False,
        sender: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize SMTP notifier.

        Args:
            host: SMTP host.
            port: SMTP port.
            username: Login user.
            password: Login password.
            secure: Use implicit TLS (SMTPS); otherwise STARTTLS is
                    attempted when the server offers it.
            sender: From address (defaults to the login user).
            timeout: Socket timeout in seconds.
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.secure = secure
        self.sender = sender or username
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        """Check if notices can actually be delivered."""
        return bool(self.host and self.sender)

    def build_message(
        self,
        kind: NotificationKind,
        recipient: str,
        payload: Mapping[str, Any],
    ) -> EmailMessage:
        """Build the MIME message for a notice."""
        subject, html_body = render_notification(kind, payload)
        message = EmailMessage()
        message["From"] = self.sender or ""
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content("Bitte verwenden Sie einen HTML-faehigen Email-Client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def _send_sync(self, message: EmailMessage) -> None:
        with self._connect() as client:
            client.ehlo()
            if not self.secure and client.has_extn("starttls"):
                client.starttls()
            if self.username and self.password:
                client.login(self.username, self.password)
            client.send_message(message)

    def _check_sync(self) -> None:
        with self._connect() as client:
            client.ehlo()
            if not self.secure and client.has_extn("starttls"):
                client.starttls()
            if self.username and self.password:
                client.login(self.username, self.password)
            code, reply = client.noop()
            if code != 250:
                raise SmtpConnectionError(f"NOOP refused: {code} {reply!r}")

    async def check_connection(self) -> None:
        """Connect and log in without sending anything.

        Raises:
            SmtpConnectionError: If the server or the credentials are not usable.
        """
        try:
            await asyncio.to_thread(self._check_sync)
        except (smtplib.SMTPException, OSError) as exc:
            raise SmtpConnectionError(str(exc)) from exc
        await logger.ainfo("smtp_connection_ok", host=self.host, port=self.port)

    async def notify(
        self,
        kind: NotificationKind,
        recipient: str,
        payload: Mapping[str, Any],
    ) -> None:
        """Send a notice.

        Raises:
            NotificationError: If the SMTP exchange fails.
        """
        message = self.build_message(kind, recipient, payload)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(kind, recipient, str(exc)) from exc
        await logger.ainfo("notification_sent", kind=kind.value, recipient=recipient)


async def send_best_effort(
    notifier: Notifier,
    kind: NotificationKind,
    recipient: str,
    payload: Mapping[str, Any],
) -> bool:
    """Send a notice without letting a failure escape.

    Returns:
        True if the notice was delivered; False when it failed or no
        delivery channel is configured.
    """
    try:
        await notifier.notify(kind, recipient, payload)
    except NotificationError as exc:
        await logger.awarning(
            "notification_failed",
            kind=kind.value,
            recipient=recipient,
            error=str(exc),
        )
        return False
    return bool(notifier.is_configured)


def notifier_from_config(config: Config) -> Notifier:
    """Build the notifier matching the SMTP configuration."""
    if not config.has_smtp() or config.smtp_host is None:
        return NullNotifier()
    return SmtpNotifier(
        config.smtp_host,
        config.smtp_port,
        username=config.smtp_user,
        password=config.smtp_password,
        secure=config.smtp_secure,
        sender=config.sender_address,
    )
