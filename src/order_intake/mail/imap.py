"""Inbound mailbox access."""

from __future__ import annotations

import asyncio
import imaplib
from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from order_intake.core.config import Config

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RawMessage:
    """A message fetched from the mailbox.

    Attributes:
        uid: Mailbox-local message number.
        raw: Full RFC 822 bytes.
    """

    uid: str
    raw: bytes


class MailboxError(Exception):
    """Raised when the mailbox cannot be read."""


class MailboxSource(ABC):
    """Source of unread order emails."""

    @abstractmethod
    async def fetch_unread(self) -> list[RawMessage]:
        """Fetch unread messages and mark them as seen.

        Raises:
            MailboxError: If the mailbox cannot be read.
        """


class ImapMailbox(MailboxSource):
    """Reads unseen messages over IMAP.

    ``imaplib`` blocks, so each fetch runs in a worker thread. Fetching a
    message with RFC822 sets its \\Seen flag.
    """

    def __init__(
        self,
        host: str,
        port: int = 993,
        *,
        username: str,
        password: str,
        use_tls: bool = True,
        mailbox: str = "INBOX",
        timeout: float = 30.0,
    ) -> None:
        """Initialize IMAP mailbox.

        Args:
            host: IMAP host.
            port: IMAP port.
            username: Login user.
            password: Login password.
            use_tls: Connect with implicit TLS.
            mailbox: Folder to read.
            timeout: Socket timeout in seconds.
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.mailbox = mailbox
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config) -> ImapMailbox:
        """Build a mailbox from configuration.

        Raises:
            MailboxError: If IMAP is not configured.
        """
        if not config.has_imap() or not (config.imap_host and config.imap_user):
            raise MailboxError("IMAP is not configured")
        return cls(
            config.imap_host,
            config.imap_port,
            username=config.imap_user,
            password=config.imap_password or "",
            use_tls=config.imap_tls,
            mailbox=config.imap_mailbox,
        )

    def _connect(self) -> imaplib.IMAP4:
        if self.use_tls:
            return imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout)
        return imaplib.IMAP4(self.host, self.port, timeout=self.timeout)

    def _fetch_sync(self) -> list[RawMessage]:
        client = self._connect()
        try:
            client.login(self.username, self.password)
            client.select(self.mailbox)
            status, data = client.search(None, "UNSEEN")
            if status != "OK":
                raise MailboxError(f"IMAP search failed: {status}")

            messages = []
            for uid in data[0].split():
                status, parts = client.fetch(uid, "(RFC822)")
                if status != "OK":
                    raise MailboxError(f"IMAP fetch of {uid.decode()} failed: {status}")
                for part in parts:
                    if isinstance(part, tuple):
                        messages.append(RawMessage(uid=uid.decode(), raw=part[1]))
            return messages
        finally:
            try:
                client.logout()
            except (imaplib.IMAP4.error, OSError) as exc:
                logger.debug("imap_logout_failed", host=self.host, error=str(exc))

    async def fetch_unread(self) -> list[RawMessage]:
        """Fetch unread messages and mark them as seen.

        Raises:
            MailboxError: If the IMAP exchange fails.
        """
        try:
            messages = await asyncio.to_thread(self._fetch_sync)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxError(f"IMAP error: {exc}") from exc
        await logger.ainfo("mailbox_fetched", host=self.host, count=len(messages))
        return messages

    def _check_sync(self) -> None:
        client = self._connect()
        try:
            client.login(self.username, self.password)
            status, _ = client.select(self.mailbox, readonly=True)
            if status != "OK":
                raise MailboxError(f"IMAP folder {self.mailbox} not available: {status}")
        finally:
            try:
                client.logout()
            except (imaplib.IMAP4.error, OSError) as exc:
                logger.debug("imap_logout_failed", host=self.host, error=str(exc))

    async def check_connection(self) -> None:
        """Log in and open the folder read-only without fetching anything.

        Raises:
            MailboxError: If the server, the credentials or the folder
                          are not usable.
        """
        try:
            await asyncio.to_thread(self._check_sync)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxError(f"IMAP error: {exc}") from exc
        await logger.ainfo("mailbox_connection_ok", host=self.host, mailbox=self.mailbox)
