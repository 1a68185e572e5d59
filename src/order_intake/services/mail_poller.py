"""Mailbox polling: feeds unread emails into order intake."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.core.clock import Clock, utcnow
from order_intake.core.config import IntakePolicy
from order_intake.mail.imap import MailboxError, MailboxSource, RawMessage
from order_intake.mail.message import parse_raw_email, parse_received_at
from order_intake.repositories.parsed_email import ParsedEmailRepository
from order_intake.services.notifications import Notifier, NullNotifier
from order_intake.services.order_intake import OrderIntakeService

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]
IntakeFactory = Callable[[AsyncSession], OrderIntakeService]


@dataclass
class PollResult:
    """Counts from one poll cycle."""

    skipped: bool = False
    fetched: int = 0
    accepted: int = 0
    rejected: int = 0
    skipped_known: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def processed(self) -> int:
        """Messages that went through order intake."""
        return self.accepted + self.rejected


@dataclass(frozen=True, slots=True)
class PollerStatus:
    """Configuration and run state of the poller."""

    mailbox_configured: bool
    notifications_configured: bool
    running: bool
    polling: bool
    interval_minutes: float | None = None
    last_poll_at: datetime | None = None


class MailPoller:
    """Fetches unread mail and runs each message through order intake.

    At most one poll runs at a time; a poll requested while another is in
    flight returns immediately with ``skipped`` set.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        mailbox: MailboxSource | None,
        *,
        notifier: Notifier | None = None,
        policy: IntakePolicy | None = None,
        intake_factory: IntakeFactory | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize poller.

        Args:
            session_factory: Opens a fresh session per message.
            mailbox: Mail source; None disables polling.
            notifier: Sends notices to senders.
            policy: Intake thresholds.
            intake_factory: Builds the intake service for a session.
            clock: Time source.
        """
        self._session_factory = session_factory
        self.mailbox = mailbox
        self.notifier = notifier or NullNotifier()
        self.policy = policy or IntakePolicy()
        self._intake_factory = intake_factory or self._default_intake
        self._clock = clock
        self._in_flight = False
        self._task: asyncio.Task[None] | None = None
        self._interval_minutes: float | None = None
        self.last_poll_at: datetime | None = None

    def _default_intake(self, session: AsyncSession) -> OrderIntakeService:
        return OrderIntakeService(
            session,
            notifier=self.notifier,
            policy=self.policy,
            clock=self._clock,
        )

    @property
    def is_running(self) -> bool:
        """Check if periodic polling is active."""
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> PollResult:
        """Run one poll cycle.

        Returns:
            Poll counts; ``skipped`` when another poll was in flight and
            ``error`` when the mailbox could not be read.
        """
        if self._in_flight:
            await logger.ainfo("poll_skipped", reason="in_flight")
            return PollResult(skipped=True)
        if self.mailbox is None:
            return PollResult(error="Mailbox is not configured")

        self._in_flight = True
        try:
            return await self._poll(self.mailbox)
        finally:
            self._in_flight = False
            self.last_poll_at = self._clock()

    async def _poll(self, mailbox: MailboxSource) -> PollResult:
        try:
            messages = await mailbox.fetch_unread()
        except MailboxError as exc:
            await logger.aerror("poll_failed", error=str(exc))
            return PollResult(error=str(exc))

        result = PollResult(fetched=len(messages))
        for message in messages:
            try:
                await self._handle(message, result)
            except SQLAlchemyError as exc:
                result.failed += 1
                await logger.aerror("message_failed", uid=message.uid, error=str(exc))

        await logger.ainfo(
            "poll_completed",
            fetched=result.fetched,
            accepted=result.accepted,
            rejected=result.rejected,
            skipped_known=result.skipped_known,
            failed=result.failed,
        )
        return result

    async def _handle(self, message: RawMessage, result: PollResult) -> None:
        data = parse_raw_email(message.raw)
        sender = data.get("from_email")
        if not sender:
            result.failed += 1
            await logger.awarning("message_without_sender", uid=message.uid)
            return

        message_id = data.get("message_id")
        async with self._session_factory() as session:
            if message_id and await ParsedEmailRepository(session).exists_by_message_id(message_id):
                result.skipped_known += 1
                return

            intake = self._intake_factory(session)
            outcome = await intake.process_incoming_order_email(
                sender,
                data.get("subject"),
                data.get("body_text", ""),
                message_id=message_id,
                received_at=parse_received_at(data.get("date_str")),
            )

        if outcome.outcome == "accepted":
            result.accepted += 1
        else:
            result.rejected += 1

    async def _run(self, interval_minutes: float) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(interval_minutes * 60)

    def start(self, interval_minutes: float) -> None:
        """Start periodic polling; a no-op when already running.

        Args:
            interval_minutes: Delay between the end of one poll and the
                              start of the next.
        """
        if self.is_running:
            return
        self._interval_minutes = interval_minutes
        self._task = asyncio.create_task(self._run(interval_minutes))
        logger.info("poller_started", interval_minutes=interval_minutes)

    async def stop(self) -> None:
        """Stop periodic polling and wait for the loop to exit."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await logger.ainfo("poller_stopped")

    async def reconfigure(
        self,
        mailbox: MailboxSource | None,
        notifier: Notifier | None = None,
    ) -> None:
        """Replace the mailbox and notifier, restarting polling if it was on.

        Args:
            mailbox: New mail source.
            notifier: New notifier; None disables notices.
        """
        was_running = self.is_running
        interval = self._interval_minutes
        await self.stop()
        self.mailbox = mailbox
        self.notifier = notifier or NullNotifier()
        await logger.ainfo(
            "poller_reconfigured",
            mailbox_configured=mailbox is not None,
            notifications_configured=self.notifier.is_configured,
        )
        if was_running and interval is not None and mailbox is not None:
            self.start(interval)

    def status(self) -> PollerStatus:
        """Report configuration and run state."""
        return PollerStatus(
            mailbox_configured=self.mailbox is not None,
            notifications_configured=self.notifier.is_configured,
            running=self.is_running,
            polling=self._in_flight,
            interval_minutes=self._interval_minutes if self.is_running else None,
            last_poll_at=self.last_poll_at,
        )
