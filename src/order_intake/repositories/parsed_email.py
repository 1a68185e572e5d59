"""Parsed email repository for database operations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.models.parsed_email import EmailStatus, ParsedEmail


class ParsedEmailRepository:
    """Repository for incoming email records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def create(
        self,
        *,
        sender_email: str,
        subject: str | None,
        raw_body: str,
        status: EmailStatus,
        error_message: str | None = None,
        message_id: str | None = None,
        duplicate_of: int | None = None,
        received_at: datetime | None = None,
    ) -> ParsedEmail:
        """Store an incoming email on its own.

        Args:
            sender_email: Sender address.
            subject: Subject line.
            raw_body: Body as received.
            status: Processing status.
            error_message: Parse error, if any.
            message_id: External message id.
            duplicate_of: Earlier pending order this email duplicates.
            received_at: Arrival timestamp.

        Returns:
            Created email record.
        """
        email = ParsedEmail(
            sender_email=sender_email,
            subject=subject,
            raw_body=raw_body,
            status=status.value,
            error_message=error_message,
            message_id=message_id,
            duplicate_of=duplicate_of,
            received_at=received_at,
        )
        self.session.add(email)
        await self.session.commit()
        await self.session.refresh(email)
        return email

    async def get_by_id(self, email_id: int) -> ParsedEmail | None:
        """Get email by ID.

        Args:
            email_id: Email ID.

        Returns:
            Email if found, None otherwise.
        """
        result = await self.session.execute(select(ParsedEmail).where(ParsedEmail.id == email_id))
        return result.scalar_one_or_none()

    async def exists_by_message_id(self, message_id: str) -> bool:
        """Check whether a message was already ingested.

        Args:
            message_id: External message id.

        Returns:
            True if an email with this id is stored.
        """
        query = (
            select(func.count())
            .select_from(ParsedEmail)
            .where(ParsedEmail.message_id == message_id)
        )
        result = await self.session.execute(query)
        return (result.scalar() or 0) > 0
