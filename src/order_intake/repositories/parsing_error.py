"""Parsing error repository for database operations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.models.parsing_error import ParsingError


class ParsingErrorRepository:
    """Repository for aggregated parse failures."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def find_recent(
        self, sender_email: str, error_type: str, since: datetime
    ) -> ParsingError | None:
        """Find the newest error row for a sender and type.

        Args:
            sender_email: Sender address.
            error_type: Error kind.
            since: Only rows created after this instant count.

        Returns:
            Error row if found, None otherwise.
        """
        query = (
            select(ParsingError)
            .where(
                and_(
                    ParsingError.sender_email == sender_email,
                    ParsingError.error_type == error_type,
                    ParsingError.created_at > since,
                )
            )
            .order_by(ParsingError.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def record(
        self,
        *,
        sender_email: str,
        raw_body: str,
        error_type: str,
        error_message: str | None,
        now: datetime,
        since: datetime,
    ) -> tuple[ParsingError, bool]:
        """Record a parse failure, folding repeats into one row.

        Args:
            sender_email: Sender address.
            raw_body: Body that failed to parse.
            error_type: Error kind.
            error_message: Human-readable reason.
            now: Current time.
            since: Start of the dedup window.

        Returns:
            Tuple of (error row, True if an existing row was incremented).
        """
        existing = await self.find_recent(sender_email, error_type, since)
        if existing is not None:
            existing.parse_attempt_count += 1
            existing.last_attempt_at = now
            await self.session.commit()
            await self.session.refresh(existing)
            return existing, True

        error = ParsingError(
            sender_email=sender_email,
            raw_body=raw_body,
            error_type=error_type,
            error_message=error_message,
            parse_attempt_count=1,
            created_at=now,
            last_attempt_at=now,
        )
        self.session.add(error)
        await self.session.commit()
        await self.session.refresh(error)
        return error, False

    async def list_recent(self, *, limit: int = 50, offset: int = 0) -> list[ParsingError]:
        """List errors, newest first.

        Args:
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            Error rows.
        """
        query = (
            select(ParsingError)
            .order_by(ParsingError.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_since(self, since: datetime) -> int:
        """Count error rows created after a point in time."""
        query = select(func.count()).select_from(ParsingError).where(ParsingError.created_at > since)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def delete(self, error_id: int) -> bool:
        """Delete an error row.

        Args:
            error_id: Error row ID.

        Returns:
            True if a row was deleted, False if it did not exist.
        """
        error = await self.session.get(ParsingError, error_id)
        if error is None:
            return False
        await self.session.delete(error)
        await self.session.commit()
        return True
