"""Rate limit state repository for database operations."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.models.rate_limit import RateLimitState


class RateLimitRepository:
    """Repository for per-sender rate limit counters."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def get(self, sender_email: str) -> RateLimitState | None:
        """Get the counter for a sender.

        Args:
            sender_email: Sender address.

        Returns:
            State if found, None otherwise.
        """
        result = await self.session.execute(
            select(RateLimitState).where(RateLimitState.sender_email == sender_email)
        )
        return result.scalar_one_or_none()

    async def save(self, state: RateLimitState) -> RateLimitState:
        """Insert or update a counter.

        Args:
            state: State to persist.

        Returns:
            Persisted state.
        """
        self.session.add(state)
        await self.session.commit()
        await self.session.refresh(state)
        return state
