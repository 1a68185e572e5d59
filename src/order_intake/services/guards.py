"""Per-sender rate limiting and duplicate order detection.

Both guards read and then write shared state without locking. Two emails
from the same sender processed concurrently can both see the old counter
and both be admitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from order_intake.core.clock import Clock, as_utc, utcnow
from order_intake.models.rate_limit import RateLimitState

if TYPE_CHECKING:
    from order_intake.repositories.pending_order import PendingOrderRepository
    from order_intake.repositories.rate_limit import RateLimitRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    count: int
    message: str | None = None


@dataclass(frozen=True, slots=True)
class DuplicateCheck:
    """Outcome of a duplicate check."""

    is_duplicate: bool
    original_order_id: int | None = None
    original_created_at: datetime | None = None


class RateLimiter:
    """Caps parse attempts per sender in a fixed window.

    The window starts at the sender's first attempt after the previous
    window expired, so bursts straddling a window boundary are possible.
    """

    def __init__(
        self,
        repo: RateLimitRepository,
        *,
        max_attempts: int = 5,
        window_seconds: int = 60,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize rate limiter.

        Args:
            repo: Repository holding per-sender counters.
            max_attempts: Attempts allowed per window.
            window_seconds: Window length.
            clock: Time source.
        """
        self._repo = repo
        self.max_attempts = max_attempts
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock

    async def check(self, sender_email: str) -> RateLimitDecision:
        """Count an attempt for a sender and decide whether to admit it.

        Args:
            sender_email: Sender address.

        Returns:
            Decision with the attempt count in the current window.
        """
        now = self._clock()
        state = await self._repo.get(sender_email)

        if state is None:
            state = RateLimitState(
                sender_email=sender_email,
                parse_count_this_minute=1,
                last_reset=now,
                is_throttled=False,
            )
            await self._repo.save(state)
            return RateLimitDecision(allowed=True, count=1)

        if now - as_utc(state.last_reset) > self.window:
            state.parse_count_this_minute = 1
            state.last_reset = now
            state.is_throttled = False
            await self._repo.save(state)
            return RateLimitDecision(allowed=True, count=1)

        if state.parse_count_this_minute >= self.max_attempts:
            state.is_throttled = True
            await self._repo.save(state)
            await logger.awarning(
                "sender_throttled",
                sender=sender_email,
                count=state.parse_count_this_minute,
            )
            return RateLimitDecision(
                allowed=False,
                count=state.parse_count_this_minute,
                message=(
                    f"Rate limit exceeded (max {self.max_attempts} per "
                    f"{int(self.window.total_seconds())} seconds)"
                ),
            )

        state.parse_count_this_minute += 1
        await self._repo.save(state)
        return RateLimitDecision(allowed=True, count=state.parse_count_this_minute)


class DuplicateDetector:
    """Flags repeat orders of the same product and quantity by one sender."""

    def __init__(
        self,
        repo: PendingOrderRepository,
        *,
        window_hours: int = 24,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize duplicate detector.

        Args:
            repo: Pending order repository.
            window_hours: Lookback window.
            clock: Time source.
        """
        self._repo = repo
        self.window = timedelta(hours=window_hours)
        self._clock = clock

    async def check(
        self, sender_email: str, product_id: int | None, quantity: int
    ) -> DuplicateCheck:
        """Look for an earlier matching order inside the window.

        Orders without a resolved product are never duplicates.

        Args:
            sender_email: Sender address.
            product_id: Resolved catalog product, if any.
            quantity: Extracted quantity.

        Returns:
            Duplicate check result naming the most recent original.
        """
        if product_id is None:
            return DuplicateCheck(is_duplicate=False)

        since = self._clock() - self.window
        original = await self._repo.find_recent_duplicate(sender_email, product_id, quantity, since)
        if original is None:
            return DuplicateCheck(is_duplicate=False)

        return DuplicateCheck(
            is_duplicate=True,
            original_order_id=original.id,
            original_created_at=original.created_at,
        )
