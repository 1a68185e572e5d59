"""Per-sender rate limit state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from order_intake.models.base import Base


class RateLimitState(Base):
    """Parse attempts of one sender in the current window."""

    __tablename__ = "email_rate_limits"

    sender_email: Mapped[str] = mapped_column(String, primary_key=True)
    parse_count_this_minute: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_reset: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Advisory only, never consulted when admitting attempts
    is_throttled: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"RateLimitState(sender={self.sender_email!r}, "
            f"count={self.parse_count_this_minute}, throttled={self.is_throttled})"
        )
