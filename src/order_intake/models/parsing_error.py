"""Parsing error model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from order_intake.models.base import Base


class ParsingError(Base):
    """Aggregated parse failures per sender and error type.

    Repeated failures inside the dedup window bump ``parse_attempt_count``
    instead of adding rows.
    """

    __tablename__ = "email_parsing_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    raw_body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    error_type: Mapped[str] = mapped_column(String, nullable=False)
    error_message: Mapped[str | None] = mapped_column(String, nullable=True)
    parse_attempt_count: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"ParsingError(id={self.id}, sender={self.sender_email!r}, "
            f"type={self.error_type!r}, attempts={self.parse_attempt_count})"
        )
