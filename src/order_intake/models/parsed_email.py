"""Parsed (incoming) email model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from order_intake.models.base import Base

if TYPE_CHECKING:
    from order_intake.models.pending_order import PendingOrder


class EmailStatus(str, Enum):
    """Processing status of an incoming email."""

    PARSED = "PARSED"
    DUPLICATE = "DUPLICATE"
    ERROR = "ERROR"


class ParsedEmail(Base):
    """An order email as received. Never mutated after insert."""

    __tablename__ = "parsed_emails"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    subject: Mapped[str | None] = mapped_column(String, nullable=True)
    raw_body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String, nullable=False)
    error_message: Mapped[str | None] = mapped_column(String, nullable=True)
    message_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    # Earlier pending order this email duplicates; not a foreign key
    duplicate_of: Mapped[int | None] = mapped_column(Integer, nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    # Relationships
    pending_order: Mapped[PendingOrder | None] = relationship(
        "PendingOrder",
        back_populates="parsed_email",
        uselist=False,
    )

    @property
    def is_error(self) -> bool:
        """Check if parsing failed for this email."""
        return self.status == EmailStatus.ERROR.value

    def __repr__(self) -> str:
        """Return string representation."""
        return f"ParsedEmail(id={self.id}, sender={self.sender_email!r}, status={self.status!r})"
