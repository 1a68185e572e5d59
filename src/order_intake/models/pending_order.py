"""Pending order model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from order_intake.models.base import Base

if TYPE_CHECKING:
    from order_intake.models.parsed_email import ParsedEmail


class PendingOrderStatus(str, Enum):
    """Lifecycle status of a pending order."""

    PENDING_REVIEW = "PENDING_REVIEW"
    AUTO_APPROVED = "AUTO_APPROVED"
    DUPLICATE_WARNING = "DUPLICATE_WARNING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSED = "PROCESSED"


# Statuses only move forward; REJECTED and PROCESSED are terminal.
ALLOWED_TRANSITIONS: dict[PendingOrderStatus, frozenset[PendingOrderStatus]] = {
    PendingOrderStatus.PENDING_REVIEW: frozenset(
        {PendingOrderStatus.APPROVED, PendingOrderStatus.REJECTED}
    ),
    PendingOrderStatus.AUTO_APPROVED: frozenset(
        {PendingOrderStatus.APPROVED, PendingOrderStatus.REJECTED}
    ),
    PendingOrderStatus.DUPLICATE_WARNING: frozenset(
        {PendingOrderStatus.APPROVED, PendingOrderStatus.REJECTED}
    ),
    PendingOrderStatus.APPROVED: frozenset({PendingOrderStatus.PROCESSED}),
    PendingOrderStatus.REJECTED: frozenset(),
    PendingOrderStatus.PROCESSED: frozenset(),
}

REVIEW_QUEUE_STATUSES = (
    PendingOrderStatus.PENDING_REVIEW,
    PendingOrderStatus.DUPLICATE_WARNING,
)


def can_transition(current: PendingOrderStatus | str, target: PendingOrderStatus | str) -> bool:
    """Check whether a status change is allowed."""
    return PendingOrderStatus(target) in ALLOWED_TRANSITIONS[PendingOrderStatus(current)]


class PendingOrder(Base):
    """An extracted order awaiting auto- or human approval."""

    __tablename__ = "pending_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parsed_email_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("parsed_emails.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    extracted_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    extracted_product_name: Mapped[str] = mapped_column(String, nullable=False)
    product_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, index=True)
    pattern_used: Mapped[str | None] = mapped_column(String, nullable=True)
    match_type: Mapped[str | None] = mapped_column(String, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_order_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )

    # Relationships
    parsed_email: Mapped[ParsedEmail] = relationship(
        "ParsedEmail",
        back_populates="pending_order",
        lazy="selectin",
    )

    @property
    def is_terminal(self) -> bool:
        """Check if the order can no longer change status."""
        return not ALLOWED_TRANSITIONS[PendingOrderStatus(self.status)]

    @property
    def is_resolved(self) -> bool:
        """Check if the order points at a catalog product."""
        return self.product_id is not None

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"PendingOrder(id={self.id}, status={self.status!r}, "
            f"qty={self.extracted_quantity}, confidence={self.confidence_score})"
        )
