"""Pending order repository for database operations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.models.parsed_email import ParsedEmail
from order_intake.models.pending_order import (
    REVIEW_QUEUE_STATUSES,
    PendingOrder,
    PendingOrderStatus,
)


class PendingOrderRepository:
    """Repository for pending order database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def create_with_email(self, email: ParsedEmail, order: PendingOrder) -> PendingOrder:
        """Store an email and the pending order derived from it.

        Both rows are written in one transaction; on failure neither is kept.

        Args:
            email: Unsaved email record.
            order: Unsaved pending order.

        Returns:
            Created pending order.
        """
        try:
            self.session.add(email)
            await self.session.flush()
            order.parsed_email_id = email.id
            self.session.add(order)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(order)
        return order

    async def get_by_id(self, order_id: int) -> PendingOrder | None:
        """Get pending order by ID.

        Args:
            order_id: Pending order ID.

        Returns:
            Pending order if found, None otherwise.
        """
        result = await self.session.execute(select(PendingOrder).where(PendingOrder.id == order_id))
        return result.scalar_one_or_none()

    async def find_recent_duplicate(
        self,
        sender_email: str,
        product_id: int,
        quantity: int,
        since: datetime,
    ) -> PendingOrder | None:
        """Find the newest non-rejected order with the same sender, product and quantity.

        Args:
            sender_email: Sender address.
            product_id: Resolved catalog product.
            quantity: Extracted quantity.
            since: Only orders created after this instant count.

        Returns:
            Most recent matching order, None if there is none.
        """
        query = (
            select(PendingOrder)
            .where(
                and_(
                    PendingOrder.sender_email == sender_email,
                    PendingOrder.product_id == product_id,
                    PendingOrder.extracted_quantity == quantity,
                    PendingOrder.created_at > since,
                    PendingOrder.status != PendingOrderStatus.REJECTED.value,
                )
            )
            .order_by(PendingOrder.created_at.desc(), PendingOrder.id.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_status(
        self,
        *,
        status: PendingOrderStatus | None = None,
        min_confidence: float | None = None,
        max_confidence: float | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[PendingOrder], int]:
        """List pending orders for review.

        Args:
            status: Filter by status. Defaults to the review queue
                    (PENDING_REVIEW and DUPLICATE_WARNING).
            min_confidence: Lower confidence bound (inclusive).
            max_confidence: Upper confidence bound (inclusive).
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            Tuple of (orders list, total count).
        """
        conditions = []
        if status is not None:
            conditions.append(PendingOrder.status == status.value)
        else:
            conditions.append(PendingOrder.status.in_([s.value for s in REVIEW_QUEUE_STATUSES]))
        if min_confidence is not None:
            conditions.append(PendingOrder.confidence_score >= min_confidence)
        if max_confidence is not None:
            conditions.append(PendingOrder.confidence_score <= max_confidence)

        # Get total count
        count_query = select(func.count()).select_from(PendingOrder).where(and_(*conditions))
        count_result = await self.session.execute(count_query)
        total = count_result.scalar() or 0

        # Get orders
        query = (
            select(PendingOrder)
            .where(and_(*conditions))
            .order_by(PendingOrder.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        orders = list(result.scalars().all())

        return orders, total

    async def count_by_status(self) -> dict[str, int]:
        """Count pending orders per status.

        Returns:
            Mapping of status value to count.
        """
        query = select(PendingOrder.status, func.count()).group_by(PendingOrder.status)
        result = await self.session.execute(query)
        return {status: count for status, count in result.all()}

    async def average_confidence(self, since: datetime) -> float | None:
        """Average confidence of orders created after a point in time."""
        query = select(func.avg(PendingOrder.confidence_score)).where(
            PendingOrder.created_at > since
        )
        result = await self.session.execute(query)
        value = result.scalar()
        return float(value) if value is not None else None
