"""Review service: approve, reject and inspect pending orders."""

from __future__ import annotations

from datetime import timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.core.clock import Clock, utcnow
from order_intake.core.collaborators import CollaboratorError, OrderCreator
from order_intake.models.pending_order import PendingOrder, PendingOrderStatus, can_transition
from order_intake.repositories.parsing_error import ParsingErrorRepository
from order_intake.repositories.pending_order import PendingOrderRepository
from order_intake.schemas.pending_order import (
    ApprovalResult,
    IntakeStats,
    ParsingErrorResponse,
    PendingOrderListResponse,
    PendingOrderResponse,
)
from order_intake.services.notifications import (
    NotificationKind,
    Notifier,
    NullNotifier,
    send_best_effort,
)
from order_intake.services.order_creation import SqlOrderCreator

logger = structlog.get_logger(__name__)

AUTO_APPROVAL_ACTOR = "system"
STATS_WINDOW = timedelta(days=7)


class PendingOrderNotFoundError(Exception):
    """Raised when a pending order is not found."""

    def __init__(self, pending_order_id: int) -> None:
        """Initialize error.

        Args:
            pending_order_id: The pending order ID that was not found.
        """
        self.pending_order_id = pending_order_id
        super().__init__(f"Pending order {pending_order_id} not found")


class ParsingErrorNotFoundError(Exception):
    """Raised when a parsing error row is not found."""

    def __init__(self, error_id: int) -> None:
        """Initialize error.

        Args:
            error_id: The parsing error ID that was not found.
        """
        self.error_id = error_id
        super().__init__(f"Parsing error {error_id} not found")


class InvalidStatusTransitionError(Exception):
    """Raised when a review action does not fit the order's current status."""

    def __init__(
        self,
        pending_order_id: int,
        current: PendingOrderStatus,
        target: PendingOrderStatus,
    ) -> None:
        """Initialize error.

        Args:
            pending_order_id: Pending order ID.
            current: Status the order is in.
            target: Status the action tried to reach.
        """
        self.pending_order_id = pending_order_id
        self.current = current
        self.target = target
        super().__init__(
            f"Pending order {pending_order_id} cannot move from {current.value} to {target.value}"
        )


class OrderProcessingError(Exception):
    """Raised when an approved order could not be turned into a sales order."""

    def __init__(self, pending_order_id: int, reason: str) -> None:
        """Initialize error.

        Args:
            pending_order_id: Pending order ID.
            reason: Failure description.
        """
        self.pending_order_id = pending_order_id
        self.reason = reason
        super().__init__(f"Pending order {pending_order_id} could not be processed: {reason}")


class ReviewService:
    """Service for review actions on pending orders."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        order_creator: OrderCreator | None = None,
        notifier: Notifier | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
            order_creator: Creates sales orders; defaults to the SQL one
                           sharing this session.
            notifier: Sends notices to senders.
            clock: Time source.
        """
        self.session = session
        self._repo = PendingOrderRepository(session)
        self._errors = ParsingErrorRepository(session)
        self._order_creator = order_creator or SqlOrderCreator(session, clock=clock)
        self._notifier = notifier or NullNotifier()
        self._clock = clock

    async def _get_or_raise(self, pending_order_id: int) -> PendingOrder:
        pending = await self._repo.get_by_id(pending_order_id)
        if pending is None:
            raise PendingOrderNotFoundError(pending_order_id)
        return pending

    @staticmethod
    def _check_transition(pending: PendingOrder, target: PendingOrderStatus) -> None:
        current = PendingOrderStatus(pending.status)
        if not can_transition(current, target):
            raise InvalidStatusTransitionError(pending.id, current, target)

    async def approve(
        self,
        pending_order_id: int,
        *,
        actor: str | None = None,
        notes: str | None = None,
        product_id: int | None = None,
    ) -> ApprovalResult:
        """Approve a pending order and create its sales order.

        APPROVED, order creation and PROCESSED happen in one transaction,
        so a failure leaves the pending order untouched.

        Args:
            pending_order_id: Pending order ID.
            actor: Who approved it.
            notes: Reviewer notes.
            product_id: Catalog product chosen by the reviewer, replacing
                        the matched one.

        Returns:
            Approval result with the created order and invoice.

        Raises:
            PendingOrderNotFoundError: If the pending order does not exist.
            InvalidStatusTransitionError: If it was already approved,
                processed or rejected.
            OrderProcessingError: If no product is assigned or the sales
                order could not be created.
        """
        pending = await self._get_or_raise(pending_order_id)
        self._check_transition(pending, PendingOrderStatus.APPROVED)

        if product_id is not None:
            pending.product_id = product_id
        if not pending.is_resolved:
            raise OrderProcessingError(pending_order_id, "no catalog product assigned")

        try:
            pending.status = PendingOrderStatus.APPROVED.value
            pending.approved_at = self._clock()
            pending.approved_by = actor
            if notes is not None:
                pending.admin_notes = notes
            await self.session.flush()

            created = await self._order_creator.create_order_from_approved_pending(pending_order_id)

            pending.status = PendingOrderStatus.PROCESSED.value
            pending.created_order_id = created.order_id
            await self.session.commit()
        except (CollaboratorError, SQLAlchemyError) as exc:
            await self.session.rollback()
            await logger.aerror(
                "approval_failed",
                pending_order_id=pending_order_id,
                error=str(exc),
            )
            raise OrderProcessingError(pending_order_id, str(exc)) from exc

        await self.session.refresh(pending)
        await logger.ainfo(
            "pending_order_processed",
            pending_order_id=pending_order_id,
            order_id=created.order_id,
            invoice_number=created.invoice_number,
            actor=actor,
        )

        notified = await send_best_effort(
            self._notifier,
            NotificationKind.APPROVAL,
            pending.sender_email,
            {
                "order_id": created.order_id,
                "product_name": pending.extracted_product_name,
                "quantity": pending.extracted_quantity,
            },
        )

        return ApprovalResult(
            pending_order=self._to_response(pending),
            order_id=created.order_id,
            invoice_id=created.invoice_id,
            invoice_number=created.invoice_number,
            total_amount=created.total_amount,
            notified=notified,
        )

    async def reject(
        self,
        pending_order_id: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        notify: bool = True,
    ) -> PendingOrderResponse:
        """Reject a pending order.

        Args:
            pending_order_id: Pending order ID.
            reason: Reason told to the sender.
            notes: Reviewer notes; the reason is stored when omitted.
            notify: Send a rejection notice to the sender.

        Returns:
            Updated pending order response.

        Raises:
            PendingOrderNotFoundError: If the pending order does not exist.
            InvalidStatusTransitionError: If it is approved or terminal.
        """
        pending = await self._get_or_raise(pending_order_id)
        self._check_transition(pending, PendingOrderStatus.REJECTED)

        pending.status = PendingOrderStatus.REJECTED.value
        pending.admin_notes = notes if notes is not None else reason
        await self.session.commit()
        await self.session.refresh(pending)
        await logger.ainfo("pending_order_rejected", pending_order_id=pending_order_id)

        if notify:
            await send_best_effort(
                self._notifier,
                NotificationKind.REJECTION,
                pending.sender_email,
                {"reason": reason or "Order rejected"},
            )
        return self._to_response(pending)

    async def get(self, pending_order_id: int) -> PendingOrderResponse:
        """Get a pending order with its originating email.

        Raises:
            PendingOrderNotFoundError: If the pending order does not exist.
        """
        pending = await self._get_or_raise(pending_order_id)
        return self._to_response(pending)

    async def list_queue(
        self,
        *,
        status: PendingOrderStatus | None = None,
        min_confidence: float | None = None,
        max_confidence: float | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> PendingOrderListResponse:
        """List pending orders, newest first.

        Args:
            status: Filter by status; defaults to the review queue.
            min_confidence: Lower confidence bound.
            max_confidence: Upper confidence bound.
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            Paginated pending order list.
        """
        orders, total = await self._repo.list_by_status(
            status=status,
            min_confidence=min_confidence,
            max_confidence=max_confidence,
            limit=limit,
            offset=offset,
        )
        return PendingOrderListResponse(
            orders=[self._to_response(o) for o in orders],
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(orders) < total,
        )

    async def list_errors(self, *, limit: int = 50, offset: int = 0) -> list[ParsingErrorResponse]:
        """List recent parsing errors, newest first."""
        errors = await self._errors.list_recent(limit=limit, offset=offset)
        return [ParsingErrorResponse.model_validate(e) for e in errors]

    async def dismiss_error(self, error_id: int) -> None:
        """Delete a parsing error once it has been handled by hand.

        Raises:
            ParsingErrorNotFoundError: If the error does not exist.
        """
        if not await self._errors.delete(error_id):
            raise ParsingErrorNotFoundError(error_id)
        await logger.ainfo("parsing_error_dismissed", error_id=error_id)

    async def stats(self) -> IntakeStats:
        """Summarize pending orders and recent parse errors.

        Returns:
            Counts per status plus error count and average confidence
            over the last 7 days.
        """
        since = self._clock() - STATS_WINDOW
        counts = await self._repo.count_by_status()
        errors = await self._errors.count_since(since)
        average = await self._repo.average_confidence(since)

        return IntakeStats(
            total=sum(counts.values()),
            pending_review=counts.get(PendingOrderStatus.PENDING_REVIEW.value, 0),
            auto_approved=counts.get(PendingOrderStatus.AUTO_APPROVED.value, 0),
            duplicate_warning=counts.get(PendingOrderStatus.DUPLICATE_WARNING.value, 0),
            approved=counts.get(PendingOrderStatus.APPROVED.value, 0),
            rejected=counts.get(PendingOrderStatus.REJECTED.value, 0),
            processed=counts.get(PendingOrderStatus.PROCESSED.value, 0),
            errors_last_7_days=errors,
            average_confidence=round(average, 4) if average is not None else None,
        )

    def _to_response(self, pending: PendingOrder) -> PendingOrderResponse:
        """Convert pending order model to response schema."""
        response = PendingOrderResponse.model_validate(pending)
        email = pending.parsed_email
        if email is not None:
            response = response.model_copy(
                update={"email_subject": email.subject, "email_body": email.raw_body}
            )
        return response
