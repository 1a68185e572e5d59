"""Order intake orchestration for incoming order emails."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.core.clock import Clock, utcnow
from order_intake.core.collaborators import CatalogProvider, CollaboratorError, OrderCreator
from order_intake.core.config import IntakePolicy
from order_intake.models.parsed_email import EmailStatus, ParsedEmail
from order_intake.models.pending_order import PendingOrder, PendingOrderStatus
from order_intake.parsing.matcher import CatalogEntry
from order_intake.parsing.parser import (
    ParsedOrder,
    ParseFailure,
    extract_order,
    parse_email_body,
    resolve_candidate,
)
from order_intake.repositories.catalog import CatalogRepository
from order_intake.repositories.parsed_email import ParsedEmailRepository
from order_intake.repositories.parsing_error import ParsingErrorRepository
from order_intake.repositories.pending_order import PendingOrderRepository
from order_intake.repositories.rate_limit import RateLimitRepository
from order_intake.schemas.intake import AcceptedIntake, ParsePreview, RejectedIntake
from order_intake.services.guards import DuplicateCheck, DuplicateDetector, RateLimiter
from order_intake.services.notifications import (
    NotificationKind,
    Notifier,
    NullNotifier,
    send_best_effort,
)
from order_intake.services.review_service import (
    AUTO_APPROVAL_ACTOR,
    OrderProcessingError,
    ReviewService,
)

logger = structlog.get_logger(__name__)

# Repeated failures of one sender inside this window share an error row
ERROR_DEDUP_WINDOW = timedelta(days=1)


def route_status(
    confidence: float,
    is_duplicate: bool,
    auto_approve_threshold: float,
) -> PendingOrderStatus:
    """Pick the initial status of a new pending order.

    Duplicates always go to review, whatever their confidence.
    """
    if is_duplicate:
        return PendingOrderStatus.DUPLICATE_WARNING
    if confidence >= auto_approve_threshold:
        return PendingOrderStatus.AUTO_APPROVED
    return PendingOrderStatus.PENDING_REVIEW


def build_preview(
    outcome: ParsedOrder | ParseFailure,
    auto_approve_threshold: float,
) -> ParsePreview:
    """Describe a parse outcome for operators."""
    if isinstance(outcome, ParseFailure):
        return ParsePreview(success=False, error=outcome.message)

    return ParsePreview(
        success=True,
        quantity=outcome.quantity,
        raw_product_name=outcome.candidate.raw_phrase,
        product_name=outcome.product_name,
        product_id=outcome.product_id,
        match_type=outcome.match_type.value,
        pattern_used=outcome.candidate.pattern_name,
        confidence=outcome.confidence,
        would_auto_approve=outcome.confidence >= auto_approve_threshold,
    )


class OrderIntakeService:
    """Turns incoming order emails into pending orders.

    One instance works on one session; create a new one per email.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        catalog: CatalogProvider | None = None,
        order_creator: OrderCreator | None = None,
        notifier: Notifier | None = None,
        policy: IntakePolicy | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
            catalog: Product catalog source; defaults to the products table.
            order_creator: Creates sales orders for auto-approved orders.
            notifier: Sends notices to senders.
            policy: Routing and throttling thresholds.
            clock: Time source.
        """
        self.session = session
        self.policy = policy or IntakePolicy()
        self._clock = clock
        self._notifier = notifier or NullNotifier()
        self._catalog = catalog or CatalogRepository(session)
        self._emails = ParsedEmailRepository(session)
        self._orders = PendingOrderRepository(session)
        self._errors = ParsingErrorRepository(session)
        self._rate_limiter = RateLimiter(
            RateLimitRepository(session),
            max_attempts=self.policy.rate_limit_max_attempts,
            window_seconds=self.policy.rate_limit_window_seconds,
            clock=clock,
        )
        self._duplicates = DuplicateDetector(
            self._orders,
            window_hours=self.policy.duplicate_window_hours,
            clock=clock,
        )
        self._review = ReviewService(
            session,
            order_creator=order_creator,
            notifier=self._notifier,
            clock=clock,
        )

    async def test_parse(
        self,
        body: object,
        catalog: Sequence[CatalogEntry] | None = None,
    ) -> ParsePreview:
        """Parse a body without storing anything or counting an attempt.

        Args:
            body: Email body.
            catalog: Catalog snapshot to match against; read from the
                     catalog provider when omitted.

        Returns:
            Preview of the extracted order.

        Raises:
            CollaboratorError: If the catalog cannot be read.
        """
        entries = list(catalog) if catalog is not None else await self._catalog.lookup_catalog()
        outcome = parse_email_body(body, entries)
        return build_preview(outcome, self.policy.auto_approve_threshold)

    async def process_incoming_order_email(
        self,
        sender_email: str,
        subject: str | None,
        body: object,
        message_id: str | None = None,
        received_at: datetime | None = None,
    ) -> AcceptedIntake | RejectedIntake:
        """Process one incoming order email end to end.

        Args:
            sender_email: Sender address.
            subject: Subject line.
            body: Email body.
            message_id: External message id.
            received_at: Arrival time; defaults to now.

        Returns:
            Accepted result with the stored pending order, or a rejection
            naming RATE_LIMITED, UNPARSEABLE or PROCESSING_ERROR.
        """
        try:
            return await self._process(sender_email, subject, body, message_id, received_at)
        except (SQLAlchemyError, CollaboratorError) as exc:
            await self.session.rollback()
            await logger.aerror(
                "intake_failed",
                sender=sender_email,
                message_id=message_id,
                error=str(exc),
            )
            return RejectedIntake(reason="PROCESSING_ERROR", message=f"Processing failed: {exc}")

    async def _process(
        self,
        sender_email: str,
        subject: str | None,
        body: object,
        message_id: str | None,
        received_at: datetime | None,
    ) -> AcceptedIntake | RejectedIntake:
        decision = await self._rate_limiter.check(sender_email)
        if not decision.allowed:
            await logger.ainfo("email_rate_limited", sender=sender_email, count=decision.count)
            return RejectedIntake(
                reason="RATE_LIMITED",
                message=decision.message or "Rate limit exceeded",
            )

        outcome = extract_order(body)
        if isinstance(outcome, ParseFailure):
            await self._record_failure(sender_email, subject, body, outcome, message_id, received_at)
            return RejectedIntake(reason="UNPARSEABLE", message=outcome.message)

        catalog = await self._catalog.lookup_catalog()
        parsed = resolve_candidate(outcome, catalog)
        duplicate = await self._duplicates.check(sender_email, parsed.product_id, parsed.quantity)
        status = route_status(
            parsed.confidence,
            duplicate.is_duplicate,
            self.policy.auto_approve_threshold,
        )

        email, pending = self._build_records(
            sender_email, subject, str(body), message_id, received_at, parsed, duplicate, status
        )
        pending = await self._orders.create_with_email(email, pending)
        await logger.ainfo(
            "pending_order_created",
            pending_order_id=pending.id,
            sender=sender_email,
            status=status.value,
            confidence=parsed.confidence,
            match_type=parsed.match_type.value,
            pattern=parsed.candidate.pattern_name,
        )

        created_order_id = None
        if status is PendingOrderStatus.AUTO_APPROVED:
            created_order_id = await self._auto_approve(pending.id)

        return AcceptedIntake(
            pending_order_id=pending.id,
            email_id=email.id,
            quantity=parsed.quantity,
            product_name=parsed.product_name,
            product_id=parsed.product_id,
            confidence=parsed.confidence,
            status=status.value,
            is_duplicate=duplicate.is_duplicate,
            duplicate_of_id=duplicate.original_order_id,
            created_order_id=created_order_id,
        )

    def _build_records(
        self,
        sender_email: str,
        subject: str | None,
        body: str,
        message_id: str | None,
        received_at: datetime | None,
        parsed: ParsedOrder,
        duplicate: DuplicateCheck,
        status: PendingOrderStatus,
    ) -> tuple[ParsedEmail, PendingOrder]:
        email = ParsedEmail(
            sender_email=sender_email,
            subject=subject,
            raw_body=body,
            status=(EmailStatus.DUPLICATE if duplicate.is_duplicate else EmailStatus.PARSED).value,
            message_id=message_id,
            duplicate_of=duplicate.original_order_id,
            received_at=received_at or self._clock(),
        )
        pending = PendingOrder(
            sender_email=sender_email,
            extracted_quantity=parsed.quantity,
            extracted_product_name=parsed.product_name,
            product_id=parsed.product_id,
            confidence_score=parsed.confidence,
            status=status.value,
            pattern_used=parsed.candidate.pattern_name,
            match_type=parsed.match_type.value,
        )
        return email, pending

    async def _record_failure(
        self,
        sender_email: str,
        subject: str | None,
        body: object,
        failure: ParseFailure,
        message_id: str | None,
        received_at: datetime | None,
    ) -> None:
        raw_body = body if isinstance(body, str) else ""
        now = self._clock()
        error, repeated = await self._errors.record(
            sender_email=sender_email,
            raw_body=raw_body,
            error_type=failure.error_type,
            error_message=failure.message,
            now=now,
            since=now - ERROR_DEDUP_WINDOW,
        )
        await self._emails.create(
            sender_email=sender_email,
            subject=subject,
            raw_body=raw_body,
            status=EmailStatus.ERROR,
            error_message=failure.message,
            message_id=message_id,
            received_at=received_at or now,
        )
        await logger.ainfo(
            "email_unparseable",
            sender=sender_email,
            reason=failure.message,
            attempts=error.parse_attempt_count,
            repeated=repeated,
        )
        await send_best_effort(
            self._notifier,
            NotificationKind.CLARIFICATION,
            sender_email,
            {"reason": failure.message},
        )

    async def _auto_approve(self, pending_order_id: int) -> int | None:
        """Approve as the system actor; a failure leaves the order AUTO_APPROVED."""
        try:
            approval = await self._review.approve(pending_order_id, actor=AUTO_APPROVAL_ACTOR)
        except OrderProcessingError as exc:
            await logger.awarning(
                "auto_approval_failed",
                pending_order_id=pending_order_id,
                error=exc.reason,
            )
            return None
        except SQLAlchemyError as exc:
            # The email and pending order are already committed
            await self.session.rollback()
            await logger.awarning(
                "auto_approval_failed",
                pending_order_id=pending_order_id,
                error=str(exc),
            )
            return None
        return approval.order_id
