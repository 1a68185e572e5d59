"""Tests for the review service."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_intake.core.collaborators import CollaboratorError, CreatedOrder, OrderCreator
from order_intake.models.parsed_email import EmailStatus, ParsedEmail
from order_intake.models.parsing_error import ParsingError
from order_intake.models.pending_order import PendingOrder, PendingOrderStatus
from order_intake.services.notifications import NotificationError, NotificationKind, Notifier
from order_intake.services.review_service import (
    InvalidStatusTransitionError,
    OrderProcessingError,
    ParsingErrorNotFoundError,
    PendingOrderNotFoundError,
    ReviewService,
)

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create a mock async session."""
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def order_creator() -> AsyncMock:
    """Create a mock order creator."""
    creator = AsyncMock(spec=OrderCreator)
    creator.create_order_from_approved_pending.return_value = CreatedOrder(
        order_id=99,
        invoice_id=77,
        invoice_number="INV-1709294400000",
        total_amount=Decimal("2997.00"),
    )
    return creator


@pytest.fixture
def notifier() -> AsyncMock:
    """Create a mock notifier with a configured channel."""
    mock = AsyncMock(spec=Notifier)
    mock.is_configured = True
    return mock


@pytest.fixture
def service(
    mock_session: AsyncMock, order_creator: AsyncMock, notifier: AsyncMock
) -> ReviewService:
    """Create service with mocked repositories."""
    svc = ReviewService(
        mock_session,
        order_creator=order_creator,
        notifier=notifier,
        clock=lambda: NOW,
    )
    svc._repo = AsyncMock()
    svc._errors = AsyncMock()
    return svc


def make_pending(status: PendingOrderStatus, product_id: int | None = 1) -> PendingOrder:
    """Create a pending order with its email."""
    pending = PendingOrder(
        id=21,
        parsed_email_id=11,
        sender_email="kunde@example.com",
        extracted_quantity=3,
        extracted_product_name="Laptop",
        product_id=product_id,
        confidence_score=0.75,
        status=status.value,
        created_at=NOW,
    )
    pending.parsed_email = ParsedEmail(
        id=11,
        sender_email="kunde@example.com",
        subject="Bestellung",
        raw_body="Ich möchte 3 Laptops",
        status=EmailStatus.PARSED.value,
    )
    return pending


class TestApprove:
    """Tests for ReviewService.approve."""

    @pytest.mark.asyncio
    async def test_approve_creates_order(
        self,
        service: ReviewService,
        mock_session: AsyncMock,
        order_creator: AsyncMock,
        notifier: AsyncMock,
    ) -> None:
        """Test approval runs order creation and ends PROCESSED."""
        pending = make_pending(PendingOrderStatus.PENDING_REVIEW)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]

        result = await service.approve(21, actor="alice", notes="ok")

        assert pending.status == PendingOrderStatus.PROCESSED.value
        assert pending.created_order_id == 99
        assert pending.approved_by == "alice"
        assert pending.approved_at == NOW
        assert pending.admin_notes == "ok"
        order_creator.create_order_from_approved_pending.assert_awaited_once_with(21)
        mock_session.flush.assert_awaited_once()
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_called()

        assert result.order_id == 99
        assert result.invoice_number == "INV-1709294400000"
        assert result.total_amount == Decimal("2997.00")
        assert result.notified is True
        assert result.pending_order.status == "PROCESSED"
        assert result.pending_order.email_subject == "Bestellung"

        kind, recipient, payload = notifier.notify.call_args.args
        assert kind is NotificationKind.APPROVAL
        assert recipient == "kunde@example.com"
        assert payload == {"order_id": 99, "product_name": "Laptop", "quantity": 3}

    @pytest.mark.asyncio
    async def test_approve_auto_approved(self, service: ReviewService) -> None:
        """Test that AUTO_APPROVED orders go through the same path."""
        pending = make_pending(PendingOrderStatus.AUTO_APPROVED)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]

        await service.approve(21, actor="system")

        assert pending.status == PendingOrderStatus.PROCESSED.value
        assert pending.approved_by == "system"

    @pytest.mark.parametrize(
        "status",
        [PendingOrderStatus.APPROVED, PendingOrderStatus.PROCESSED, PendingOrderStatus.REJECTED],
    )
    @pytest.mark.asyncio
    async def test_approve_refuses_settled_orders(
        self,
        service: ReviewService,
        order_creator: AsyncMock,
        status: PendingOrderStatus,
    ) -> None:
        """Test the guard against processing an order twice."""
        service._repo.get_by_id.return_value = make_pending(status)  # type: ignore[attr-defined]

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            await service.approve(21)

        assert exc_info.value.current is status
        order_creator.create_order_from_approved_pending.assert_not_called()

    @pytest.mark.asyncio
    async def test_approve_not_found(self, service: ReviewService) -> None:
        """Test approving a missing order."""
        service._repo.get_by_id.return_value = None  # type: ignore[attr-defined]

        with pytest.raises(PendingOrderNotFoundError, match="Pending order 5 not found"):
            await service.approve(5)

    @pytest.mark.asyncio
    async def test_approve_without_product(
        self, service: ReviewService, mock_session: AsyncMock
    ) -> None:
        """Test that an unresolved order cannot be approved as is."""
        pending = make_pending(PendingOrderStatus.PENDING_REVIEW, product_id=None)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]

        with pytest.raises(OrderProcessingError):
            await service.approve(21)

        assert pending.status == PendingOrderStatus.PENDING_REVIEW.value
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_approve_with_product_override(
        self, service: ReviewService, order_creator: AsyncMock
    ) -> None:
        """Test that a reviewer can pick the product."""
        pending = make_pending(PendingOrderStatus.PENDING_REVIEW, product_id=None)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]

        await service.approve(21, product_id=4)

        assert pending.product_id == 4
        assert pending.status == PendingOrderStatus.PROCESSED.value
        order_creator.create_order_from_approved_pending.assert_awaited_once_with(21)

    @pytest.mark.asyncio
    async def test_approve_rolls_back_on_failure(
        self,
        service: ReviewService,
        mock_session: AsyncMock,
        order_creator: AsyncMock,
        notifier: AsyncMock,
    ) -> None:
        """Test that a failed order creation rolls everything back."""
        service._repo.get_by_id.return_value = make_pending(PendingOrderStatus.PENDING_REVIEW)  # type: ignore[attr-defined]
        order_creator.create_order_from_approved_pending.side_effect = CollaboratorError(
            "Product 1 not found"
        )

        with pytest.raises(OrderProcessingError, match="Product 1 not found"):
            await service.approve(21)

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_called()
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_approve_without_mail_channel(
        self, mock_session: AsyncMock, order_creator: AsyncMock
    ) -> None:
        """Test that an approval without SMTP is not reported as notified."""
        service = ReviewService(mock_session, order_creator=order_creator, clock=lambda: NOW)
        service._repo = AsyncMock()  # type: ignore[assignment]
        service._repo.get_by_id.return_value = make_pending(PendingOrderStatus.PENDING_REVIEW)

        result = await service.approve(21)

        assert result.notified is False
        assert result.order_id == 99

    @pytest.mark.asyncio
    async def test_approve_notification_failure(
        self, service: ReviewService, notifier: AsyncMock
    ) -> None:
        """Test that a failed notice does not undo the approval."""
        pending = make_pending(PendingOrderStatus.PENDING_REVIEW)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]
        notifier.notify.side_effect = NotificationError(
            NotificationKind.APPROVAL, "kunde@example.com", "timeout"
        )

        result = await service.approve(21)

        assert result.notified is False
        assert pending.status == PendingOrderStatus.PROCESSED.value


class TestReject:
    """Tests for ReviewService.reject."""

    @pytest.mark.asyncio
    async def test_reject(
        self,
        service: ReviewService,
        mock_session: AsyncMock,
        notifier: AsyncMock,
    ) -> None:
        """Test rejecting with a reason notifies the sender."""
        pending = make_pending(PendingOrderStatus.DUPLICATE_WARNING)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]

        result = await service.reject(21, reason="Out of stock")

        assert pending.status == PendingOrderStatus.REJECTED.value
        assert pending.admin_notes == "Out of stock"
        assert result.status == "REJECTED"
        mock_session.commit.assert_awaited_once()
        kind, _, payload = notifier.notify.call_args.args
        assert kind is NotificationKind.REJECTION
        assert payload == {"reason": "Out of stock"}

    @pytest.mark.asyncio
    async def test_reject_notes_and_no_email(
        self, service: ReviewService, notifier: AsyncMock
    ) -> None:
        """Test reviewer notes and suppressed notice."""
        pending = make_pending(PendingOrderStatus.PENDING_REVIEW)
        service._repo.get_by_id.return_value = pending  # type: ignore[attr-defined]

        await service.reject(21, reason="Spam", notes="internal", notify=False)

        assert pending.admin_notes == "internal"
        notifier.notify.assert_not_called()

    @pytest.mark.parametrize(
        "status",
        [PendingOrderStatus.APPROVED, PendingOrderStatus.PROCESSED, PendingOrderStatus.REJECTED],
    )
    @pytest.mark.asyncio
    async def test_reject_refuses(
        self, service: ReviewService, status: PendingOrderStatus
    ) -> None:
        """Test that approved or terminal orders cannot be rejected."""
        service._repo.get_by_id.return_value = make_pending(status)  # type: ignore[attr-defined]

        with pytest.raises(InvalidStatusTransitionError):
            await service.reject(21)


class TestQueries:
    """Tests for queue, error and stats queries."""

    @pytest.mark.asyncio
    async def test_list_queue(self, service: ReviewService) -> None:
        """Test listing the default review queue."""
        service._repo.list_by_status.return_value = (  # type: ignore[attr-defined]
            [make_pending(PendingOrderStatus.PENDING_REVIEW)],
            3,
        )

        page = await service.list_queue(limit=1)

        assert page.total == 3
        assert page.has_more is True
        assert page.orders[0].id == 21
        assert page.orders[0].email_body == "Ich möchte 3 Laptops"
        service._repo.list_by_status.assert_awaited_once_with(  # type: ignore[attr-defined]
            status=None, min_confidence=None, max_confidence=None, limit=1, offset=0
        )

    @pytest.mark.asyncio
    async def test_get(self, service: ReviewService) -> None:
        """Test fetching one order."""
        service._repo.get_by_id.return_value = make_pending(PendingOrderStatus.PENDING_REVIEW)  # type: ignore[attr-defined]

        response = await service.get(21)

        assert response.extracted_product_name == "Laptop"

    @pytest.mark.asyncio
    async def test_list_errors(self, service: ReviewService) -> None:
        """Test listing parse errors."""
        service._errors.list_recent.return_value = [  # type: ignore[attr-defined]
            ParsingError(
                id=1,
                sender_email="x@example.com",
                raw_body="asdkj",
                error_type="UNPARSEABLE",
                error_message="No matching pattern found in email",
                parse_attempt_count=3,
                created_at=NOW,
            )
        ]

        errors = await service.list_errors(limit=10)

        assert errors[0].parse_attempt_count == 3
        service._errors.list_recent.assert_awaited_once_with(limit=10, offset=0)  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_dismiss_error(self, service: ReviewService) -> None:
        """Test dismissing a handled parse error."""
        service._errors.delete.return_value = True  # type: ignore[attr-defined]

        await service.dismiss_error(1)

        service._errors.delete.assert_awaited_once_with(1)  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_dismiss_unknown_error(self, service: ReviewService) -> None:
        """Test dismissing an error that does not exist."""
        service._errors.delete.return_value = False  # type: ignore[attr-defined]

        with pytest.raises(ParsingErrorNotFoundError) as exc_info:
            await service.dismiss_error(404)

        assert exc_info.value.error_id == 404

    @pytest.mark.asyncio
    async def test_stats(self, service: ReviewService) -> None:
        """Test statistics over counts, errors and confidence."""
        service._repo.count_by_status.return_value = {  # type: ignore[attr-defined]
            "PENDING_REVIEW": 2,
            "PROCESSED": 5,
            "REJECTED": 1,
        }
        service._errors.count_since.return_value = 4  # type: ignore[attr-defined]
        service._repo.average_confidence.return_value = 0.812345  # type: ignore[attr-defined]

        stats = await service.stats()

        assert stats.total == 8
        assert stats.pending_review == 2
        assert stats.processed == 5
        assert stats.auto_approved == 0
        assert stats.errors_last_7_days == 4
        assert stats.average_confidence == 0.8123
        service._errors.count_since.assert_awaited_once_with(  # type: ignore[attr-defined]
            datetime(2024, 2, 23, 12, 0, 0, tzinfo=UTC)
        )
