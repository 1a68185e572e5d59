"""Pydantic schemas for order-intake."""

from order_intake.schemas.intake import (
    AcceptedIntake,
    OrderIntakeResult,
    ParsePreview,
    RejectedIntake,
    RejectionReason,
)
from order_intake.schemas.pending_order import (
    ApprovalResult,
    IntakeStats,
    ParsingErrorResponse,
    PendingOrderListResponse,
    PendingOrderResponse,
)

__all__ = [
    "AcceptedIntake",
    "ApprovalResult",
    "IntakeStats",
    "OrderIntakeResult",
    "ParsePreview",
    "ParsingErrorResponse",
    "PendingOrderListResponse",
    "PendingOrderResponse",
    "RejectedIntake",
    "RejectionReason",
]
