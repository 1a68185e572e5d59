"""Pending order review Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PendingOrderResponse(BaseModel):
    """Schema for pending order response."""

    id: int
    parsed_email_id: int
    sender_email: str
    extracted_quantity: int
    extracted_product_name: str
    product_id: int | None = None
    confidence_score: float
    status: str
    pattern_used: str | None = None
    match_type: str | None = None
    admin_notes: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    created_order_id: int | None = None
    created_at: datetime | None = None
    email_subject: str | None = None
    email_body: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PendingOrderListResponse(BaseModel):
    """Schema for paginated review queue response."""

    orders: list[PendingOrderResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class ParsingErrorResponse(BaseModel):
    """Schema for parsing error response."""

    id: int
    sender_email: str
    error_type: str
    error_message: str | None = None
    parse_attempt_count: int = 1
    created_at: datetime | None = None
    last_attempt_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class IntakeStats(BaseModel):
    """Schema for intake statistics."""

    total: int = 0
    pending_review: int = 0
    auto_approved: int = 0
    duplicate_warning: int = 0
    approved: int = 0
    rejected: int = 0
    processed: int = 0
    errors_last_7_days: int = 0
    average_confidence: float | None = None


class ApprovalResult(BaseModel):
    """Schema for the outcome of approving a pending order."""

    pending_order: PendingOrderResponse
    order_id: int
    invoice_id: int
    invoice_number: str
    total_amount: Decimal
    notified: bool = False
