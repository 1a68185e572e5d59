"""Order intake result Pydantic schemas."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field

RejectionReason = Literal["RATE_LIMITED", "UNPARSEABLE", "PROCESSING_ERROR"]


class RejectedIntake(BaseModel):
    """Schema for an email that produced no pending order."""

    outcome: Literal["rejected"] = "rejected"
    reason: RejectionReason
    message: str


class AcceptedIntake(BaseModel):
    """Schema for an email stored together with its pending order."""

    outcome: Literal["accepted"] = "accepted"
    pending_order_id: int
    email_id: int
    quantity: int = Field(..., ge=1, le=9999)
    product_name: str
    product_id: int | None = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    status: str
    is_duplicate: bool = False
    duplicate_of_id: int | None = None
    created_order_id: int | None = None


OrderIntakeResult = Annotated[AcceptedIntake | RejectedIntake, Field(discriminator="outcome")]


class ParsePreview(BaseModel):
    """Schema for a dry-run parse of an email body."""

    success: bool
    quantity: int | None = None
    raw_product_name: str | None = None
    product_name: str | None = None
    product_id: int | None = None
    match_type: str | None = None
    pattern_used: str | None = None
    confidence: float | None = None
    would_auto_approve: bool = False
    error: str | None = None
