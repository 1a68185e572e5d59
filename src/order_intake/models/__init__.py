"""SQLAlchemy models for order-intake."""

from order_intake.models.base import Base
from order_intake.models.erp import Customer, Invoice, OrderItem, Product, SalesOrder
from order_intake.models.parsed_email import EmailStatus, ParsedEmail
from order_intake.models.parsing_error import ParsingError
from order_intake.models.pending_order import (
    ALLOWED_TRANSITIONS,
    REVIEW_QUEUE_STATUSES,
    PendingOrder,
    PendingOrderStatus,
    can_transition,
)
from order_intake.models.rate_limit import RateLimitState

__all__ = [
    "ALLOWED_TRANSITIONS",
    "REVIEW_QUEUE_STATUSES",
    "Base",
    "Customer",
    "EmailStatus",
    "Invoice",
    "OrderItem",
    "ParsedEmail",
    "ParsingError",
    "PendingOrder",
    "PendingOrderStatus",
    "Product",
    "RateLimitState",
    "SalesOrder",
    "can_transition",
]
