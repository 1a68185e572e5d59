"""Repository classes for data access."""

from order_intake.repositories.catalog import CatalogRepository
from order_intake.repositories.parsed_email import ParsedEmailRepository
from order_intake.repositories.parsing_error import ParsingErrorRepository
from order_intake.repositories.pending_order import PendingOrderRepository
from order_intake.repositories.rate_limit import RateLimitRepository

__all__ = [
    "CatalogRepository",
    "ParsedEmailRepository",
    "ParsingErrorRepository",
    "PendingOrderRepository",
    "RateLimitRepository",
]
