"""Interfaces of the ERP services the intake core calls into."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from order_intake.parsing.matcher import CatalogEntry


class CollaboratorError(Exception):
    """An ERP collaborator could not complete a request."""


@dataclass(frozen=True, slots=True)
class CreatedOrder:
    """Sales order and invoice materialized from a pending order.

    Attributes:
        order_id: New sales order id.
        invoice_id: New invoice id.
        invoice_number: Human-facing invoice number.
        total_amount: Invoice total.
    """

    order_id: int
    invoice_id: int
    invoice_number: str
    total_amount: Decimal


class CatalogProvider(ABC):
    """Source of the product catalog snapshot."""

    @abstractmethod
    async def lookup_catalog(self) -> list[CatalogEntry]:
        """Return the full catalog in storage order.

        Raises:
            CollaboratorError: If the catalog cannot be read.
        """


class OrderCreator(ABC):
    """Turns an approved pending order into a sales order and invoice."""

    @abstractmethod
    async def create_order_from_approved_pending(self, pending_order_id: int) -> CreatedOrder:
        """Create the sales order and invoice.

        Implementations must not commit; the caller owns the transaction
        and guards against processing the same pending order twice.

        Args:
            pending_order_id: Approved pending order.

        Returns:
            Identifiers of the created records.

        Raises:
            CollaboratorError: If the order cannot be created.
        """
