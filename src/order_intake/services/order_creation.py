"""Sales order and invoice creation from approved pending orders."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.core.clock import Clock, utcnow
from order_intake.core.collaborators import CollaboratorError, CreatedOrder, OrderCreator
from order_intake.models.erp import Customer, Invoice, OrderItem, Product, SalesOrder
from order_intake.models.pending_order import PendingOrder

logger = structlog.get_logger(__name__)

INVOICE_DUE_DAYS = 30


class SqlOrderCreator(OrderCreator):
    """Writes orders, order items and invoices into the ERP tables.

    Works inside the caller's transaction: rows are flushed, never committed.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow) -> None:
        """Initialize order creator.

        Args:
            session: Async SQLAlchemy session shared with the caller.
            clock: Time source.
        """
        self.session = session
        self._clock = clock

    async def _find_or_create_customer(self, email: str) -> Customer:
        result = await self.session.execute(
            select(Customer).where(Customer.email == email).order_by(Customer.id).limit(1)
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            customer = Customer(name=email.split("@")[0], email=email)
            self.session.add(customer)
            await self.session.flush()
            await logger.ainfo("customer_created", customer_id=customer.id, email=email)
        return customer

    async def create_order_from_approved_pending(self, pending_order_id: int) -> CreatedOrder:
        """Create the sales order and invoice for a pending order.

        Args:
            pending_order_id: Approved pending order.

        Returns:
            Identifiers of the created records.

        Raises:
            CollaboratorError: If the pending order or its product is missing.
        """
        pending = await self.session.get(PendingOrder, pending_order_id)
        if pending is None:
            raise CollaboratorError(f"Pending order {pending_order_id} not found")
        if pending.product_id is None:
            raise CollaboratorError(f"Pending order {pending_order_id} has no resolved product")

        product = await self.session.get(Product, pending.product_id)
        if product is None:
            raise CollaboratorError(f"Product {pending.product_id} not found")

        customer = await self._find_or_create_customer(pending.sender_email)
        now = self._clock()
        today = now.date()

        order = SalesOrder(customer_id=customer.id, order_date=today, status="created")
        self.session.add(order)
        await self.session.flush()

        self.session.add(
            OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=pending.extracted_quantity,
            )
        )

        total = (product.price or Decimal("0")) * pending.extracted_quantity
        invoice = Invoice(
            order_id=order.id,
            invoice_number=f"INV-{int(now.timestamp() * 1000)}",
            invoice_date=today,
            due_date=today + timedelta(days=INVOICE_DUE_DAYS),
            total_amount=total,
            status="sent",
        )
        self.session.add(invoice)
        await self.session.flush()

        return CreatedOrder(
            order_id=order.id,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total_amount=total,
        )
