"""Product catalog lookup backed by the ERP products table."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.core.collaborators import CatalogProvider, CollaboratorError
from order_intake.models.erp import Product
from order_intake.parsing.matcher import CatalogEntry


class CatalogRepository(CatalogProvider):
    """Reads the catalog snapshot used for product matching."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def lookup_catalog(self) -> list[CatalogEntry]:
        """Return all products in insertion (id) order.

        Raises:
            CollaboratorError: If the products table cannot be read.
        """
        query = select(Product.id, Product.name).order_by(Product.id)
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Catalog lookup failed: {exc}") from exc
        return [CatalogEntry(id=row.id, name=row.name) for row in result.all()]
