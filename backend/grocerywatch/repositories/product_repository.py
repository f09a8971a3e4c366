"""Product lookups used by identity resolution."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.product import Product


class ProductRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, product_id: UUID) -> Optional[Product]:
        return await self.db.get(Product, product_id)

    async def get_many(self, product_ids: List[UUID]) -> dict[UUID, Product]:
        """Load several products keyed by id."""
        if not product_ids:
            return {}
        result = await self.db.execute(select(Product).where(Product.id.in_(set(product_ids))))
        return {p.id: p for p in result.scalars().all()}

    async def find_by_store_product_id(self, store_code: str, store_product_id: str) -> Optional[Product]:
        """Find the product whose cross-store map has ``store_code -> store_product_id``."""
        result = await self.db.execute(
            select(Product)
            .where(Product.store_product_ids[store_code].as_string() == store_product_id)
            .order_by(Product.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_normalized_name(self, normalized_name: str) -> List[Product]:
        """All products sharing a normalized name, oldest first."""
        result = await self.db.execute(
            select(Product)
            .where(Product.normalized_name == normalized_name)
            .order_by(Product.created_at)
        )
        return list(result.scalars().all())

    async def save(self, product: Product) -> Product:
        self.db.add(product)
        await self.db.flush()
        return product
