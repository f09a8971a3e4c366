"""Category lookups."""

from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.category import Category


class CategoryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, category_id: UUID) -> Optional[Category]:
        return await self.db.get(Category, category_id)

    async def find_by_store_and_code(self, store_id: Optional[UUID], code: str) -> Optional[Category]:
        """Find a category by its (store, code) key."""
        stmt = select(Category).where(Category.code == code)
        if store_id is None:
            stmt = stmt.where(Category.store_id.is_(None))
        else:
            stmt = stmt.where(Category.store_id == store_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, category: Category) -> Category:
        self.db.add(category)
        await self.db.flush()
        return category

    async def codes_by_id(self, category_ids: Iterable[UUID]) -> Dict[UUID, str]:
        """Map category ids to their codes."""
        ids = set(category_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Category.id, Category.code).where(Category.id.in_(ids)))
        return {row.id: row.code for row in result}
