"""Store lookups."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.store import Store


class StoreRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, store_id: UUID) -> Optional[Store]:
        return await self.db.get(Store, store_id)

    async def get_by_code(self, code: str) -> Optional[Store]:
        result = await self.db.execute(select(Store).where(Store.code == code))
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Store]:
        result = await self.db.execute(
            select(Store).where(Store.is_active == True).order_by(Store.code)  # noqa: E712
        )
        return list(result.scalars().all())

    async def save(self, store: Store) -> Store:
        self.db.add(store)
        await self.db.flush()
        return store
