"""Append-only price record storage and range queries."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.price_record import PriceRecord


class PriceRecordRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, record: PriceRecord) -> PriceRecord:
        """Append a new record. Existing records are never touched."""
        self.db.add(record)
        await self.db.flush()
        return record

    async def find_by_store_after(self, store_id: UUID, after: datetime) -> List[PriceRecord]:
        """Records for a store captured strictly after ``after``."""
        result = await self.db.execute(
            select(PriceRecord)
            .where(PriceRecord.store_id == store_id, PriceRecord.captured_at > after)
            .order_by(PriceRecord.captured_at)
        )
        return list(result.scalars().all())

    async def find_by_store_between(
        self, store_id: UUID, after: datetime, before: datetime
    ) -> List[PriceRecord]:
        """Records for a store captured in the open interval (after, before)."""
        result = await self.db.execute(
            select(PriceRecord)
            .where(
                PriceRecord.store_id == store_id,
                PriceRecord.captured_at > after,
                PriceRecord.captured_at < before,
            )
            .order_by(PriceRecord.captured_at)
        )
        return list(result.scalars().all())

    async def find_after(self, after: datetime) -> List[PriceRecord]:
        result = await self.db.execute(
            select(PriceRecord)
            .where(PriceRecord.captured_at > after)
            .order_by(PriceRecord.captured_at)
        )
        return list(result.scalars().all())

    async def find_latest(self, product_id: UUID, store_id: UUID) -> Optional[PriceRecord]:
        """Most recent record for a (product, store) pair."""
        result = await self.db.execute(
            select(PriceRecord)
            .where(PriceRecord.product_id == product_id, PriceRecord.store_id == store_id)
            .order_by(PriceRecord.captured_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_product_between(
        self, product_id: UUID, start: datetime, end: datetime
    ) -> List[PriceRecord]:
        result = await self.db.execute(
            select(PriceRecord)
            .where(
                PriceRecord.product_id == product_id,
                PriceRecord.captured_at >= start,
                PriceRecord.captured_at <= end,
            )
            .order_by(PriceRecord.captured_at)
        )
        return list(result.scalars().all())
