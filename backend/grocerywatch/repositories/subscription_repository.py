"""Notification subscription persistence."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.subscription import Subscription


class SubscriptionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self) -> List[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.is_active == True)  # noqa: E712
        )
        return list(result.scalars().all())

    async def get_by_chat_id(self, chat_id: int) -> Optional[Subscription]:
        result = await self.db.execute(select(Subscription).where(Subscription.chat_id == chat_id))
        return result.scalar_one_or_none()

    async def save(self, subscription: Subscription) -> Subscription:
        self.db.add(subscription)
        await self.db.flush()
        return subscription
