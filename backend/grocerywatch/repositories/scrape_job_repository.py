"""Scrape job persistence."""

from typing import Optional
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.scrape_job import JobStatus, ScrapeJob

# A PENDING job is about to become RUNNING, so both count as in flight
ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)


class ScrapeJobRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, job_id: UUID) -> Optional[ScrapeJob]:
        return await self.db.get(ScrapeJob, job_id)

    async def has_active_job(self, store_id: UUID) -> bool:
        """Whether a PENDING or RUNNING job exists for the store."""
        result = await self.db.execute(
            select(
                exists().where(
                    ScrapeJob.store_id == store_id,
                    ScrapeJob.status.in_(ACTIVE_STATUSES),
                )
            )
        )
        return bool(result.scalar())

    async def latest_for_store(self, store_id: UUID) -> Optional[ScrapeJob]:
        result = await self.db.execute(
            select(ScrapeJob)
            .where(ScrapeJob.store_id == store_id)
            .order_by(ScrapeJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def save(self, job: ScrapeJob) -> ScrapeJob:
        self.db.add(job)
        await self.db.flush()
        return job
