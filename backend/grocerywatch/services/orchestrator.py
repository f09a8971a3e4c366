"""Scrape job orchestration.

``trigger_scrape`` validates the store, records a PENDING job and returns
its status immediately; the scrape itself runs as a background asyncio
task:

1. Resolve the store's strategy (job FAILED if none is registered)
2. Snapshot the store's price records from the previous window
3. Scrape all listings and commit the total so pollers can see it
4. Per listing: resolve the product and append a price record, each in
   its own session so one bad listing never aborts the batch
5. Mark the job COMPLETED, or FAILED if steps 1-3 raised. If the job row
   itself cannot be written, a fresh session moves it to FAILED so the
   store is not left with an active job
6. On COMPLETED only: detect price drops against the snapshot and hand
   them to the notification dispatcher (failures here are only logged)
"""

import asyncio
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grocerywatch.config import settings
from grocerywatch.core.exceptions import (
    ConflictError,
    InternalError,
    InvalidStateError,
    NotFoundError,
)
from grocerywatch.models.base import utcnow
from grocerywatch.models.price_record import PriceRecord
from grocerywatch.models.scrape_job import JobStatus, ScrapeJob
from grocerywatch.models.store import Store
from grocerywatch.repositories import PriceRecordRepository, ScrapeJobRepository, StoreRepository
from grocerywatch.schemas import ScrapeJobStatus
from grocerywatch.scrapers.base import ScrapedProduct
from grocerywatch.scrapers.registry import StrategyRegistry
from grocerywatch.services.notifications import NotificationDispatcher
from grocerywatch.services.price_analysis import PriceAnalyzer
from grocerywatch.services.price_recorder import PriceRecorder
from grocerywatch.services.product_matcher import ProductMatcher

logger = structlog.get_logger(__name__)


class ScrapeOrchestrator:
    """Drives the per-store scrape job lifecycle.

    Any number of stores may scrape at once; the shared RateLimiter inside
    the registry's fetcher is what bounds outbound traffic. Within this
    process, the active-job check and PENDING job creation for a store run
    under a per-store lock, so two triggers for the same store cannot both
    pass the check. Across processes the check stays a read-then-act
    against the database.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: StrategyRegistry,
        dispatcher: Optional[NotificationDispatcher] = None,
        previous_window_hours: Optional[int] = None,
    ):
        """Initialize scrape orchestrator.

        Args:
            session_factory: Async session factory; every task opens its own sessions
            registry: Strategy registry keyed by store code
            dispatcher: Receives price drops after a completed scrape
            previous_window_hours: Baseline snapshot window; defaults to settings
        """
        self.session_factory = session_factory
        self.registry = registry
        self.dispatcher = dispatcher
        self.previous_window_hours = previous_window_hours or settings.PREVIOUS_WINDOW_HOURS
        self._tasks: Dict[UUID, asyncio.Task] = {}
        self._store_locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.logger = logger.bind(service="scrape_orchestrator")

    async def trigger_scrape(self, store_code: str) -> ScrapeJobStatus:
        """Start a scrape for one store without waiting for it.

        Args:
            store_code: Store code, e.g. "TNT"

        Returns:
            Status of the newly created PENDING job

        Raises:
            NotFoundError: If no store has this code
            InvalidStateError: If the store is inactive
            ConflictError: If the store already has a PENDING or RUNNING job
        """
        async with self.session_factory() as db:
            store = await StoreRepository(db).get_by_code(store_code)
            if store is None:
                raise NotFoundError("Store", store_code)
            if not store.is_active:
                raise InvalidStateError(f"Store is not active: {store_code}")

        async with self._store_locks[store.id]:
            async with self.session_factory() as db:
                jobs = ScrapeJobRepository(db)
                if await jobs.has_active_job(store.id):
                    raise ConflictError(store_code)

                job = ScrapeJob(
                    store_id=store.id,
                    store_code=store.code,
                    status=JobStatus.PENDING,
                    error_messages=[],
                )
                await jobs.save(job)
                await db.commit()
                status = ScrapeJobStatus.model_validate(job)

        task = asyncio.create_task(self._run_job(job.id, store), name=f"scrape-{store_code}-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))

        self.logger.info("scrape_triggered", store_code=store_code, job_id=str(job.id))
        return status

    async def trigger_scrape_all(self) -> List[ScrapeJobStatus]:
        """Trigger every active store; a store that fails to trigger is skipped.

        Returns:
            Statuses of the jobs that were started
        """
        async with self.session_factory() as db:
            stores = await StoreRepository(db).list_active()

        started: List[ScrapeJobStatus] = []
        for store in stores:
            try:
                started.append(await self.trigger_scrape(store.code))
            except Exception as e:
                self.logger.error(
                    "scrape_trigger_failed",
                    store_code=store.code,
                    error=str(e),
                    exc_info=not isinstance(e, InvalidStateError),
                )

        self.logger.info("scrape_all_triggered", stores=len(stores), started=len(started))
        return started

    async def get_job(self, job_id: UUID) -> Optional[ScrapeJobStatus]:
        async with self.session_factory() as db:
            job = await ScrapeJobRepository(db).get(job_id)
            return ScrapeJobStatus.model_validate(job) if job else None

    async def get_latest_job(self, store_code: str) -> Optional[ScrapeJobStatus]:
        """Most recently created job for a store, or None."""
        async with self.session_factory() as db:
            store = await StoreRepository(db).get_by_code(store_code)
            if store is None:
                return None
            job = await ScrapeJobRepository(db).latest_for_store(store.id)
            return ScrapeJobStatus.model_validate(job) if job else None

    async def wait_for(self, job_id: UUID) -> Optional[ScrapeJobStatus]:
        """Wait for a job's background task (if still running) and return its status."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return await self.get_job(job_id)

    async def wait_all(self) -> None:
        """Wait for every in-flight scrape task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    @property
    def active_job_ids(self) -> List[UUID]:
        return list(self._tasks)

    async def _run_job(self, job_id: UUID, store: Store) -> None:
        try:
            await self._execute(job_id, store)
        except Exception as e:
            # Only reached if the job row itself could not be updated
            self.logger.error(
                "scrape_task_crashed",
                store_code=store.code,
                job_id=str(job_id),
                error=str(e),
                exc_info=True,
            )
            try:
                await self._mark_failed(job_id, e)
            except Exception as mark_error:
                self.logger.error(
                    "job_fail_mark_failed",
                    store_code=store.code,
                    job_id=str(job_id),
                    error=str(mark_error),
                    exc_info=True,
                )

    async def _mark_failed(self, job_id: UUID, error: Exception) -> None:
        """Move a job left PENDING or RUNNING to FAILED in a fresh session."""
        async with self.session_factory() as db:
            job = await ScrapeJobRepository(db).get(job_id)
            if job is None or job.status.is_terminal:
                return
            job.add_error(f"Job failed: {error}")
            job.transition_to(JobStatus.FAILED)
            await db.commit()

    async def _execute(self, job_id: UUID, store: Store) -> None:
        log = self.logger.bind(store_code=store.code, job_id=str(job_id))

        async with self.session_factory() as db:
            job = await ScrapeJobRepository(db).get(job_id)
            if job is None:
                raise NotFoundError("ScrapeJob", str(job_id))
            job.transition_to(JobStatus.RUNNING)
            await db.commit()
            log.info("scrape_job_started")

            previous_records: Sequence[PriceRecord] = []
            success_count = 0
            error_count = 0
            errors: List[str] = []

            try:
                strategy = self.registry.get(store.code)
                if strategy is None:
                    raise InternalError(f"No scraper strategy registered for store: {store.code}")

                since = utcnow() - timedelta(hours=self.previous_window_hours)
                previous_records = await PriceRecordRepository(db).find_by_store_after(store.id, since)

                scraped = await strategy.scrape_all(store)
                job.total_products = len(scraped)
                await db.commit()
                log.info("products_scraped", total=len(scraped), previous_records=len(previous_records))

                for item in scraped:
                    try:
                        await self._process_item(item, store)
                        success_count += 1
                    except Exception as e:
                        error_count += 1
                        message = f"Error processing product: {item.name} - {e}"
                        errors.append(message)
                        log.warning(
                            "product_processing_failed",
                            store_product_id=item.store_product_id,
                            error=str(e),
                        )

                final_status = JobStatus.COMPLETED
            except Exception as e:
                log.error("scrape_job_failed", error=str(e), exc_info=True)
                errors.append(f"Job failed: {e}")
                final_status = JobStatus.FAILED

            job.success_count = success_count
            job.error_count = error_count
            job.error_messages = [*(job.error_messages or []), *errors]
            job.transition_to(final_status)
            await db.commit()

        log.info(
            "scrape_job_finished",
            status=final_status.value,
            success_count=success_count,
            error_count=error_count,
        )

        if final_status is JobStatus.COMPLETED:
            await self._analyze_and_notify(store, previous_records, log)

    async def _process_item(self, item: ScrapedProduct, store: Store) -> None:
        """Resolve one listing and record its price in a dedicated transaction."""
        async with self.session_factory() as db:
            product = await ProductMatcher(db).resolve(item, store)
            await PriceRecorder(db).record(product, store, item)
            await db.commit()

    async def _analyze_and_notify(
        self, store: Store, previous_records: Sequence[PriceRecord], log
    ) -> None:
        try:
            async with self.session_factory() as db:
                drops = await PriceAnalyzer(db).detect_drops(store.id, previous_records)
            if drops and self.dispatcher is not None:
                await self.dispatcher.dispatch(drops)
            log.info("price_drop_analysis_complete", drops=len(drops))
        except Exception as e:
            log.error("price_drop_analysis_failed", error=str(e), exc_info=True)
