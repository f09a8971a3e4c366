"""APScheduler-based periodic scraping.

Fires ``ScrapeOrchestrator.trigger_scrape_all`` on a cron schedule. The
orchestrator's own per-store conflict check keeps overlapping firings from
starting a second job for a store that is still scraping.
"""

from typing import Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from grocerywatch.config import settings
from grocerywatch.services.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)

JOB_ID = "scrape_all_stores"


class ScrapeScheduler:
    """Manages the periodic scrape-all job.

    This scheduler:
    - Starts and stops the APScheduler event loop scheduler
    - Registers one cron job that triggers every active store
    - Logs trigger failures without stopping the scheduler
    """

    def __init__(self, orchestrator: ScrapeOrchestrator, cron: Optional[str] = None):
        """Initialize scrape scheduler.

        Args:
            orchestrator: Orchestrator used to trigger the scrapes
            cron: Crontab expression (UTC); defaults to settings.SCRAPE_CRON
        """
        self.orchestrator = orchestrator
        self.cron = cron or settings.SCRAPE_CRON
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="scrape_scheduler")

    def start(self) -> Optional[Job]:
        """Register the cron job and start the scheduler.

        Returns:
            The scheduled APScheduler Job, or None if already running
        """
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return None

        job = self.scheduler.add_job(
            func=self.run_scrape_all,
            trigger=CronTrigger.from_crontab(self.cron, timezone="UTC"),
            id=JOB_ID,
            name="Scrape all active stores",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

        self.logger.info(
            "scheduler_started",
            cron=self.cron,
            next_run=job.next_run_time.isoformat() if job.next_run_time else None,
        )
        return job

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    async def run_scrape_all(self) -> int:
        """Trigger all active stores; never raises into APScheduler.

        Returns:
            Number of jobs started
        """
        try:
            jobs = await self.orchestrator.trigger_scrape_all()
        except Exception as e:
            self.logger.error("scheduled_scrape_failed", error=str(e), exc_info=True)
            return 0

        self.logger.info("scheduled_scrape_triggered", jobs_started=len(jobs))
        return len(jobs)

    def get_status(self) -> dict:
        """Next run time and trigger of the scrape-all job."""
        job = self.scheduler.get_job(JOB_ID)
        if job is None:
            return {"running": self.scheduler.running, "next_run": None, "trigger": None}
        return {
            "running": self.scheduler.running,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger),
        }

    def is_running(self) -> bool:
        return self.scheduler.running
