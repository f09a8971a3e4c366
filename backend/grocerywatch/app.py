"""Application root.

Builds every long-lived collaborator once and wires them together: one
engine and session factory, one RateLimiter shared by every strategy
through one PageFetcher, the strategy registry, the notification
dispatcher, the orchestrator and the scheduler.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from grocerywatch.config import settings
from grocerywatch.db.session import create_engine, create_session_factory, init_models
from grocerywatch.models.store import Store
from grocerywatch.repositories import StoreRepository
from grocerywatch.scrapers.registry import StrategyRegistry, register_default_strategies
from grocerywatch.scrapers.scheduler import ScrapeScheduler
from grocerywatch.scrapers.utils import PageFetcher, RateLimiter
from grocerywatch.services.notifications import NotificationDispatcher, TelegramDispatcher
from grocerywatch.services.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)


class GroceryWatchApp:
    """Owns and wires the application's shared resources.

    Use as an async context manager so the HTTP clients and the engine are
    closed on exit.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.engine = engine or create_engine(database_url)
        self.session_factory = create_session_factory(self.engine)

        self.rate_limiter = RateLimiter(
            limit_for_period=settings.SCRAPER_RATE_LIMIT_PER_PERIOD,
            refresh_period=settings.SCRAPER_RATE_LIMIT_PERIOD_SECONDS,
            timeout=settings.SCRAPER_RATE_LIMIT_TIMEOUT_SECONDS,
        )
        self.fetcher = PageFetcher(self.rate_limiter)
        self.registry = StrategyRegistry(self.fetcher)
        register_default_strategies(self.registry)

        self.dispatcher = dispatcher or TelegramDispatcher(self.session_factory)
        self.orchestrator = ScrapeOrchestrator(self.session_factory, self.registry, self.dispatcher)
        self.scheduler = ScrapeScheduler(self.orchestrator)

    async def init_db(self) -> None:
        """Create missing tables."""
        await init_models(self.engine)
        logger.info("database_initialized")

    async def add_store(
        self, code: str, name: str, base_url: str, scraper_config: Optional[dict] = None
    ) -> Store:
        """Register a store, or update name/URL/config of an existing one."""
        async with self.session_factory() as db:
            stores = StoreRepository(db)
            store = await stores.get_by_code(code)
            if store is None:
                store = Store(code=code, name=name, base_url=base_url, is_active=True)
            store.name = name
            store.base_url = base_url
            store.scraper_config = scraper_config or store.scraper_config or {}
            await stores.save(store)
            await db.commit()
        logger.info("store_saved", store_code=code)
        return store

    async def aclose(self) -> None:
        if self.scheduler.is_running():
            self.scheduler.stop()
        await self.orchestrator.wait_all()
        await self.fetcher.aclose()
        if isinstance(self.dispatcher, TelegramDispatcher):
            await self.dispatcher.aclose()
        await self.engine.dispose()

    async def __aenter__(self) -> "GroceryWatchApp":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
