"""Registry mapping store codes to scraper strategies."""

from typing import Callable, Dict, List, Optional

import structlog

from grocerywatch.scrapers.base import ScraperStrategy
from grocerywatch.scrapers.utils.fetcher import PageFetcher

logger = structlog.get_logger(__name__)

StrategyFactory = Callable[[PageFetcher], ScraperStrategy]


class StrategyRegistry:
    """Creates configured strategy instances keyed by store code.

    Holds one shared PageFetcher (and through it the single RateLimiter)
    and hands it to every strategy it builds.
    """

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher
        self._factories: Dict[str, StrategyFactory] = {}
        self._instances: Dict[str, ScraperStrategy] = {}

    def register(self, store_code: str, factory: StrategyFactory) -> None:
        """Register a strategy class (or any factory taking a PageFetcher).

        Args:
            store_code: Store code, e.g. "TNT"
            factory: Callable returning a ScraperStrategy for the fetcher
        """
        if store_code in self._factories:
            raise ValueError(f"Strategy already registered for store: {store_code}")
        self._factories[store_code] = factory
        logger.info("strategy_registered", store_code=store_code)

    def register_instance(self, strategy: ScraperStrategy) -> None:
        """Register a ready-made strategy (used for tests and custom wiring)."""
        if not isinstance(strategy, ScraperStrategy):
            raise ValueError(f"Not a ScraperStrategy: {strategy!r}")
        self._instances[strategy.store_code] = strategy
        logger.info("strategy_registered", store_code=strategy.store_code)

    def get(self, store_code: str) -> Optional[ScraperStrategy]:
        """Return the strategy for a store code, or None if none is registered."""
        strategy = self._instances.get(store_code)
        if strategy is not None:
            return strategy

        factory = self._factories.get(store_code)
        if factory is None:
            logger.warning("strategy_not_found", store_code=store_code)
            return None

        strategy = factory(self.fetcher)
        if not isinstance(strategy, ScraperStrategy) or strategy.store_code != store_code:
            raise ValueError(f"Factory for {store_code} returned an invalid strategy: {strategy!r}")
        self._instances[store_code] = strategy
        return strategy

    def has_strategy(self, store_code: str) -> bool:
        return store_code in self._instances or store_code in self._factories

    def registered_codes(self) -> List[str]:
        return sorted(set(self._factories) | set(self._instances))


def register_default_strategies(registry: StrategyRegistry) -> None:
    """Register the built-in store strategies."""
    from grocerywatch.scrapers.strategies import PriceSmartStrategy, TntStrategy

    for strategy_cls in (TntStrategy, PriceSmartStrategy):
        registry.register(strategy_cls.store_code, strategy_cls)

    logger.info("all_strategies_registered", codes=registry.registered_codes())
