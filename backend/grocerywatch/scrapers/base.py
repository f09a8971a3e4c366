"""Scraper strategy contract.

Every store has exactly one strategy, selected by store code through the
StrategyRegistry. Strategies fetch through an injected PageFetcher (which
owns the shared RateLimiter) and return ScrapedProduct records.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

import structlog

if TYPE_CHECKING:
    from grocerywatch.models.store import Store

logger = structlog.get_logger(__name__)

# Hard cap on pages fetched per category entry point
MAX_PAGES = 50


@dataclass(frozen=True)
class ScrapedProduct:
    """One product listing as parsed from a store.

    ``sale_price`` is the effective price the store charges right now; it
    equals ``regular_price`` when the item is not on sale.
    """

    store_product_id: str  # Store-local product ID
    name: str
    source_url: str
    brand: Optional[str] = None
    size: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None  # Category hint, "code:name" or free text
    image_url: Optional[str] = None
    regular_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    on_sale: bool = False
    promo_description: Optional[str] = None
    in_stock: bool = True

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.store_product_id:
            raise ValueError("store_product_id is required")
        if not self.name or not self.name.strip():
            raise ValueError("name is required")
        for field_name in ("regular_price", "sale_price", "unit_price"):
            value = getattr(self, field_name)
            if value is not None and value < 0:
                raise ValueError(f"{field_name} must be non-negative")

    @property
    def effective_price(self) -> Optional[Decimal]:
        if self.on_sale and self.sale_price is not None:
            return self.sale_price
        return self.regular_price


@runtime_checkable
class ScraperStrategy(Protocol):
    """Per-store scraping strategy.

    ``scrape_all`` walks the store's category entry points and pages,
    catching per-element parse failures and returning whatever parsed.
    Pagination loops must stop after at most MAX_PAGES iterations.
    """

    store_code: str

    async def scrape_all(self, store: "Store") -> List[ScrapedProduct]:
        ...


async def scrape_category_entries(
    store_code: str,
    entries: Iterable[str],
    scrape_entry: Callable[[str], Awaitable[List[ScrapedProduct]]],
) -> List[ScrapedProduct]:
    """Run ``scrape_entry`` for each category entry point and aggregate.

    A failing entry point is logged and skipped; the others still run.
    Listings already seen under another entry point are dropped.

    Args:
        store_code: Store code used for logging
        entries: Category ids or URLs to walk
        scrape_entry: Coroutine function scraping one entry point

    Returns:
        All products scraped, de-duplicated by store_product_id
    """
    log = logger.bind(store_code=store_code)
    products: List[ScrapedProduct] = []
    seen_ids: set = set()

    for entry in entries:
        try:
            scraped = await scrape_entry(entry)
        except Exception as e:
            log.error("category_scrape_failed", entry=entry, error=str(e), exc_info=True)
            continue

        added = 0
        for product in scraped:
            if product.store_product_id in seen_ids:
                continue
            seen_ids.add(product.store_product_id)
            products.append(product)
            added += 1
        log.info("category_scraped", entry=entry, count=len(scraped), new=added)

    log.info("store_scrape_complete", total=len(products))
    return products
