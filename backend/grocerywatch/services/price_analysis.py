"""Price-drop detection and price read-side analytics.

Drops compare a store's current observations (the last hour) against a
"previous" window of observations, using the lowest previous effective
price per product as a conservative baseline.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.config import settings
from grocerywatch.core.exceptions import NotFoundError
from grocerywatch.models.base import utcnow
from grocerywatch.models.price_record import PriceRecord
from grocerywatch.models.product import Product
from grocerywatch.models.store import Store
from grocerywatch.repositories import (
    CategoryRepository,
    PriceRecordRepository,
    ProductRepository,
    StoreRepository,
)

logger = structlog.get_logger(__name__)

_RATIO_PLACES = Decimal("0.0001")
_HUNDRED = Decimal("100")


def percentage_of(amount: Decimal, base: Decimal) -> Decimal:
    """``amount / base`` rounded half-up to 4 places, then scaled to percent."""
    return (amount / base).quantize(_RATIO_PLACES, rounding=ROUND_HALF_UP) * _HUNDRED


def discount_percentage(record: PriceRecord) -> Decimal:
    """Sale discount of a record relative to its regular price (0 if unknown)."""
    if record.regular_price is None or record.sale_price is None or record.regular_price == 0:
        return Decimal("0")
    return percentage_of(record.regular_price - record.sale_price, record.regular_price)


@dataclass
class PriceDrop:
    """Decrease in a product's effective price at one store."""

    product_id: UUID
    product_name: str
    store_id: UUID
    store_code: str
    previous_price: Decimal
    current_price: Decimal
    drop_amount: Decimal
    drop_percentage: Decimal
    detected_at: datetime
    category_id: Optional[UUID] = None
    category_code: Optional[str] = None
    source_url: Optional[str] = None


@dataclass
class StorePrice:
    store_code: str
    store_name: str
    price: Decimal
    on_sale: bool
    promo_description: Optional[str]
    last_updated: datetime
    source_url: Optional[str]


@dataclass
class PriceComparison:
    """Latest effective price of one product at every active store."""

    product: Product
    store_prices: Dict[str, StorePrice] = field(default_factory=dict)
    lowest_price_store: Optional[str] = None
    lowest_price: Optional[Decimal] = None


@dataclass
class PricePoint:
    price: Optional[Decimal]
    on_sale: bool
    timestamp: datetime


@dataclass
class PriceHistory:
    product: Product
    store: Store
    price_points: List[PricePoint] = field(default_factory=list)


@dataclass
class DiscountedItem:
    """Latest on-sale observation of a product at a store."""

    product: Product
    store: Store
    regular_price: Decimal
    sale_price: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    promo_description: Optional[str]
    captured_at: datetime


class PriceAnalyzer:
    """Detects price drops and answers price comparison/history queries.

    Read-only: every method queries through the repositories and never
    writes.
    """

    def __init__(self, db: AsyncSession):
        """Initialize price analyzer.

        Args:
            db: Async database session
        """
        self.db = db
        self.records = PriceRecordRepository(db)
        self.products = ProductRepository(db)
        self.categories = CategoryRepository(db)
        self.stores = StoreRepository(db)
        self.logger = logger.bind(service="price_analyzer")

    async def detect_drops(
        self,
        store_id: UUID,
        previous_records: Iterable[PriceRecord],
        now: Optional[datetime] = None,
    ) -> List[PriceDrop]:
        """Compare the store's current observations against ``previous_records``.

        The baseline per product is the minimum effective price among the
        previous records. Records captured in the current window (the last
        CURRENT_WINDOW_HOURS) whose effective price is below a positive
        baseline produce a PriceDrop.

        Args:
            store_id: Store to analyze
            previous_records: Earlier observations forming the baseline
            now: Reference time; defaults to now (UTC)

        Returns:
            Drops sorted by drop percentage, largest first
        """
        now = now or utcnow()

        baselines: Dict[UUID, Decimal] = {}
        for record in previous_records:
            price = record.effective_price
            if price is None:
                continue
            existing = baselines.get(record.product_id)
            if existing is None or price < existing:
                baselines[record.product_id] = price

        if not baselines:
            return []

        store = await self.stores.get(store_id)
        if store is None:
            self.logger.warning("store_not_found", store_id=str(store_id))
            return []

        since = now - timedelta(hours=settings.CURRENT_WINDOW_HOURS)
        current_records = await self.records.find_by_store_after(store_id, since)

        candidates: List[Tuple[PriceRecord, Decimal, Decimal]] = []
        for record in current_records:
            current_price = record.effective_price
            baseline = baselines.get(record.product_id)
            if current_price is None or baseline is None or baseline <= 0:
                continue
            if current_price < baseline:
                candidates.append((record, baseline, current_price))

        products = await self.products.get_many([record.product_id for record, _, _ in candidates])
        category_codes = await self.categories.codes_by_id(
            p.category_id for p in products.values() if p.category_id is not None
        )

        drops: List[PriceDrop] = []
        for record, baseline, current_price in candidates:
            product = products.get(record.product_id)
            if product is None:
                continue
            drop_amount = baseline - current_price
            drops.append(
                PriceDrop(
                    product_id=product.id,
                    product_name=product.name,
                    store_id=store.id,
                    store_code=store.code,
                    previous_price=baseline,
                    current_price=current_price,
                    drop_amount=drop_amount,
                    drop_percentage=percentage_of(drop_amount, baseline),
                    detected_at=now,
                    category_id=product.category_id,
                    category_code=category_codes.get(product.category_id),
                    source_url=record.source_url,
                )
            )

        drops.sort(key=lambda d: d.drop_percentage, reverse=True)

        self.logger.info(
            "price_drops_detected",
            store_code=store.code,
            baseline_products=len(baselines),
            current_records=len(current_records),
            drops=len(drops),
        )
        return drops

    async def get_recent_price_drops(
        self, min_drop_percentage: float = 0, limit: int = 50
    ) -> List[PriceDrop]:
        """Drops across all active stores against observations from 1-2 days ago.

        Args:
            min_drop_percentage: Keep drops of at least this percentage
            limit: Maximum number of drops returned

        Returns:
            Drops sorted by drop percentage, largest first
        """
        now = utcnow()
        window_start = now - timedelta(days=2)
        window_end = now - timedelta(days=1)
        threshold = Decimal(str(min_drop_percentage))

        drops: List[PriceDrop] = []
        for store in await self.stores.list_active():
            previous = await self.records.find_by_store_between(store.id, window_start, window_end)
            drops.extend(await self.detect_drops(store.id, previous, now=now))

        drops = [d for d in drops if d.drop_percentage >= threshold]
        drops.sort(key=lambda d: d.drop_percentage, reverse=True)
        return drops[:limit]

    async def compare_product_prices(self, product_id: UUID) -> PriceComparison:
        """Latest effective price per active store and the cheapest store.

        Raises:
            NotFoundError: If the product does not exist
        """
        product = await self.products.get(product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))

        comparison = PriceComparison(product=product)
        for store in await self.stores.list_active():
            record = await self.records.find_latest(product_id, store.id)
            if record is None or record.effective_price is None:
                continue

            price = record.effective_price
            comparison.store_prices[store.code] = StorePrice(
                store_code=store.code,
                store_name=store.name,
                price=price,
                on_sale=record.on_sale,
                promo_description=record.promo_description,
                last_updated=record.captured_at,
                source_url=record.source_url,
            )
            if comparison.lowest_price is None or price < comparison.lowest_price:
                comparison.lowest_price = price
                comparison.lowest_price_store = store.code

        return comparison

    async def get_product_price_history(
        self, product_id: UUID, store_id: UUID, days: int = 30
    ) -> PriceHistory:
        """Chronological price points for a product at one store.

        Consecutive observations with the same effective price collapse into
        the first of the run.

        Raises:
            NotFoundError: If the product or store does not exist
        """
        product = await self.products.get(product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))
        store = await self.stores.get(store_id)
        if store is None:
            raise NotFoundError("Store", str(store_id))

        now = utcnow()
        records = await self.records.find_by_product_between(
            product_id, now - timedelta(days=days), now
        )

        history = PriceHistory(product=product, store=store)
        previous: Optional[Decimal] = None
        for record in records:
            if record.store_id != store_id:
                continue
            price = record.effective_price
            if previous is None or price is None or price != previous:
                history.price_points.append(
                    PricePoint(price=price, on_sale=record.on_sale, timestamp=record.captured_at)
                )
            previous = price

        return history

    async def get_current_sales_for_store(self, store_code: str, limit: int = 50) -> List[PriceRecord]:
        """On-sale observations from the last day, deepest discount first.

        Raises:
            NotFoundError: If no store has this code
        """
        store = await self.stores.get_by_code(store_code)
        if store is None:
            raise NotFoundError("Store", store_code)

        records = await self.records.find_by_store_after(store.id, utcnow() - timedelta(days=1))
        sales = [r for r in records if r.on_sale]
        sales.sort(key=discount_percentage, reverse=True)
        return sales[:limit]

    async def get_discounted_items_by_store(
        self, min_discount_percentage: float = 0, lookback_days: int = 7
    ) -> Dict[str, List[DiscountedItem]]:
        """Latest on-sale observation per product/store, grouped by store code.

        Only active stores are included; items within a store are sorted by
        discount percentage, largest first.
        """
        threshold = Decimal(str(min_discount_percentage))
        stores = {store.id: store for store in await self.stores.list_active()}

        latest: Dict[Tuple[UUID, UUID], PriceRecord] = {}
        for record in await self.records.find_after(utcnow() - timedelta(days=lookback_days)):
            if not record.on_sale or record.regular_price is None or record.sale_price is None:
                continue
            key = (record.product_id, record.store_id)
            existing = latest.get(key)
            if existing is None or record.captured_at > existing.captured_at:
                latest[key] = record

        qualifying = [
            r for r in latest.values()
            if r.store_id in stores and discount_percentage(r) >= threshold
        ]
        products = await self.products.get_many([r.product_id for r in qualifying])

        grouped: Dict[str, List[DiscountedItem]] = defaultdict(list)
        for record in qualifying:
            product = products.get(record.product_id)
            if product is None:
                continue
            store = stores[record.store_id]
            grouped[store.code].append(
                DiscountedItem(
                    product=product,
                    store=store,
                    regular_price=record.regular_price,
                    sale_price=record.sale_price,
                    discount_amount=record.regular_price - record.sale_price,
                    discount_percentage=discount_percentage(record),
                    promo_description=record.promo_description,
                    captured_at=record.captured_at,
                )
            )

        for items in grouped.values():
            items.sort(key=lambda item: item.discount_percentage, reverse=True)
        return dict(grouped)

    async def get_discounted_items(
        self, min_discount_percentage: float = 0, limit: int = 50, lookback_days: int = 7
    ) -> List[DiscountedItem]:
        """All stores' discounted items in one list, deepest discount first."""
        grouped = await self.get_discounted_items_by_store(min_discount_percentage, lookback_days)
        items = [item for store_items in grouped.values() for item in store_items]
        items.sort(key=lambda item: item.discount_percentage, reverse=True)
        return items[:limit]
