"""Append-only price history recording."""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.base import utcnow
from grocerywatch.models.price_record import PriceRecord
from grocerywatch.models.product import Product
from grocerywatch.models.store import Store
from grocerywatch.repositories import PriceRecordRepository
from grocerywatch.scrapers.base import ScrapedProduct

logger = structlog.get_logger(__name__)


class PriceRecorder:
    """Writes one immutable PriceRecord per product/store observation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.records = PriceRecordRepository(db)
        self.logger = logger.bind(service="price_recorder")

    async def record(
        self,
        product: Product,
        store: Store,
        scraped: ScrapedProduct,
        captured_at: Optional[datetime] = None,
    ) -> PriceRecord:
        """Append a price observation for ``product`` at ``store``.

        Args:
            product: Resolved canonical product
            store: Store the listing came from
            scraped: Listing carrying the observed prices
            captured_at: Observation time; defaults to now (UTC)

        Returns:
            The newly written PriceRecord
        """
        record = PriceRecord(
            product_id=product.id,
            store_id=store.id,
            regular_price=scraped.regular_price,
            sale_price=scraped.sale_price,
            unit_price=scraped.unit_price,
            on_sale=scraped.on_sale,
            promo_description=scraped.promo_description,
            captured_at=captured_at or utcnow(),
            in_stock=scraped.in_stock,
            source_url=scraped.source_url,
        )
        await self.records.add(record)

        self.logger.debug(
            "price_recorded",
            product_id=str(product.id),
            store_code=store.code,
            price=str(record.effective_price) if record.effective_price is not None else None,
        )
        return record
