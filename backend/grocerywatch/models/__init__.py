"""SQLAlchemy models for GroceryWatch.

All models are imported here so ``Base.metadata`` knows every table.
"""

from grocerywatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from grocerywatch.models.store import Store
from grocerywatch.models.category import Category
from grocerywatch.models.product import Product
from grocerywatch.models.price_record import PriceRecord
from grocerywatch.models.scrape_job import JobStatus, ScrapeJob
from grocerywatch.models.subscription import Subscription

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "utcnow",
    "Store",
    "Category",
    "Product",
    "PriceRecord",
    "JobStatus",
    "ScrapeJob",
    "Subscription",
]
