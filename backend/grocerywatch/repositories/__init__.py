"""Repository boundary over the async SQLAlchemy session.

Each repository wraps one aggregate's queries. Repositories flush but never
commit; transaction boundaries belong to the calling service.
"""

from grocerywatch.repositories.category_repository import CategoryRepository
from grocerywatch.repositories.price_record_repository import PriceRecordRepository
from grocerywatch.repositories.product_repository import ProductRepository
from grocerywatch.repositories.scrape_job_repository import ScrapeJobRepository
from grocerywatch.repositories.store_repository import StoreRepository
from grocerywatch.repositories.subscription_repository import SubscriptionRepository

__all__ = [
    "CategoryRepository",
    "PriceRecordRepository",
    "ProductRepository",
    "ScrapeJobRepository",
    "StoreRepository",
    "SubscriptionRepository",
]
