"""Pydantic schemas for read-only projections handed to callers."""

from grocerywatch.schemas.job import ScrapeJobStatus
from grocerywatch.schemas.price import PriceDropResponse

__all__ = [
    "ScrapeJobStatus",
    "PriceDropResponse",
]
