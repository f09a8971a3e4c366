"""Services module for business logic and data operations.

This module contains the ingestion pipeline (product matching, price
recording, job orchestration) and the price analysis and notification
services built on top of it.
"""

from grocerywatch.services.notifications import (
    NotificationDispatcher,
    SubscriptionService,
    TelegramDispatcher,
)
from grocerywatch.services.orchestrator import ScrapeOrchestrator
from grocerywatch.services.price_analysis import PriceAnalyzer, PriceDrop
from grocerywatch.services.price_recorder import PriceRecorder
from grocerywatch.services.product_matcher import ProductMatcher
from grocerywatch.services.text import calculate_similarity, normalize_name, slugify

__all__ = [
    "NotificationDispatcher",
    "SubscriptionService",
    "TelegramDispatcher",
    "ScrapeOrchestrator",
    "PriceAnalyzer",
    "PriceDrop",
    "PriceRecorder",
    "ProductMatcher",
    "calculate_similarity",
    "normalize_name",
    "slugify",
]
