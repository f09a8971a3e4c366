"""Scraper system for fetching grocery listings from store websites.

This package provides:
- The ScraperStrategy contract and the ScrapedProduct record
- A registry selecting one strategy per store code
- Utility modules for rate limiting, fetching and price/size parsing
- Concrete strategies under ``strategies``
"""

from .base import MAX_PAGES, ScrapedProduct, ScraperStrategy, scrape_category_entries
from .registry import StrategyRegistry, register_default_strategies

__all__ = [
    # Contract
    "MAX_PAGES",
    "ScrapedProduct",
    "ScraperStrategy",
    "scrape_category_entries",
    # Registry
    "StrategyRegistry",
    "register_default_strategies",
]
