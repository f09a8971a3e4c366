"""Scraper utilities for rate limiting, fetching, retries and parsing."""

from .rate_limiter import RateLimiter
from .fetcher import PageFetcher
from .normalizer import (
    PriceNormalizer,
    parse_price,
    extract_size,
    extract_unit,
    extract_size_and_unit,
)
from .retry import http_retry, is_transient_http_error


__all__ = [
    # Rate limiting
    "RateLimiter",
    # Fetching
    "PageFetcher",
    # Parsing
    "PriceNormalizer",
    "parse_price",
    "extract_size",
    "extract_unit",
    "extract_size_and_unit",
    # Retry decorators
    "http_retry",
    "is_transient_http_error",
]
