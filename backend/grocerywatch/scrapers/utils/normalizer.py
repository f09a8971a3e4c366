"""Parsing helpers for scraped price and package-size text.

Every helper degrades to ``None`` on malformed input instead of raising, so
a bad field never costs the whole listing.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

_PRICE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")

# Cents-only labels such as "99¢"
_CENTS_PATTERN = re.compile(r"^\s*(\d{1,2})\s*(?:¢|c)\s*$", re.IGNORECASE)

SIZE_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*"
    r"(kg|kgs|g|gm|gms|gram|grams|lb|lbs|oz|ml|mls|l|litre|litres|liter|liters"
    r"|pack|packs|pk|ct|count|pcs|pc|piece|pieces|ea|each|unit|units)\b",
    re.IGNORECASE,
)


class PriceNormalizer:
    """Price parsing utilities for listing text and JSON values."""

    @staticmethod
    def clean_price_string(raw: Optional[str]) -> Optional[Decimal]:
        """Parse a price string and extract the first numeric value.

        Handles formats like "$3.99", "3.99 ea", "$1,234.50" and "99¢" (-> 0.99).
        Multi-buy labels ("2 for $5") are not understood; the first number wins.

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if raw is None:
            return None
        text = str(raw).strip()
        if not text:
            return None

        cents = _CENTS_PATTERN.match(text)
        if cents:
            return (Decimal(cents.group(1)) / 100).quantize(Decimal("0.01"))

        match = _PRICE_PATTERN.search(text.replace(",", ""))
        if not match:
            return None
        try:
            return Decimal(match.group(1))
        except InvalidOperation:
            logger.warning("price_parse_failed", raw=text[:50])
            return None

    @staticmethod
    def to_decimal(value: Any) -> Optional[Decimal]:
        """Convert a JSON number or numeric string to Decimal, else None."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        return PriceNormalizer.clean_price_string(str(value))


def parse_price(raw: Optional[str]) -> Optional[Decimal]:
    """Shortcut for ``PriceNormalizer.clean_price_string``."""
    return PriceNormalizer.clean_price_string(raw)


def extract_size_and_unit(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Find the first "<number> <unit>" pair in a product name or size label.

    Returns:
        (size, unit) e.g. ("500", "g"), or (None, None) when absent
    """
    if not text:
        return None, None
    match = SIZE_PATTERN.search(text)
    if not match:
        return None, None
    return match.group(1), match.group(2).lower()


def extract_size(text: Optional[str]) -> Optional[str]:
    return extract_size_and_unit(text)[0]


def extract_unit(text: Optional[str]) -> Optional[str]:
    return extract_size_and_unit(text)[1]
