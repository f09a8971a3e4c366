"""Built-in store strategies, one per store code."""

from .pricesmart import PriceSmartStrategy
from .tnt import TntStrategy


__all__ = [
    "PriceSmartStrategy",
    "TntStrategy",
]
