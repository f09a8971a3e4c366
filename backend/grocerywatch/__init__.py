"""GroceryWatch: multi-store grocery price tracking.

Scrapes store catalogs, reconciles listings into one canonical product
catalog, records append-only price history and detects price drops.
"""

__version__ = "0.1.0"
