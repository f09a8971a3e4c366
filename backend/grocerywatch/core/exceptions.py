"""Custom exception classes for the application."""


class GroceryWatchError(Exception):
    """Base exception for all GroceryWatch errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(GroceryWatchError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class InvalidStateError(GroceryWatchError):
    """Raised when an operation is not allowed in the entity's current state."""


class ConflictError(InvalidStateError):
    """Raised when a scrape job is already active for a store."""

    def __init__(self, store_code: str):
        self.store_code = store_code
        super().__init__(f"A scrape job is already running for store: {store_code}")


class InternalError(GroceryWatchError):
    """Raised for configuration faults, e.g. no scraper registered for a store."""


class RateLimitTimeout(GroceryWatchError):
    """Raised when a rate limiter permit cannot be acquired within the timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Rate limiter permit not acquired within {timeout:.2f}s")


class ImmutableRecordError(GroceryWatchError):
    """Raised when an append-only record is updated or deleted."""


class StoreMappingConflict(GroceryWatchError):
    """Raised when an existing cross-store product id mapping would be overwritten."""

    def __init__(self, store_code: str, existing: str, attempted: str | None):
        self.store_code = store_code
        super().__init__(
            f"Store mapping for '{store_code}' is already '{existing}', "
            f"refusing to change it to '{attempted}'"
        )
