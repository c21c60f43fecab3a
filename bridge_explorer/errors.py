"""
Error taxonomy for the explorer.

- InvalidRequestError: caller sent something we cannot serve (400)
- StoreUnavailableError: the transaction store failed (503)
- DeadlineExceededError: a store call ran past the request deadline (504)
- AggregateUnavailableError: one statistics part failed (503)
- CacheUnavailableError: counter cache backend failed (never surfaced)

"Nothing found" is not an error: lookups return None or an empty page.
"""

from typing import Optional


class ExplorerError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidRequestError(ExplorerError):
    status_code = 400


class StoreUnavailableError(ExplorerError):
    status_code = 503


class DeadlineExceededError(StoreUnavailableError):
    status_code = 504

    def __init__(self, operation: str):
        super().__init__(f"deadline exceeded during {operation}")
        self.operation = operation


class AggregateUnavailableError(StoreUnavailableError):
    """A statistics sub-aggregate could not be computed."""

    def __init__(self, part: str, cause: Optional[Exception] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"{part} unavailable{detail}")
        self.part = part


class CacheUnavailableError(ExplorerError):
    """Raised inside the cache adapter only. Callers absorb it."""
