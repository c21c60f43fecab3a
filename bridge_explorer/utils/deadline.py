"""
Per-request deadlines.

A Deadline is created at the request boundary and passed down to every
store and cache call, so a slow backend cannot pin a worker indefinitely.
"""

import time
from typing import Optional

from bridge_explorer.errors import DeadlineExceededError


class Deadline:
    """Absolute point in (monotonic) time after which work should stop."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        """
        Args:
            timeout_seconds: Seconds from now. None means no deadline.
        """
        if timeout_seconds is None:
            self.expires_at: Optional[float] = None
        else:
            self.expires_at = time.monotonic() + timeout_seconds

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left, clamped at zero. None when unbounded."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, operation: str) -> None:
        """Raise DeadlineExceededError if the deadline has passed."""
        if self.expired:
            raise DeadlineExceededError(operation)

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining()})"
