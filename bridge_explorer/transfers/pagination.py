"""
Page windows and totals shared by every list view.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog

from bridge_explorer.errors import InvalidRequestError
from bridge_explorer.storage.redis_cache import RedisCounterCache
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# LIMIT and OFFSET are bound as BIGINT.
MAX_WINDOW = 2**63 - 1


def total_pages(total_count: int, page_size: int) -> int:
    """Number of pages needed for total_count rows."""
    if page_size < 1:
        raise InvalidRequestError("pageSize must be >= 1")
    return math.ceil(total_count / page_size)


@dataclass(frozen=True)
class PageRequest:
    """1-based page number and page size, validated on construction."""
    page_no: int
    page_size: int

    def __post_init__(self):
        if self.page_no is None or self.page_no < 1:
            raise InvalidRequestError("pageNo must be >= 1")
        if self.page_size is None or self.page_size < 1:
            raise InvalidRequestError("pageSize must be >= 1")
        if (self.page_no - 1) * self.page_size + self.page_size > MAX_WINDOW:
            raise InvalidRequestError("pageNo and pageSize are too large")

    @property
    def offset(self) -> int:
        return (self.page_no - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@dataclass
class Page(Generic[T]):
    page_no: int
    page_size: int
    total_count: int
    items: list[T] = field(default_factory=list)

    @classmethod
    def empty(cls, request: PageRequest) -> "Page[T]":
        return cls(page_no=request.page_no, page_size=request.page_size, total_count=0, items=[])

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    def to_dict(self, present: Callable[[T], Any] = lambda item: item) -> dict:
        return {
            "pageNo": self.page_no,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "items": [present(item) for item in self.items],
        }


class CachedCounter:
    """
    Read-through count cache.

    hit: cached value. miss or cache failure: compute from the store,
    try to write back, return the fresh value whatever the write-back
    outcome. Concurrent misses may each recompute; the last write wins.
    """

    def __init__(
        self,
        cache: Optional[RedisCounterCache] = None,
        ttl_seconds: int = 300,
        enabled: bool = True,
    ):
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled and cache is not None

    def count(self, key: str, compute: Callable[[], int], deadline: Optional[Deadline] = None) -> int:
        if not self.enabled:
            return compute()

        cached, hit = self.cache.get(key, deadline=deadline)
        if hit:
            logger.debug("counter_cache_hit", key=key, count=cached)
            return cached

        fresh = compute()
        if not self.cache.set(key, fresh, self.ttl_seconds, deadline=deadline):
            logger.info("counter_write_back_skipped", key=key)
        return fresh
