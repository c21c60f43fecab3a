"""
Redis counter cache for expensive aggregate counts.

The store is the source of truth; Redis only saves recomputing totals.
Every backend failure is absorbed here: get() reports a miss and set()
reports failure, both logged, neither raised.

Key naming convention:
- {prefix}:counter:{name} - cached count (integer, with TTL)
"""

from typing import Optional

import redis
import structlog

from bridge_explorer.errors import CacheUnavailableError
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)


class RedisCounterCache:
    """
    Best-effort integer cache.

    Design principles:
    - Store is TRUTH, Redis is CACHE
    - Cache unavailability never fails a request
    - TTL on every value so a stale count ages out
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        socket_timeout: float = 2.0,
        key_prefix: str = "explorer",
    ):
        """
        Initialize the cache.

        Unlike the store, connecting is lazy: an unreachable Redis at
        startup only means every lookup is a miss.

        Args:
            client: Pre-built client (tests); otherwise one is created
            host: Redis host
            port: Redis port
            db: Redis database number
            password: Redis password (optional)
            socket_timeout: Socket timeout in seconds
            key_prefix: Namespace for every key
        """
        self.client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        self.counter_prefix = f"{key_prefix}:counter"

        logger.info("counter_cache_initialized", host=host, port=port, db=db)

    def _key(self, name: str) -> str:
        return f"{self.counter_prefix}:{name}"

    def _get_raw(self, name: str) -> Optional[str]:
        try:
            return self.client.get(self._key(name))
        except redis.RedisError as e:
            raise CacheUnavailableError(f"cache get failed: {e}") from e

    def get(self, name: str, deadline: Optional[Deadline] = None) -> tuple[int, bool]:
        """
        Read a cached count.

        Returns:
            (count, hit). Any backend error, expired deadline or
            unparsable value is reported as a miss.
        """
        if deadline is not None and deadline.expired:
            return 0, False

        try:
            data = self._get_raw(name)
        except CacheUnavailableError as e:
            logger.warning("counter_cache_get_failed", key=name, error=e.message)
            return 0, False

        if data is None:
            return 0, False

        try:
            return int(data), True
        except (TypeError, ValueError):
            logger.warning("counter_cache_bad_value", key=name, value=data)
            return 0, False

    def set(self, name: str, count: int, ttl_seconds: int, deadline: Optional[Deadline] = None) -> bool:
        """
        Write a count with a TTL.

        Returns:
            True if Redis accepted the value
        """
        if deadline is not None and deadline.expired:
            logger.warning("counter_cache_set_skipped_deadline", key=name)
            return False

        try:
            self.client.setex(self._key(name), ttl_seconds, int(count))
        except redis.RedisError as e:
            logger.warning("counter_cache_set_failed", key=name, error=str(e))
            return False

        logger.debug("counter_cache_set", key=name, count=count, ttl_seconds=ttl_seconds)
        return True

    def ping(self) -> bool:
        """Check if Redis is responding."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        """Close Redis connection."""
        self.client.close()
        logger.info("counter_cache_closed")
