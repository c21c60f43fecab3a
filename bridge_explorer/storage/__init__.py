"""
Storage layer.

- DuckDBTransactionStore: read-only view of the bridge ledger
- RedisCounterCache: best-effort cache for expensive counts
- ReferenceData: immutable chain/token snapshot loaded at startup
"""

from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore
from bridge_explorer.storage.redis_cache import RedisCounterCache
from bridge_explorer.storage.reference_data import ReferenceData, load_reference_data

__all__ = ["DuckDBTransactionStore", "RedisCounterCache", "ReferenceData", "load_reference_data"]
