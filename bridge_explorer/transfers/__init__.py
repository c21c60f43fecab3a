"""
Cross-chain transfer views.

- CorrelationEngine: joins source, relay and destination stages
- resolve_state: lifecycle state of a composite
- PageRequest / Page / CachedCounter: windowing and counting
- ActivityService: token and address histories
"""

from bridge_explorer.transfers.activity import ActivityService
from bridge_explorer.transfers.engine import CorrelationEngine
from bridge_explorer.transfers.pagination import CachedCounter, Page, PageRequest, total_pages
from bridge_explorer.transfers.state import resolve_state

__all__ = [
    "ActivityService",
    "CachedCounter",
    "CorrelationEngine",
    "Page",
    "PageRequest",
    "resolve_state",
    "total_pages",
]
