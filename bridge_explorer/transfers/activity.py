"""
Token and address transaction histories.

Unlike the correlated listing these are flat: every source deposit and
every destination release touching the token (or address) is one row,
tagged with the stage it came from.
"""

from typing import Optional

import structlog

from bridge_explorer.errors import InvalidRequestError
from bridge_explorer.normalization.address import AssetAddressNormalizer
from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore
from bridge_explorer.transfers.pagination import Page, PageRequest
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)


class ActivityService:
    """Paged activity for one token or one address on one chain."""

    def __init__(self, store: DuckDBTransactionStore, normalizer: AssetAddressNormalizer):
        self.store = store
        self.normalizer = normalizer

    @staticmethod
    def _require(chain_id: Optional[int], value: Optional[str], field: str) -> str:
        if chain_id is None:
            raise InvalidRequestError("chainId is required")
        if value is None or not value.strip():
            raise InvalidRequestError(f"{field} is required")
        return value

    def token_transactions(
        self,
        chain_id: int,
        token: str,
        page: PageRequest,
        deadline: Optional[Deadline] = None,
    ) -> Page:
        """
        Deposits and releases of one asset.

        The total comes from the precomputed token statistics, so it can
        lag the rows by one statistics run.
        """
        self._require(chain_id, token, "token")
        canonical = self.normalizer.normalize(chain_id, token)
        if canonical is None:
            logger.info("token_not_normalizable", chain_id=chain_id)
            return Page.empty(page)

        total_count = self.store.count_token_activity(chain_id, canonical, deadline)
        items = self.store.list_token_activity(chain_id, canonical, page.offset, page.limit, deadline)
        return Page(page_no=page.page_no, page_size=page.page_size, total_count=total_count, items=items)

    def address_transactions(
        self,
        chain_id: int,
        address: str,
        page: PageRequest,
        deadline: Optional[Deadline] = None,
    ) -> Page:
        """Transfers sent from the address on the source side or received on the destination side."""
        self._require(chain_id, address, "address")
        canonical = self.normalizer.normalize(chain_id, address)
        if canonical is None:
            logger.info("address_not_normalizable", chain_id=chain_id)
            return Page.empty(page)

        total_count = self.store.count_address_activity(chain_id, canonical, deadline)
        items = self.store.list_address_activity(chain_id, canonical, page.offset, page.limit, deadline)
        return Page(page_no=page.page_no, page_size=page.page_size, total_count=total_count, items=items)
