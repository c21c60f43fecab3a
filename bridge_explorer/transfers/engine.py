"""
Cross-chain transfer correlation.

A transfer is three independently ingested records linked by hashes:

    source.hash  <-  relay.src_hash
    relay.hash   <-  destination.poly_hash

Any of the three hashes identifies the same transfer. Later stages may
be missing because ingestion has not caught up yet; that is a normal
state (pending), not an error.
"""

from dataclasses import dataclass
from typing import Optional, Union

import structlog

from bridge_explorer.errors import InvalidRequestError
from bridge_explorer.models import CrossChainTransfer, TransferQuery, TransferState
from bridge_explorer.normalization.address import AssetAddressNormalizer, normalize_tx_hash
from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore, JoinedStages
from bridge_explorer.transfers.pagination import CachedCounter, Page, PageRequest
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)

# Cache key of the unfiltered cross-chain transfer total.
TOTAL_COUNTER_KEY = "cross_tx_total"


@dataclass(frozen=True)
class TransferFilter:
    """Listing filter as received, addresses and tokens in display form."""
    chain_id: Optional[int] = None
    address: Optional[str] = None
    token: Optional[str] = None
    state: Optional[Union[TransferState, str]] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None


def _parse_state(value: Optional[Union[TransferState, str]]) -> Optional[TransferState]:
    if value is None or isinstance(value, TransferState):
        return value
    if not value.strip():
        return None
    try:
        return TransferState(value.strip().lower())
    except ValueError:
        raise InvalidRequestError(f"unknown state: {value}") from None


class CorrelationEngine:
    """
    Builds CrossChainTransfer composites from the stage tables.

    Only standard source records are surfaced. A relay or destination
    whose source is not visible (or not standard) resolves to nothing.
    """

    def __init__(
        self,
        store: DuckDBTransactionStore,
        counter: Optional[CachedCounter] = None,
        normalizer: Optional[AssetAddressNormalizer] = None,
    ):
        self.store = store
        self.counter = counter or CachedCounter(cache=None)
        self.normalizer = normalizer

    @staticmethod
    def _compose(stages: JoinedStages) -> CrossChainTransfer:
        source, source_transfer, relay, destination, destination_transfer = stages
        # A destination is only meaningful behind its relay.
        if relay is None:
            destination, destination_transfer = None, None
        return CrossChainTransfer(
            source=source,
            source_transfer=source_transfer,
            relay=relay,
            destination=destination,
            destination_transfer=destination_transfer,
        )

    def lookup(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[CrossChainTransfer]:
        """
        Find the transfer that any stage hash belongs to.

        Probes source, relay and destination hashes in that order, walks
        back to the source record, then loads the later stages forward.

        Returns:
            The composite, or None if nothing (standard) matches
        """
        tx_hash = normalize_tx_hash(tx_hash or "")
        if not tx_hash:
            return None

        relay = None
        destination = None

        source = self.store.get_source(tx_hash, deadline)
        if source is None:
            relay = self.store.get_relay(tx_hash, deadline)
            if relay is None:
                destination = self.store.get_destination(tx_hash, deadline)
                if destination is None:
                    return None
                relay = self.store.get_relay(destination.poly_hash, deadline)
                if relay is None:
                    logger.debug("destination_without_relay", tx_hash=tx_hash)
                    return None
            source = self.store.get_source(relay.src_hash, deadline)
            if source is None:
                logger.debug("relay_without_source", tx_hash=tx_hash, src_hash=relay.src_hash)
                return None

        if not source.is_standard:
            return None

        if relay is None:
            relay = self.store.get_relay_for_source(source.hash, deadline)
        if relay is not None and destination is None:
            destination = self.store.get_destination_for_relay(relay.hash, deadline)

        source_transfer = self.store.get_source_transfer(source.hash, deadline)
        destination_transfer = None
        if destination is not None:
            destination_transfer = self.store.get_destination_transfer(destination.hash, deadline)

        return CrossChainTransfer(
            source=source,
            source_transfer=source_transfer,
            relay=relay,
            destination=destination,
            destination_transfer=destination_transfer,
        )

    def build_query(self, raw: TransferFilter) -> Optional[TransferQuery]:
        """
        Validate and normalize a listing filter.

        Raises:
            InvalidRequestError: address or token without a chain id, bad state

        Returns:
            TransferQuery, or None when an address or token cannot be
            normalized (the listing is then empty)
        """
        state = _parse_state(raw.state)

        address = raw.address.strip() if raw.address else None
        token = raw.token.strip() if raw.token else None

        if (address or token) and raw.chain_id is None:
            raise InvalidRequestError("chainId is required with an address or token filter")

        if address or token:
            if self.normalizer is None:
                raise InvalidRequestError("address and token filters are not supported")
            if address:
                address = self.normalizer.normalize(raw.chain_id, address)
                if address is None:
                    return None
            if token:
                token = self.normalizer.normalize(raw.chain_id, token)
                if token is None:
                    return None

        return TransferQuery(
            chain_id=raw.chain_id,
            address=address,
            token=token,
            state=state,
            start_time=raw.start_time,
            end_time=raw.end_time,
        )

    def search(self, raw: TransferFilter, page: PageRequest, deadline: Optional[Deadline] = None) -> Page:
        """List transfers for a display-form filter; un-normalizable input yields an empty page."""
        query = self.build_query(raw)
        if query is None:
            logger.info("transfer_filter_not_normalizable", chain_id=raw.chain_id)
            return Page.empty(page)
        return self.list(query, page, deadline)

    def count(self, query: TransferQuery, deadline: Optional[Deadline] = None) -> int:
        """Total matching transfers; only the unfiltered total is cached."""
        if query.is_unfiltered:
            return self.counter.count(
                TOTAL_COUNTER_KEY,
                lambda: self.store.count_transfers(query, deadline),
                deadline,
            )
        return self.store.count_transfers(query, deadline)

    def list(self, query: TransferQuery, page: PageRequest, deadline: Optional[Deadline] = None) -> Page:
        """
        One page of standard transfers with their later stages.

        Ordered by relay time, newest first, with not-yet-relayed
        transfers ahead of everything; ties by source hash.
        """
        total_count = self.count(query, deadline)
        rows = self.store.list_transfers(query, page.offset, page.limit, deadline)
        items = [self._compose(stages) for stages in rows]

        logger.debug(
            "transfers_listed",
            page_no=page.page_no,
            page_size=page.page_size,
            total_count=total_count,
            returned=len(items),
        )
        return Page(
            page_no=page.page_no,
            page_size=page.page_size,
            total_count=total_count,
            items=items,
        )
