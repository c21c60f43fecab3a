"""
Statistics aggregation.

All figures are precomputed by the ingestion side into the *_statistics
tables; this module only reads and groups them. Each part of a response
is queried on its own and a failure names the part that failed. Partial
results are never returned.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

import structlog

from bridge_explorer.errors import AggregateUnavailableError, DeadlineExceededError, StoreUnavailableError
from bridge_explorer.models import (
    LISTED_PROPERTY,
    AssetStatistic,
    Chain,
    ChainStatistic,
    Token,
    TokenBasic,
    TokenStatistic,
)
from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class TransferStatistics:
    token_statistics: list[TokenStatistic] = field(default_factory=list)
    chain_statistics: list[ChainStatistic] = field(default_factory=list)
    chains: list[Chain] = field(default_factory=list)


@dataclass
class ListedAsset:
    basic: TokenBasic
    tokens: list[Token] = field(default_factory=list)


@dataclass
class ExplorerInfo:
    chains: list[Chain] = field(default_factory=list)
    chain_statistics: list[ChainStatistic] = field(default_factory=list)
    assets: list[ListedAsset] = field(default_factory=list)


class StatisticsAggregator:
    """Reads and groups the precomputed statistics tables."""

    def __init__(self, store: DuckDBTransactionStore):
        self.store = store

    def _part(self, part: str, fetch: Callable[[], T]) -> T:
        try:
            return fetch()
        except DeadlineExceededError:
            raise
        except StoreUnavailableError as e:
            logger.error("statistics_part_unavailable", part=part, error=e.message)
            raise AggregateUnavailableError(part, e) from e

    def transfer_statistics(
        self,
        chain_id: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> TransferStatistics:
        """
        Token and chain counters, optionally for one chain.

        Raises:
            AggregateUnavailableError: naming tokenStatistics,
                chainStatistics or chains
        """
        token_statistics = self._part(
            "tokenStatistics",
            lambda: self.store.list_token_statistics(chain_id=chain_id, deadline=deadline),
        )
        chain_statistics = self._part(
            "chainStatistics",
            lambda: self.store.list_chain_statistics(chain_id=chain_id, deadline=deadline),
        )
        chains = self._part(
            "chains",
            lambda: self.store.list_chains(chain_id=chain_id, deadline=deadline),
        )
        return TransferStatistics(
            token_statistics=token_statistics,
            chain_statistics=chain_statistics,
            chains=chains,
        )

    def explorer_info(self, deadline: Optional[Deadline] = None) -> ExplorerInfo:
        """Chains, chain counters and the listed assets with their per-chain tokens."""
        chains = self._part("chains", lambda: self.store.list_chains(deadline=deadline))
        chain_statistics = self._part(
            "chainStatistics",
            lambda: self.store.list_chain_statistics(deadline=deadline),
        )
        basics = self._part(
            "tokenBasics",
            lambda: self.store.list_token_basics(property=LISTED_PROPERTY, deadline=deadline),
        )
        tokens = self._part("tokens", lambda: self.store.list_tokens(deadline=deadline))

        by_basic: dict[str, list[Token]] = {}
        for token in tokens:
            if token.property == LISTED_PROPERTY:
                by_basic.setdefault(token.token_basic_name, []).append(token)

        assets = [ListedAsset(basic=basic, tokens=by_basic.get(basic.name, [])) for basic in basics]
        return ExplorerInfo(chains=chains, chain_statistics=chain_statistics, assets=assets)

    def asset_statistics(self, deadline: Optional[Deadline] = None) -> list[AssetStatistic]:
        return self._part("assetStatistics", lambda: self.store.list_asset_statistics(deadline=deadline))
