"""
Immutable chain and token reference data.

Loaded once at startup and shared read-only by every request. There is
no reload path: restarting the service picks up new chains or tokens.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import structlog

from bridge_explorer.models import Chain, Token, TokenBasic
from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    """Snapshot of chains, tokens and token basics."""
    chains: Mapping[int, Chain] = field(default_factory=lambda: MappingProxyType({}))
    tokens: Mapping[tuple[int, str], Token] = field(default_factory=lambda: MappingProxyType({}))
    token_basics: Mapping[str, TokenBasic] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(cls, chains: list[Chain], tokens: list[Token], token_basics: list[TokenBasic]) -> "ReferenceData":
        return cls(
            chains=MappingProxyType({chain.chain_id: chain for chain in chains}),
            tokens=MappingProxyType({(token.chain_id, token.hash): token for token in tokens}),
            token_basics=MappingProxyType({basic.name: basic for basic in token_basics}),
        )

    def chain_name(self, chain_id: Optional[int]) -> str:
        if chain_id is None:
            return ""
        chain = self.chains.get(chain_id)
        return chain.name if chain else ""

    def token(self, chain_id: Optional[int], token_hash: Optional[str]) -> Optional[Token]:
        if chain_id is None or not token_hash:
            return None
        return self.tokens.get((chain_id, token_hash))

    def token_basic_for(self, token: Optional[Token]) -> Optional[TokenBasic]:
        if token is None:
            return None
        return self.token_basics.get(token.token_basic_name)

    def tokens_of(self, basic_name: str) -> list[Token]:
        return [token for token in self.tokens.values() if token.token_basic_name == basic_name]


def load_reference_data(store: DuckDBTransactionStore, deadline: Optional[Deadline] = None) -> ReferenceData:
    """
    Load the reference snapshot.

    Raises:
        StoreUnavailableError: the caller (process startup) decides whether to abort
    """
    chains = store.list_chains(deadline=deadline)
    tokens = store.list_tokens(deadline=deadline)
    token_basics = store.list_token_basics(deadline=deadline)

    reference = ReferenceData.build(chains, tokens, token_basics)
    logger.info(
        "reference_data_loaded",
        chains=len(chains),
        tokens=len(tokens),
        token_basics=len(token_basics),
    )
    return reference
