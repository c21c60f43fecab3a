"""
Records read from the transaction store.

Stage records are written once by ingestion and never change, so every
type here is frozen. CrossChainTransfer is derived on each read and never
persisted.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

# Source records with this flag are bridge-standard transfers.
STANDARD_FLAG = 0

# Token rows with this property are listed in the explorer.
LISTED_PROPERTY = 1


class TransferState(str, Enum):
    """Lifecycle state of a cross-chain transfer."""
    PENDING = "pending"
    COMPLETED = "completed"


class Direction(int, Enum):
    """Which stage an activity row came from."""
    SOURCE = 1
    DESTINATION = 2


# =========================================================================
# Reference data
# =========================================================================

@dataclass(frozen=True)
class Chain:
    chain_id: int
    name: str
    height: int = 0


@dataclass(frozen=True)
class TokenBasic:
    name: str
    precision: int
    price: Decimal = Decimal(0)
    ind: int = 0
    time: int = 0
    property: int = LISTED_PROPERTY


@dataclass(frozen=True)
class Token:
    hash: str
    chain_id: int
    name: str
    token_basic_name: str
    token_type: str = ""
    precision: int = 0
    property: int = LISTED_PROPERTY


# =========================================================================
# Stage records
# =========================================================================

@dataclass(frozen=True)
class SourceRecord:
    hash: str
    chain_id: int
    height: int
    time: int
    standard: int = STANDARD_FLAG

    @property
    def is_standard(self) -> bool:
        return self.standard == STANDARD_FLAG


@dataclass(frozen=True)
class SourceTransfer:
    tx_hash: str
    chain_id: int
    from_address: str
    to_address: str
    asset: str
    amount: Decimal
    dst_chain_id: int
    dst_asset: str


@dataclass(frozen=True)
class RelayRecord:
    hash: str
    src_hash: str
    chain_id: int
    height: int
    time: int


@dataclass(frozen=True)
class DestinationRecord:
    hash: str
    poly_hash: str
    chain_id: int
    height: int
    time: int


@dataclass(frozen=True)
class DestinationTransfer:
    tx_hash: str
    chain_id: int
    from_address: str
    to_address: str
    asset: str
    amount: Decimal


@dataclass(frozen=True)
class CrossChainTransfer:
    """
    One deposit joined with whatever later stages are visible.

    The source record is always present. Relay and destination appear
    in that order as ingestion catches up.
    """
    source: SourceRecord
    source_transfer: Optional[SourceTransfer] = None
    relay: Optional[RelayRecord] = None
    destination: Optional[DestinationRecord] = None
    destination_transfer: Optional[DestinationTransfer] = None

    @property
    def source_hash(self) -> str:
        return self.source.hash

    @property
    def relay_hash(self) -> str:
        return self.relay.hash if self.relay else ""

    @property
    def destination_hash(self) -> str:
        return self.destination.hash if self.destination else ""


# =========================================================================
# Precomputed statistics
# =========================================================================

@dataclass(frozen=True)
class ChainStatistic:
    chain_id: int
    addresses: int
    in_counter: int
    out_counter: int


@dataclass(frozen=True)
class TokenStatistic:
    chain_id: int
    hash: str
    in_counter: int
    in_amount: Decimal
    out_counter: int
    out_amount: Decimal
    in_amount_usd: Decimal
    out_amount_usd: Decimal


@dataclass(frozen=True)
class AssetStatistic:
    name: str
    addresses: int
    txnum: int
    amount: Decimal
    amount_usd: Decimal
    amount_btc: Decimal
    latest_update: int


# =========================================================================
# Activity rows
# =========================================================================

@dataclass(frozen=True)
class ActivityRecord:
    """A single stage transfer touching a token or an address."""
    hash: str
    chain_id: int
    height: int
    time: int
    from_address: str
    to_address: str
    amount: Decimal
    direction: Direction
    token_hash: str = ""
    token_name: str = ""
    token_type: str = ""
    precision: int = 0


# =========================================================================
# Queries
# =========================================================================

@dataclass(frozen=True)
class TransferQuery:
    """
    Filter for cross-chain listings.

    Address and token are canonical store keys (already normalized) and
    are scoped to chain_id: the sender on the source side or the
    recipient on the destination side of that chain. Times are unix
    seconds on the source record, both inclusive.
    """
    chain_id: Optional[int] = None
    address: Optional[str] = None
    token: Optional[str] = None
    state: Optional[TransferState] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None

    @property
    def is_unfiltered(self) -> bool:
        return all(
            value is None
            for value in (self.chain_id, self.address, self.token, self.state, self.start_time, self.end_time)
        )
