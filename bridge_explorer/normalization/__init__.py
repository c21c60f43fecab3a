"""Per-chain address and asset normalization."""

from bridge_explorer.normalization.address import (
    AssetAddressNormalizer,
    Encoding,
    normalize_tx_hash,
)

__all__ = ["AssetAddressNormalizer", "Encoding", "normalize_tx_hash"]
