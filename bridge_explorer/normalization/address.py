"""
Address and asset normalization.

Users paste addresses in whatever form their wallet shows: checksummed
hex, base58, with or without prefixes. The store keys everything by one
canonical form per chain, so every address or asset filter passes through
here before it reaches a query.

Canonical forms:
- hex chains: 40 lowercase hex characters, no 0x prefix
- base58 chains: the 20-byte script hash, byte-reversed, lowercase hex
- raw chains: the trimmed input
"""

import re
from enum import Enum
from typing import Mapping, Optional

import base58
import structlog
from eth_utils import is_checksum_address, is_hex_address

logger = structlog.get_logger(__name__)

# Version byte of Ontology / NEO legacy addresses.
BASE58_ADDRESS_VERSION = 0x17

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_CANONICAL_RE = re.compile(r"^[0-9a-f]{40}$")


class Encoding(str, Enum):
    HEX = "hex"
    BASE58 = "base58"
    RAW = "raw"


def _strip_0x(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def normalize_tx_hash(value: str) -> str:
    """
    Canonical form of a transaction hash.

    Hex hashes lose their 0x prefix and are lowercased; anything else is
    only trimmed.
    """
    value = value.strip()
    bare = _strip_0x(value)
    if bare and _HEX_RE.match(bare):
        return bare.lower()
    return value


class AssetAddressNormalizer:
    """
    Maps display-form addresses to store keys.

    normalize() returns None for unknown chains and malformed input.
    Callers must treat None as "matches nothing" and never fall back to
    querying with the raw value.
    """

    def __init__(self, encodings: Mapping[int, str]):
        self.encodings: dict[int, Encoding] = {}
        for chain_id, encoding in encodings.items():
            try:
                self.encodings[int(chain_id)] = Encoding(encoding)
            except ValueError:
                logger.warning("unknown_chain_encoding", chain_id=chain_id, encoding=encoding)

    def encoding_for(self, chain_id: int) -> Optional[Encoding]:
        return self.encodings.get(chain_id)

    def normalize(self, chain_id: int, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None

        encoding = self.encodings.get(chain_id)
        if encoding is None:
            logger.debug("normalize_unknown_chain", chain_id=chain_id)
            return None

        if encoding is Encoding.HEX:
            return self._normalize_hex(value)
        if encoding is Encoding.BASE58:
            return self._normalize_base58(value)
        return value

    @staticmethod
    def _normalize_hex(value: str) -> Optional[str]:
        bare = _strip_0x(value)
        prefixed = "0x" + bare
        if not is_hex_address(prefixed):
            return None

        # All-lower and all-upper carry no checksum; mixed case must verify.
        if bare != bare.lower() and bare != bare.upper():
            if not is_checksum_address(prefixed):
                logger.debug("hex_checksum_mismatch", value=value)
                return None

        return bare.lower()

    @staticmethod
    def _normalize_base58(value: str) -> Optional[str]:
        if _CANONICAL_RE.match(value):
            return value

        try:
            decoded = base58.b58decode_check(value)
        except ValueError:
            return None

        if len(decoded) != 21 or decoded[0] != BASE58_ADDRESS_VERSION:
            return None

        return decoded[1:][::-1].hex()
