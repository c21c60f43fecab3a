"""
Address normalization tests.

Covers hex (EIP-55), base58check and raw encodings plus transaction
hash canonicalization.
"""

import base58
import pytest

from bridge_explorer.config import DEFAULT_CHAIN_ENCODINGS
from bridge_explorer.normalization.address import (
    BASE58_ADDRESS_VERSION,
    AssetAddressNormalizer,
    Encoding,
    normalize_tx_hash,
)

CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
CANONICAL = "5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"

SCRIPT_HASH = bytes(range(1, 21))


@pytest.fixture
def normalizer():
    return AssetAddressNormalizer(DEFAULT_CHAIN_ENCODINGS)


class TestHexAddresses:
    """Tests for Ethereum-style chains."""

    def test_checksummed_address(self, normalizer):
        assert normalizer.normalize(2, CHECKSUMMED) == CANONICAL

    def test_lowercase_with_and_without_prefix(self, normalizer):
        assert normalizer.normalize(2, "0x" + CANONICAL) == CANONICAL
        assert normalizer.normalize(6, CANONICAL) == CANONICAL

    def test_uppercase_has_no_checksum(self, normalizer):
        assert normalizer.normalize(2, "0x" + CANONICAL.upper()) == CANONICAL

    def test_bad_checksum_rejected(self, normalizer):
        """Mixed case that fails EIP-55 is treated as a typo."""
        bad = "0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"

        assert normalizer.normalize(2, bad) is None

    def test_surrounding_whitespace_trimmed(self, normalizer):
        assert normalizer.normalize(2, f"  {CHECKSUMMED}\n") == CANONICAL

    @pytest.mark.parametrize("value", ["", "   ", "0x1234", "0x" + "g" * 40, CANONICAL + "00"])
    def test_malformed_rejected(self, normalizer, value):
        assert normalizer.normalize(2, value) is None


class TestBase58Addresses:
    """Tests for Ontology / NEO style chains."""

    def test_decodes_to_reversed_script_hash(self, normalizer):
        address = base58.b58encode_check(bytes([BASE58_ADDRESS_VERSION]) + SCRIPT_HASH).decode()

        assert normalizer.normalize(3, address) == SCRIPT_HASH[::-1].hex()

    def test_canonical_form_accepted(self, normalizer):
        canonical = SCRIPT_HASH[::-1].hex()

        assert normalizer.normalize(4, canonical) == canonical

    def test_wrong_version_rejected(self, normalizer):
        address = base58.b58encode_check(bytes([0x35]) + SCRIPT_HASH).decode()

        assert normalizer.normalize(3, address) is None

    def test_invalid_characters_rejected(self, normalizer):
        assert normalizer.normalize(3, "0OIl0OIl") is None

    def test_corrupted_checksum_rejected(self, normalizer):
        address = base58.b58encode_check(bytes([BASE58_ADDRESS_VERSION]) + SCRIPT_HASH).decode()
        corrupted = address[:-1] + ("1" if address[-1] != "1" else "2")

        assert normalizer.normalize(3, corrupted) is None


class TestRawAndUnknownChains:
    """Tests for pass-through chains and unknown chain ids."""

    def test_raw_chain_passes_through(self, normalizer):
        assert normalizer.normalize(1, " bc1qxyz ") == "bc1qxyz"

    def test_unknown_chain_returns_none(self, normalizer):
        assert normalizer.normalize(999, CHECKSUMMED) is None

    def test_unknown_encoding_ignored(self):
        normalizer = AssetAddressNormalizer({2: "hex", 5: "bech32"})

        assert normalizer.encoding_for(2) == Encoding.HEX
        assert normalizer.encoding_for(5) is None
        assert normalizer.normalize(5, "anything") is None

    def test_none_input(self, normalizer):
        assert normalizer.normalize(2, None) is None


class TestNormalizeTxHash:
    """Tests for transaction hash canonicalization."""

    def test_prefix_dropped_and_lowercased(self):
        assert normalize_tx_hash("0xABCDEF01") == "abcdef01"

    def test_bare_hex_lowercased(self):
        assert normalize_tx_hash(" ABCDEF01 ") == "abcdef01"

    def test_non_hex_left_alone(self):
        assert normalize_tx_hash(" src1 ") == "src1"

    def test_empty(self):
        assert normalize_tx_hash("   ") == ""
