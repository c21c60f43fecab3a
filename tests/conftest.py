"""
Pytest configuration and fixtures.

Shared fixtures for all tests. Store tests run against a real DuckDB
file in a temporary directory, seeded through LedgerWriter.
"""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore
from bridge_explorer.storage.redis_cache import RedisCounterCache


class LedgerWriter:
    """Writes stage records the way the ingestion process would."""

    # Canonical (normalized) keys used across tests
    ALICE = "5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
    ALICE_CHECKSUM = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    BOB = "fb6916095ca1df60bb79ce92ce3ea74c37c5d359"
    USDT_ETH = "dac17f958d2ee523a2206206994597c13d831ec7"
    USDT_BSC = "55d398326f99059ff775485246999027b3197955"

    def __init__(self, store: DuckDBTransactionStore):
        self.store = store

    def chain(self, chain_id, name, height=0):
        self.store.execute("INSERT INTO chains VALUES (?, ?, ?)", [chain_id, name, height])

    def token_basic(self, name, precision, price=0, property=1):
        self.store.execute(
            "INSERT INTO token_basics VALUES (?, ?, ?, ?, ?, ?)",
            [name, precision, price, 0, 0, property],
        )

    def token(self, hash, chain_id, name, basic, token_type="ERC20", precision=18, property=1):
        self.store.execute(
            "INSERT INTO tokens VALUES (?, ?, ?, ?, ?, ?, ?)",
            [hash, chain_id, name, basic, token_type, precision, property],
        )

    def source(
        self,
        hash,
        chain_id=2,
        time=1000,
        height=100,
        standard=0,
        sender=ALICE,
        recipient=BOB,
        asset=USDT_ETH,
        amount=1000,
        dst_chain_id=6,
        dst_asset=USDT_BSC,
        with_transfer=True,
    ):
        self.store.execute(
            "INSERT INTO src_transactions VALUES (?, ?, ?, ?, ?)",
            [hash, chain_id, height, time, standard],
        )
        if with_transfer:
            self.store.execute(
                "INSERT INTO src_transfers VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [hash, chain_id, sender, recipient, asset, amount, dst_chain_id, dst_asset],
            )

    def relay(self, hash, src_hash, time=1100, height=10):
        self.store.execute(
            "INSERT INTO poly_transactions VALUES (?, ?, ?, ?, ?)",
            [hash, src_hash, 0, height, time],
        )

    def destination(
        self,
        hash,
        poly_hash,
        chain_id=6,
        time=1200,
        height=200,
        sender=ALICE,
        recipient=BOB,
        asset=USDT_BSC,
        amount=1000,
        with_transfer=True,
    ):
        self.store.execute(
            "INSERT INTO dst_transactions VALUES (?, ?, ?, ?, ?)",
            [hash, poly_hash, chain_id, height, time],
        )
        if with_transfer:
            self.store.execute(
                "INSERT INTO dst_transfers VALUES (?, ?, ?, ?, ?, ?)",
                [hash, chain_id, sender, recipient, asset, amount],
            )

    def chain_statistic(self, chain_id, addresses, in_counter, out_counter):
        self.store.execute(
            "INSERT INTO chain_statistics VALUES (?, ?, ?, ?)",
            [chain_id, addresses, in_counter, out_counter],
        )

    def token_statistic(self, chain_id, hash, in_counter, out_counter, in_amount=0, out_amount=0):
        self.store.execute(
            "INSERT INTO token_statistics VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [chain_id, hash, in_counter, in_amount, out_counter, out_amount, 0, 0],
        )

    def asset_statistic(self, name, addresses, txnum, amount, amount_usd=0, amount_btc=0, latest_update=0):
        self.store.execute(
            "INSERT INTO asset_statistics VALUES (?, ?, ?, ?, ?, ?, ?)",
            [name, addresses, txnum, amount, amount_usd, amount_btc, latest_update],
        )

    def reference(self):
        """Chains Poly/Ethereum/Ontology/BSC and USDT on Ethereum and BSC."""
        self.chain(0, "Poly")
        self.chain(2, "Ethereum", 15000000)
        self.chain(3, "Ontology")
        self.chain(6, "BSC", 20000000)
        self.token_basic("USDT", 6, price=1)
        self.token(self.USDT_ETH, 2, "USDT", "USDT", precision=6)
        self.token(self.USDT_BSC, 6, "USDT", "USDT", token_type="BEP20", precision=18)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def store(temp_dir):
    """Writable DuckDB store with the ledger schema."""
    db = DuckDBTransactionStore(str(temp_dir / "bridge.duckdb"), read_only=False)
    yield db
    db.close()


@pytest.fixture
def ledger(store):
    """Writer for seeding the store, with reference data loaded."""
    writer = LedgerWriter(store)
    writer.reference()
    return writer


@pytest.fixture
def mock_redis_client():
    """Redis client double: empty cache that accepts writes."""
    client = MagicMock()
    client.get.return_value = None
    client.setex.return_value = True
    client.ping.return_value = True
    return client


@pytest.fixture
def counter_cache(mock_redis_client):
    return RedisCounterCache(client=mock_redis_client, key_prefix="test")
