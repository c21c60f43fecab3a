"""
DuckDB transaction store.

The ingestion process appends stage records (source, relay, destination)
plus token/chain metadata and precomputed statistics. This service opens
the file read-only and never writes; schema creation is only used when
the store is opened writable (local setups and tests).

Every query runs on its own cursor so concurrent request threads never
share one, and every query can be interrupted by a request Deadline.
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import duckdb
import structlog

from bridge_explorer.errors import DeadlineExceededError, StoreUnavailableError
from bridge_explorer.models import (
    STANDARD_FLAG,
    ActivityRecord,
    AssetStatistic,
    Chain,
    ChainStatistic,
    DestinationRecord,
    DestinationTransfer,
    Direction,
    RelayRecord,
    SourceRecord,
    SourceTransfer,
    Token,
    TokenBasic,
    TokenStatistic,
    TransferQuery,
    TransferState,
)
from bridge_explorer.utils.deadline import Deadline

logger = structlog.get_logger(__name__)

# One joined row: (source, source_transfer, relay, destination, destination_transfer)
JoinedStages = tuple[
    SourceRecord,
    Optional[SourceTransfer],
    Optional[RelayRecord],
    Optional[DestinationRecord],
    Optional[DestinationTransfer],
]

_JOINED_COLUMNS = """
    s.hash, s.chain_id, s.height, s.time, s.standard,
    st.tx_hash, st.chain_id, st.from_address, st.to_address, st.asset, st.amount, st.dst_chain_id, st.dst_asset,
    p.hash, p.src_hash, p.chain_id, p.height, p.time,
    d.hash, d.poly_hash, d.chain_id, d.height, d.time,
    dt.tx_hash, dt.chain_id, dt.from_address, dt.to_address, dt.asset, dt.amount
"""

_JOINED_TABLES = """
    src_transactions s
    LEFT JOIN src_transfers st ON st.tx_hash = s.hash
    LEFT JOIN poly_transactions p ON p.src_hash = s.hash
    LEFT JOIN dst_transactions d ON d.poly_hash = p.hash
    LEFT JOIN dst_transfers dt ON dt.tx_hash = d.hash
"""

# Relay-less (unconfirmed) deposits first, then newest confirmation.
_JOINED_ORDER = "ORDER BY p.time DESC NULLS FIRST, s.hash ASC"


class DuckDBTransactionStore:
    """
    Read access to the bridge ledger.

    Design principles:
    - Stage records are append-only; nothing here mutates them
    - "No rows" returns None / [] and is never an error
    - Any duckdb failure becomes StoreUnavailableError
    - Join logic for correlated transfers lives in one place
    """

    def __init__(self, db_path: str, read_only: bool = True):
        """
        Open the store.

        Args:
            db_path: Path to the DuckDB file
            read_only: Open read-only (the service); False also creates the schema

        Raises:
            StoreUnavailableError: if the file cannot be opened
        """
        self.db_path = Path(db_path)
        self.read_only = read_only

        if not read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = duckdb.connect(str(self.db_path), read_only=read_only)
        except duckdb.Error as e:
            logger.error("duckdb_open_failed", path=str(self.db_path), error=str(e))
            raise StoreUnavailableError(f"cannot open transaction store: {e}") from e

        if not read_only:
            self._init_schema()

        logger.info(
            "transaction_store_opened",
            path=str(self.db_path),
            read_only=read_only,
        )

    def _init_schema(self) -> None:
        """Create tables written by the ingestion process."""

        # Reference data
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS chains (
                chain_id BIGINT PRIMARY KEY,
                name VARCHAR NOT NULL,
                height BIGINT DEFAULT 0
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS token_basics (
                name VARCHAR PRIMARY KEY,
                precision INTEGER NOT NULL,
                price DECIMAL(38, 8) DEFAULT 0,
                ind INTEGER DEFAULT 0,
                time BIGINT DEFAULT 0,
                property INTEGER DEFAULT 1
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS tokens (
                hash VARCHAR NOT NULL,
                chain_id BIGINT NOT NULL,
                name VARCHAR NOT NULL,
                token_basic_name VARCHAR NOT NULL,
                token_type VARCHAR DEFAULT '',
                precision INTEGER DEFAULT 0,
                property INTEGER DEFAULT 1,
                PRIMARY KEY (hash, chain_id)
            )
        """)

        # Stage records
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS src_transactions (
                hash VARCHAR PRIMARY KEY,
                chain_id BIGINT NOT NULL,
                height BIGINT NOT NULL,
                time BIGINT NOT NULL,
                standard INTEGER NOT NULL DEFAULT 0
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS src_transfers (
                tx_hash VARCHAR PRIMARY KEY,
                chain_id BIGINT NOT NULL,
                from_address VARCHAR NOT NULL,
                to_address VARCHAR NOT NULL,
                asset VARCHAR NOT NULL,
                amount DECIMAL(38, 0) NOT NULL,
                dst_chain_id BIGINT NOT NULL,
                dst_asset VARCHAR NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS poly_transactions (
                hash VARCHAR PRIMARY KEY,
                src_hash VARCHAR NOT NULL,
                chain_id BIGINT NOT NULL DEFAULT 0,
                height BIGINT NOT NULL,
                time BIGINT NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS dst_transactions (
                hash VARCHAR PRIMARY KEY,
                poly_hash VARCHAR NOT NULL,
                chain_id BIGINT NOT NULL,
                height BIGINT NOT NULL,
                time BIGINT NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS dst_transfers (
                tx_hash VARCHAR PRIMARY KEY,
                chain_id BIGINT NOT NULL,
                from_address VARCHAR NOT NULL,
                to_address VARCHAR NOT NULL,
                asset VARCHAR NOT NULL,
                amount DECIMAL(38, 0) NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_poly_src_hash ON poly_transactions (src_hash)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_dst_poly_hash ON dst_transactions (poly_hash)")

        # Precomputed statistics
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS chain_statistics (
                chain_id BIGINT PRIMARY KEY,
                addresses BIGINT DEFAULT 0,
                in_counter BIGINT DEFAULT 0,
                out_counter BIGINT DEFAULT 0
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS token_statistics (
                chain_id BIGINT NOT NULL,
                hash VARCHAR NOT NULL,
                in_counter BIGINT DEFAULT 0,
                in_amount DECIMAL(38, 0) DEFAULT 0,
                out_counter BIGINT DEFAULT 0,
                out_amount DECIMAL(38, 0) DEFAULT 0,
                in_amount_usd DECIMAL(38, 4) DEFAULT 0,
                out_amount_usd DECIMAL(38, 4) DEFAULT 0,
                PRIMARY KEY (chain_id, hash)
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS asset_statistics (
                name VARCHAR PRIMARY KEY,
                addresses BIGINT DEFAULT 0,
                txnum BIGINT DEFAULT 0,
                amount DECIMAL(38, 0) DEFAULT 0,
                amount_usd DECIMAL(38, 4) DEFAULT 0,
                amount_btc DECIMAL(38, 8) DEFAULT 0,
                latest_update BIGINT DEFAULT 0
            )
        """)

        self.conn.commit()
        logger.info("transaction_store_schema_initialized")

    @contextmanager
    def _cursor(self, operation: str, deadline: Optional[Deadline] = None) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Yield a private cursor, interrupted when the deadline passes.

        Raises:
            DeadlineExceededError: deadline passed before or during the query
            StoreUnavailableError: any other duckdb failure
        """
        if deadline is not None:
            deadline.check(operation)
        remaining = deadline.remaining() if deadline is not None else None

        try:
            cursor = self.conn.cursor()
        except duckdb.Error as e:
            raise StoreUnavailableError(f"{operation} failed: {e}") from e

        timer = None
        if remaining is not None:
            timer = threading.Timer(remaining, cursor.interrupt)
            timer.daemon = True
            timer.start()

        try:
            yield cursor
        except duckdb.InterruptException as e:
            logger.warning("store_query_interrupted", operation=operation)
            raise DeadlineExceededError(operation) from e
        except duckdb.Error as e:
            logger.error("store_query_failed", operation=operation, error=str(e))
            raise StoreUnavailableError(f"{operation} failed: {e}") from e
        finally:
            if timer is not None:
                timer.cancel()
            cursor.close()

    def _fetch_one(self, operation: str, query: str, params: list, deadline: Optional[Deadline]) -> Optional[tuple]:
        with self._cursor(operation, deadline) as cursor:
            return cursor.execute(query, params).fetchone()

    def _fetch_all(self, operation: str, query: str, params: list, deadline: Optional[Deadline]) -> list[tuple]:
        with self._cursor(operation, deadline) as cursor:
            return cursor.execute(query, params).fetchall()

    # =========================================================================
    # Stage Lookups
    # =========================================================================

    def get_source(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[SourceRecord]:
        row = self._fetch_one(
            "get_source",
            "SELECT hash, chain_id, height, time, standard FROM src_transactions WHERE hash = ?",
            [tx_hash],
            deadline,
        )
        return SourceRecord(*row) if row else None

    def get_source_transfer(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[SourceTransfer]:
        row = self._fetch_one(
            "get_source_transfer",
            """
            SELECT tx_hash, chain_id, from_address, to_address, asset, amount, dst_chain_id, dst_asset
            FROM src_transfers
            WHERE tx_hash = ?
            """,
            [tx_hash],
            deadline,
        )
        return SourceTransfer(*row) if row else None

    def get_relay(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[RelayRecord]:
        row = self._fetch_one(
            "get_relay",
            "SELECT hash, src_hash, chain_id, height, time FROM poly_transactions WHERE hash = ?",
            [tx_hash],
            deadline,
        )
        return RelayRecord(*row) if row else None

    def get_relay_for_source(self, src_hash: str, deadline: Optional[Deadline] = None) -> Optional[RelayRecord]:
        row = self._fetch_one(
            "get_relay_for_source",
            """
            SELECT hash, src_hash, chain_id, height, time
            FROM poly_transactions
            WHERE src_hash = ?
            ORDER BY hash
            LIMIT 1
            """,
            [src_hash],
            deadline,
        )
        return RelayRecord(*row) if row else None

    def get_destination(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[DestinationRecord]:
        row = self._fetch_one(
            "get_destination",
            "SELECT hash, poly_hash, chain_id, height, time FROM dst_transactions WHERE hash = ?",
            [tx_hash],
            deadline,
        )
        return DestinationRecord(*row) if row else None

    def get_destination_for_relay(self, poly_hash: str, deadline: Optional[Deadline] = None) -> Optional[DestinationRecord]:
        row = self._fetch_one(
            "get_destination_for_relay",
            """
            SELECT hash, poly_hash, chain_id, height, time
            FROM dst_transactions
            WHERE poly_hash = ?
            ORDER BY hash
            LIMIT 1
            """,
            [poly_hash],
            deadline,
        )
        return DestinationRecord(*row) if row else None

    def get_destination_transfer(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[DestinationTransfer]:
        row = self._fetch_one(
            "get_destination_transfer",
            """
            SELECT tx_hash, chain_id, from_address, to_address, asset, amount
            FROM dst_transfers
            WHERE tx_hash = ?
            """,
            [tx_hash],
            deadline,
        )
        return DestinationTransfer(*row) if row else None

    # =========================================================================
    # Correlated Listing
    # =========================================================================

    @staticmethod
    def _transfer_filters(query: TransferQuery) -> tuple[list[str], list[Any]]:
        """WHERE clauses shared by list and count."""
        filters = ["s.standard = ?"]
        params: list[Any] = [STANDARD_FLAG]

        if query.address is not None:
            filters.append(
                "((st.from_address = ? AND s.chain_id = ?) OR (dt.to_address = ? AND d.chain_id = ?))"
            )
            params.extend([query.address, query.chain_id, query.address, query.chain_id])
        if query.token is not None:
            filters.append("((st.asset = ? AND s.chain_id = ?) OR (dt.asset = ? AND d.chain_id = ?))")
            params.extend([query.token, query.chain_id, query.token, query.chain_id])
        if query.chain_id is not None and query.address is None and query.token is None:
            filters.append("(s.chain_id = ? OR st.dst_chain_id = ?)")
            params.extend([query.chain_id, query.chain_id])

        if query.state == TransferState.PENDING:
            filters.append("d.hash IS NULL")
        elif query.state == TransferState.COMPLETED:
            filters.append("d.hash IS NOT NULL")

        if query.start_time is not None:
            filters.append("s.time >= ?")
            params.append(query.start_time)
        if query.end_time is not None:
            filters.append("s.time <= ?")
            params.append(query.end_time)

        return filters, params

    @staticmethod
    def _joined_from_row(row: tuple) -> JoinedStages:
        source = SourceRecord(*row[0:5])
        source_transfer = SourceTransfer(*row[5:13]) if row[5] is not None else None
        relay = RelayRecord(*row[13:18]) if row[13] is not None else None
        destination = DestinationRecord(*row[18:23]) if row[18] is not None else None
        destination_transfer = DestinationTransfer(*row[23:29]) if row[23] is not None else None
        return source, source_transfer, relay, destination, destination_transfer

    def list_transfers(
        self,
        query: TransferQuery,
        offset: int,
        limit: int,
        deadline: Optional[Deadline] = None,
    ) -> list[JoinedStages]:
        """
        Standard deposits left-joined to their later stages.

        Args:
            query: Filter (address/token already normalized)
            offset: Rows to skip
            limit: Maximum rows

        Returns:
            Joined stage tuples in listing order
        """
        filters, params = self._transfer_filters(query)
        sql = f"""
            SELECT {_JOINED_COLUMNS}
            FROM {_JOINED_TABLES}
            WHERE {' AND '.join(filters)}
            {_JOINED_ORDER}
            LIMIT ? OFFSET ?
        """
        rows = self._fetch_all("list_transfers", sql, params + [limit, offset], deadline)
        return [self._joined_from_row(row) for row in rows]

    def count_transfers(self, query: TransferQuery, deadline: Optional[Deadline] = None) -> int:
        filters, params = self._transfer_filters(query)
        sql = f"""
            SELECT COUNT(*)
            FROM {_JOINED_TABLES}
            WHERE {' AND '.join(filters)}
        """
        row = self._fetch_one("count_transfers", sql, params, deadline)
        return int(row[0]) if row else 0

    # =========================================================================
    # Token / Address Activity
    # =========================================================================

    @staticmethod
    def _activity_from_row(row: tuple) -> ActivityRecord:
        return ActivityRecord(
            hash=row[0],
            chain_id=row[1],
            height=row[2],
            time=row[3],
            from_address=row[4],
            to_address=row[5],
            amount=row[6],
            direction=Direction(row[7]),
            token_hash=row[8],
            token_name=row[9],
            token_type=row[10],
            precision=row[11],
        )

    def list_token_activity(
        self,
        chain_id: int,
        token: str,
        offset: int,
        limit: int,
        deadline: Optional[Deadline] = None,
    ) -> list[ActivityRecord]:
        """Deposits and releases of one asset on one chain, newest block first."""
        sql = """
            SELECT * FROM (
                SELECT s.hash, s.chain_id, s.height, s.time, st.from_address, st.to_address, st.amount,
                       1 AS direction, st.asset AS token_hash, '' AS token_name,
                       '' AS token_type, 0 AS precision
                FROM src_transactions s
                JOIN src_transfers st ON st.tx_hash = s.hash
                WHERE st.chain_id = ? AND st.asset = ?
                UNION ALL
                SELECT d.hash, d.chain_id, d.height, d.time, dt.from_address, dt.to_address, dt.amount,
                       2 AS direction, dt.asset AS token_hash, '' AS token_name,
                       '' AS token_type, 0 AS precision
                FROM dst_transactions d
                JOIN dst_transfers dt ON dt.tx_hash = d.hash
                WHERE dt.chain_id = ? AND dt.asset = ?
            ) AS activity
            ORDER BY height DESC, hash ASC
            LIMIT ? OFFSET ?
        """
        rows = self._fetch_all(
            "list_token_activity",
            sql,
            [chain_id, token, chain_id, token, limit, offset],
            deadline,
        )
        return [self._activity_from_row(row) for row in rows]

    def count_token_activity(self, chain_id: int, token: str, deadline: Optional[Deadline] = None) -> int:
        """Total from the precomputed token statistics."""
        row = self._fetch_one(
            "count_token_activity",
            """
            SELECT COALESCE(SUM(in_counter + out_counter), 0)
            FROM token_statistics
            WHERE chain_id = ? AND hash = ?
            """,
            [chain_id, token],
            deadline,
        )
        return int(row[0]) if row else 0

    def list_address_activity(
        self,
        chain_id: int,
        address: str,
        offset: int,
        limit: int,
        deadline: Optional[Deadline] = None,
    ) -> list[ActivityRecord]:
        """Transfers sent from (source side) or received by (destination side) an address."""
        sql = """
            SELECT * FROM (
                SELECT s.hash, s.chain_id, s.height, s.time, st.from_address, st.to_address, st.amount,
                       1 AS direction, COALESCE(c.hash, st.asset) AS token_hash, COALESCE(c.name, '') AS token_name,
                       COALESCE(c.token_type, '') AS token_type, COALESCE(m.precision, 0) AS precision
                FROM src_transactions s
                JOIN src_transfers st ON st.tx_hash = s.hash
                LEFT JOIN tokens c ON c.hash = st.asset AND c.chain_id = st.chain_id
                LEFT JOIN token_basics m ON m.name = c.token_basic_name
                WHERE st.from_address = ? AND st.chain_id = ?
                UNION ALL
                SELECT d.hash, d.chain_id, d.height, d.time, dt.from_address, dt.to_address, dt.amount,
                       2 AS direction, COALESCE(f.hash, dt.asset) AS token_hash, COALESCE(f.name, '') AS token_name,
                       COALESCE(f.token_type, '') AS token_type, COALESCE(n.precision, 0) AS precision
                FROM dst_transactions d
                JOIN dst_transfers dt ON dt.tx_hash = d.hash
                LEFT JOIN tokens f ON f.hash = dt.asset AND f.chain_id = dt.chain_id
                LEFT JOIN token_basics n ON n.name = f.token_basic_name
                WHERE dt.to_address = ? AND dt.chain_id = ?
            ) AS activity
            ORDER BY height DESC, hash ASC
            LIMIT ? OFFSET ?
        """
        rows = self._fetch_all(
            "list_address_activity",
            sql,
            [address, chain_id, address, chain_id, limit, offset],
            deadline,
        )
        return [self._activity_from_row(row) for row in rows]

    def count_address_activity(self, chain_id: int, address: str, deadline: Optional[Deadline] = None) -> int:
        row = self._fetch_one(
            "count_address_activity",
            """
            SELECT
                (SELECT COUNT(*) FROM src_transactions s
                 JOIN src_transfers st ON st.tx_hash = s.hash
                 WHERE st.from_address = ? AND st.chain_id = ?)
              + (SELECT COUNT(*) FROM dst_transactions d
                 JOIN dst_transfers dt ON dt.tx_hash = d.hash
                 WHERE dt.to_address = ? AND dt.chain_id = ?)
            """,
            [address, chain_id, address, chain_id],
            deadline,
        )
        return int(row[0]) if row else 0

    # =========================================================================
    # Reference Data
    # =========================================================================

    def list_chains(self, chain_id: Optional[int] = None, deadline: Optional[Deadline] = None) -> list[Chain]:
        chain_filter = "WHERE chain_id = ?" if chain_id is not None else ""
        params = [chain_id] if chain_id is not None else []
        rows = self._fetch_all(
            "list_chains",
            f"SELECT chain_id, name, height FROM chains {chain_filter} ORDER BY chain_id",
            params,
            deadline,
        )
        return [Chain(*row) for row in rows]

    def list_tokens(self, deadline: Optional[Deadline] = None) -> list[Token]:
        rows = self._fetch_all(
            "list_tokens",
            """
            SELECT hash, chain_id, name, token_basic_name, token_type, precision, property
            FROM tokens
            ORDER BY token_basic_name, chain_id, hash
            """,
            [],
            deadline,
        )
        return [Token(*row) for row in rows]

    def list_token_basics(self, property: Optional[int] = None, deadline: Optional[Deadline] = None) -> list[TokenBasic]:
        property_filter = "WHERE property = ?" if property is not None else ""
        params = [property] if property is not None else []
        rows = self._fetch_all(
            "list_token_basics",
            f"""
            SELECT name, precision, price, ind, time, property
            FROM token_basics
            {property_filter}
            ORDER BY name
            """,
            params,
            deadline,
        )
        return [TokenBasic(*row) for row in rows]

    # =========================================================================
    # Statistics
    # =========================================================================

    def list_chain_statistics(
        self,
        chain_id: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> list[ChainStatistic]:
        chain_filter = "WHERE chain_id = ?" if chain_id is not None else ""
        params = [chain_id] if chain_id is not None else []
        rows = self._fetch_all(
            "list_chain_statistics",
            f"""
            SELECT chain_id, addresses, in_counter, out_counter
            FROM chain_statistics
            {chain_filter}
            ORDER BY chain_id
            """,
            params,
            deadline,
        )
        return [ChainStatistic(*row) for row in rows]

    def list_token_statistics(
        self,
        chain_id: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> list[TokenStatistic]:
        chain_filter = "WHERE chain_id = ?" if chain_id is not None else ""
        params = [chain_id] if chain_id is not None else []
        rows = self._fetch_all(
            "list_token_statistics",
            f"""
            SELECT chain_id, hash, in_counter, in_amount, out_counter, out_amount,
                   in_amount_usd, out_amount_usd
            FROM token_statistics
            {chain_filter}
            ORDER BY chain_id, hash
            """,
            params,
            deadline,
        )
        return [TokenStatistic(*row) for row in rows]

    def list_asset_statistics(self, deadline: Optional[Deadline] = None) -> list[AssetStatistic]:
        rows = self._fetch_all(
            "list_asset_statistics",
            """
            SELECT name, addresses, txnum, amount, amount_usd, amount_btc, latest_update
            FROM asset_statistics
            ORDER BY amount_usd DESC, name
            """,
            [],
            deadline,
        )
        return [AssetStatistic(*row) for row in rows]

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def execute(self, query: str, params: list = None) -> Any:
        """Execute a raw statement (ingestion tooling and tests)."""
        if params:
            return self.conn.execute(query, params)
        return self.conn.execute(query)

    def ping(self) -> bool:
        """Check that the store answers a trivial query."""
        try:
            with self._cursor("ping") as cursor:
                cursor.execute("SELECT 1").fetchone()
            return True
        except StoreUnavailableError:
            return False

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
        logger.info("transaction_store_closed", path=str(self.db_path))
