"""
SQLite result store for scan records, price feeds and daily metrics.

One aiosqlite connection is shared by the scanner (writer) and the read API.
Scan records and price feeds are append-only; daily metrics are recomputed
from scan records and upserted by date.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import aiosqlite

from pair_arbitrage.exceptions import PersistenceFailure
from pair_arbitrage.utils import get_logger

from .types import DailyMetric, PriceFeedObservation, ScanRecord

logger = get_logger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000

SCHEMA = """
CREATE TABLE IF NOT EXISTS arbitrage_scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp INTEGER NOT NULL,
    dex_a TEXT NOT NULL,
    dex_b TEXT NOT NULL,
    pair TEXT NOT NULL,
    amount_in REAL NOT NULL,
    direction TEXT NOT NULL,
    buy_price REAL NOT NULL,
    sell_price REAL NOT NULL,
    price_difference REAL NOT NULL,
    price_difference_pct REAL NOT NULL,
    estimated_profit REAL NOT NULL,
    gas_cost_estimate REAL DEFAULT 0,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS price_feeds (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    exchange TEXT NOT NULL,
    pair TEXT NOT NULL,
    price REAL NOT NULL,
    volume REAL,
    liquidity_token0 REAL,
    liquidity_token1 REAL,
    timestamp INTEGER NOT NULL,
    block_number INTEGER,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS daily_metrics (
    date TEXT PRIMARY KEY,
    total_scans INTEGER NOT NULL DEFAULT 0,
    profitable_scans INTEGER NOT NULL DEFAULT 0,
    total_profit REAL NOT NULL DEFAULT 0,
    avg_profit REAL NOT NULL DEFAULT 0,
    max_profit REAL NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS bot_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    description TEXT,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_arbitrage_scans_timestamp ON arbitrage_scans(timestamp);
CREATE INDEX IF NOT EXISTS idx_arbitrage_scans_pair ON arbitrage_scans(pair);
CREATE INDEX IF NOT EXISTS idx_arbitrage_scans_profit ON arbitrage_scans(estimated_profit);
CREATE INDEX IF NOT EXISTS idx_price_feeds_exchange_pair ON price_feeds(exchange, pair);
CREATE INDEX IF NOT EXISTS idx_price_feeds_timestamp ON price_feeds(timestamp);

CREATE VIEW IF NOT EXISTS profitable_opportunities AS
SELECT
    id,
    timestamp,
    dex_a,
    dex_b,
    pair,
    amount_in,
    direction,
    buy_price,
    sell_price,
    price_difference,
    price_difference_pct,
    estimated_profit,
    datetime(timestamp / 1000, 'unixepoch') AS human_timestamp
FROM arbitrage_scans
WHERE estimated_profit > 0;
"""

UPSERT_DAILY_METRIC = """
INSERT INTO daily_metrics
    (date, total_scans, profitable_scans, total_profit, avg_profit, max_profit)
SELECT
    ?,
    COUNT(*),
    COUNT(CASE WHEN estimated_profit > 0 THEN 1 END),
    COALESCE(SUM(estimated_profit), 0),
    COALESCE(AVG(estimated_profit), 0),
    COALESCE(MAX(estimated_profit), 0)
FROM arbitrage_scans
WHERE DATE(timestamp / 1000, 'unixepoch') = ?
ON CONFLICT(date) DO UPDATE SET
    total_scans = excluded.total_scans,
    profitable_scans = excluded.profitable_scans,
    total_profit = excluded.total_profit,
    avg_profit = excluded.avg_profit,
    max_profit = excluded.max_profit
"""


class ResultStore:
    """
    Async SQLite store.

    Usage:
        async with ResultStore("arbitrage_bot.db") as store:
            await store.insert_scan(record)

    Every sqlite error surfaces as PersistenceFailure.
    """

    def __init__(self, db_path: str = "arbitrage_bot.db"):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> "ResultStore":
        """Connect and create the schema if needed."""
        if self._conn is not None:
            return self

        try:
            conn = await aiosqlite.connect(self.db_path)
        except aiosqlite.Error as e:
            raise PersistenceFailure(
                f"Failed to open database {self.db_path}: {e}", operation="open"
            ) from e

        try:
            conn.row_factory = aiosqlite.Row
            if self.db_path != ":memory:":
                await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.executescript(SCHEMA)
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.close()
            raise PersistenceFailure(
                f"Failed to initialize database {self.db_path}: {e}", operation="open"
            ) from e

        self._conn = conn
        logger.info(f"Connected to SQLite database: {self.db_path}")
        return self

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.close()
        except aiosqlite.Error as e:
            logger.warning(f"Error closing database: {e}")
        else:
            logger.info("Database connection closed")

    async def __aenter__(self) -> "ResultStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        if self._conn is None:
            raise PersistenceFailure("Result store is not open", operation=operation)
        try:
            yield self._conn
        except aiosqlite.Error as e:
            raise PersistenceFailure(f"{operation} failed: {e}", operation=operation) from e

    async def _fetch_all(self, operation: str, sql: str, params=()) -> List[Dict[str, Any]]:
        async with self._connection(operation) as conn:
            async with conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    # ----- writes -----

    async def insert_scan(self, record: ScanRecord) -> int:
        """
        Insert one scan record; derived price difference fields are computed here.

        Returns:
            Row id of the new record
        """
        async with self._connection("insert_scan") as conn:
            cursor = await conn.execute(
                """
                INSERT INTO arbitrage_scans
                    (timestamp, dex_a, dex_b, pair, amount_in, direction, buy_price,
                     sell_price, price_difference, price_difference_pct,
                     estimated_profit, gas_cost_estimate)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.timestamp,
                    record.dex_a,
                    record.dex_b,
                    record.pair,
                    float(record.amount_in),
                    record.direction,
                    float(record.buy_price),
                    float(record.sell_price),
                    float(record.price_difference),
                    float(record.price_difference_pct),
                    float(record.estimated_profit),
                    float(record.gas_cost_estimate),
                ),
            )
            await conn.commit()
            row_id = cursor.lastrowid

        logger.debug(f"Inserted scan with ID: {row_id}")
        return row_id

    async def insert_price_feed(self, observation: PriceFeedObservation) -> None:
        async with self._connection("insert_price_feed") as conn:
            await conn.execute(
                """
                INSERT INTO price_feeds
                    (exchange, pair, price, volume, liquidity_token0, liquidity_token1,
                     timestamp, block_number)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    observation.exchange,
                    observation.pair,
                    float(observation.price),
                    float(observation.volume) if observation.volume is not None else None,
                    float(observation.liquidity_token0),
                    float(observation.liquidity_token1),
                    observation.timestamp,
                    observation.block_number,
                ),
            )
            await conn.commit()

    async def upsert_daily_metric(self, date: str) -> DailyMetric:
        """
        Recompute one UTC day's aggregates from scan records and upsert them.

        Running it again with unchanged scan records yields the same row.

        Args:
            date: Calendar date as YYYY-MM-DD

        Returns:
            The stored DailyMetric
        """
        async with self._connection("upsert_daily_metric") as conn:
            await conn.execute(UPSERT_DAILY_METRIC, (date, date))
            await conn.commit()
            async with conn.execute(
                "SELECT * FROM daily_metrics WHERE date = ?", (date,)
            ) as cursor:
                row = await cursor.fetchone()

        logger.debug(f"Updated daily metrics for {date}")
        return DailyMetric.from_row(dict(row))

    async def set_config_value(
        self, key: str, value: str, description: Optional[str] = None
    ) -> None:
        async with self._connection("set_config_value") as conn:
            await conn.execute(
                """
                INSERT INTO bot_config (key, value, description, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    description = COALESCE(excluded.description, bot_config.description),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, str(value), description),
            )
            await conn.commit()

    async def clean_old_data(self, days: int = 30, now_ms: Optional[int] = None) -> int:
        """
        Delete scan records and price feeds older than ``days``.

        Returns:
            Number of rows removed across both tables
        """
        if days < 0:
            raise ValueError(f"days must be >= 0: {days}")

        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        cutoff = now_ms - days * MS_PER_DAY

        async with self._connection("clean_old_data") as conn:
            scans = await conn.execute(
                "DELETE FROM arbitrage_scans WHERE timestamp < ?", (cutoff,)
            )
            feeds = await conn.execute(
                "DELETE FROM price_feeds WHERE timestamp < ?", (cutoff,)
            )
            await conn.commit()
            removed = max(scans.rowcount, 0) + max(feeds.rowcount, 0)

        logger.info(f"Cleaned {removed} records older than {days} days")
        return removed

    # ----- reads -----

    async def recent_scans(self, limit: int = 100) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            "recent_scans",
            "SELECT * FROM arbitrage_scans ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )

    async def profitable_opportunities(self, limit: int = 50) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            "profitable_opportunities",
            "SELECT * FROM profitable_opportunities ORDER BY estimated_profit DESC LIMIT ?",
            (limit,),
        )

    async def daily_summary(self, days: int = 7) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            "daily_summary",
            "SELECT * FROM daily_metrics ORDER BY date DESC LIMIT ?",
            (days,),
        )

    async def performance_metrics(
        self, start_date: str, end_date: str
    ) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            "performance_metrics",
            "SELECT * FROM daily_metrics WHERE date BETWEEN ? AND ? ORDER BY date DESC",
            (start_date, end_date),
        )

    async def recent_price_feeds(self, limit: int = 100) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            "recent_price_feeds",
            "SELECT * FROM price_feeds ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )

    async def get_config_value(self, key: str) -> Optional[str]:
        rows = await self._fetch_all(
            "get_config_value", "SELECT value FROM bot_config WHERE key = ?", (key,)
        )
        return rows[0]["value"] if rows else None
