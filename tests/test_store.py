"""
Tests for the SQLite result store.

Tests cover:
- Derived price difference fields computed at write time
- Profitable opportunity view and ordering
- Idempotent daily metric upserts
- Retention cleanup and the key/value settings table
- Failures surfacing as PersistenceFailure
"""

from decimal import Decimal

import pytest

from dex.store import MS_PER_DAY, ResultStore
from dex.types import PriceFeedObservation, ScanRecord
from pair_arbitrage.exceptions import PersistenceFailure

# 2024-01-15 12:00:00 UTC
NOON_JAN_15 = 1_705_320_000_000


def scan(timestamp=NOON_JAN_15, profit="1.5", buy="100", sell="101", a="A", b="B"):
    return ScanRecord(
        timestamp=timestamp,
        dex_a=a,
        dex_b=b,
        pair="WETH/USDC",
        amount_in=Decimal("1"),
        direction=f"Buy{a}_Sell{b}",
        buy_price=Decimal(buy),
        sell_price=Decimal(sell),
        estimated_profit=Decimal(profit),
        gas_cost_estimate=Decimal("4"),
    )


def feed(timestamp):
    return PriceFeedObservation(
        exchange="A",
        pair="WETH/USDC",
        price=Decimal("2000"),
        liquidity_token0=Decimal("1e21"),
        liquidity_token1=Decimal("2e12"),
        timestamp=timestamp,
    )


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "arbitrage_test.db")


class TestScans:
    @pytest.mark.asyncio
    async def test_insert_computes_derived_fields(self, db_path):
        async with ResultStore(db_path) as store:
            row_id = await store.insert_scan(scan(buy="100", sell="101"))
            rows = await store.recent_scans()

        assert row_id == 1
        row = rows[0]
        assert row["price_difference"] == pytest.approx(1.0)
        assert row["price_difference_pct"] == pytest.approx(1.0)
        assert row["gas_cost_estimate"] == pytest.approx(4.0)
        assert row["direction"] == "BuyA_SellB"

    @pytest.mark.asyncio
    async def test_price_difference_is_unsigned(self):
        async with ResultStore(":memory:") as store:
            await store.insert_scan(scan(buy="101", sell="100"))
            rows = await store.recent_scans()

        assert rows[0]["price_difference"] == pytest.approx(1.0)
        assert rows[0]["price_difference_pct"] == pytest.approx(100 / 101)

    @pytest.mark.asyncio
    async def test_recent_scans_newest_first_with_limit(self):
        async with ResultStore(":memory:") as store:
            for i in range(5):
                await store.insert_scan(scan(timestamp=NOON_JAN_15 + i))
            rows = await store.recent_scans(limit=3)

        assert [r["timestamp"] for r in rows] == [NOON_JAN_15 + 4, NOON_JAN_15 + 3, NOON_JAN_15 + 2]

    @pytest.mark.asyncio
    async def test_profitable_opportunities(self):
        async with ResultStore(":memory:") as store:
            for profit in ("0.5", "-2", "3.25", "0"):
                await store.insert_scan(scan(profit=profit))
            rows = await store.profitable_opportunities()

        assert [r["estimated_profit"] for r in rows] == [3.25, 0.5]
        assert rows[0]["human_timestamp"] == "2024-01-15 12:00:00"


class TestDailyMetrics:
    @pytest.mark.asyncio
    async def test_aggregates_one_utc_day(self):
        async with ResultStore(":memory:") as store:
            for profit in ("2.0", "-1.0", "0.5"):
                await store.insert_scan(scan(profit=profit))
            # Next day, must not be counted
            await store.insert_scan(scan(timestamp=NOON_JAN_15 + MS_PER_DAY, profit="9"))

            metric = await store.upsert_daily_metric("2024-01-15")

        assert metric.date == "2024-01-15"
        assert metric.total_scans == 3
        assert metric.profitable_scans == 2
        assert metric.total_profit == pytest.approx(1.5)
        assert metric.avg_profit == pytest.approx(0.5)
        assert metric.max_profit == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self):
        async with ResultStore(":memory:") as store:
            await store.insert_scan(scan(profit="2.0"))

            first = await store.upsert_daily_metric("2024-01-15")
            second = await store.upsert_daily_metric("2024-01-15")
            summary = await store.daily_summary()

        assert first == second
        assert len(summary) == 1

    @pytest.mark.asyncio
    async def test_upsert_refreshes_after_new_scans(self):
        async with ResultStore(":memory:") as store:
            await store.insert_scan(scan(profit="2.0"))
            await store.upsert_daily_metric("2024-01-15")
            await store.insert_scan(scan(profit="4.0"))
            metric = await store.upsert_daily_metric("2024-01-15")

        assert metric.total_scans == 2
        assert metric.max_profit == pytest.approx(4.0)

    @pytest.mark.asyncio
    async def test_empty_day_has_zero_row(self):
        async with ResultStore(":memory:") as store:
            metric = await store.upsert_daily_metric("2024-02-01")

        assert metric.total_scans == 0
        assert metric.total_profit == 0.0

    @pytest.mark.asyncio
    async def test_daily_summary_and_performance_range(self):
        async with ResultStore(":memory:") as store:
            for day in range(5):
                await store.insert_scan(scan(timestamp=NOON_JAN_15 + day * MS_PER_DAY))
                await store.upsert_daily_metric(f"2024-01-{15 + day}")

            latest_two = await store.daily_summary(days=2)
            in_range = await store.performance_metrics("2024-01-16", "2024-01-18")

        assert [r["date"] for r in latest_two] == ["2024-01-19", "2024-01-18"]
        assert [r["date"] for r in in_range] == ["2024-01-18", "2024-01-17", "2024-01-16"]


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_clean_old_data(self):
        now = NOON_JAN_15
        async with ResultStore(":memory:") as store:
            await store.insert_scan(scan(timestamp=now - 40 * MS_PER_DAY))
            await store.insert_scan(scan(timestamp=now - MS_PER_DAY))
            await store.insert_price_feed(feed(now - 31 * MS_PER_DAY))
            await store.insert_price_feed(feed(now))

            removed = await store.clean_old_data(days=30, now_ms=now)
            scans = await store.recent_scans()
            feeds = await store.recent_price_feeds()

        assert removed == 2
        assert [s["timestamp"] for s in scans] == [now - MS_PER_DAY]
        assert [f["timestamp"] for f in feeds] == [now]

    @pytest.mark.asyncio
    async def test_clean_old_data_rejects_negative_days(self):
        async with ResultStore(":memory:") as store:
            with pytest.raises(ValueError):
                await store.clean_old_data(days=-1)

    @pytest.mark.asyncio
    async def test_config_values(self):
        async with ResultStore(":memory:") as store:
            assert await store.get_config_value("min_profit_threshold") is None

            await store.set_config_value("min_profit_threshold", "1.0", "Minimum profit")
            await store.set_config_value("min_profit_threshold", "2.5")

            assert await store.get_config_value("min_profit_threshold") == "2.5"


class TestFailures:
    @pytest.mark.asyncio
    async def test_closed_store_raises(self):
        store = ResultStore(":memory:")
        with pytest.raises(PersistenceFailure) as exc_info:
            await store.insert_scan(scan())
        assert exc_info.value.operation == "insert_scan"

    @pytest.mark.asyncio
    async def test_unopenable_path_raises(self, tmp_path):
        store = ResultStore(str(tmp_path / "missing" / "dir" / "db.sqlite"))
        with pytest.raises(PersistenceFailure):
            await store.open()
        assert not store.is_open

    @pytest.mark.asyncio
    async def test_reopen_after_close(self, db_path):
        store = ResultStore(db_path)
        await store.open()
        await store.insert_scan(scan())
        await store.close()

        async with ResultStore(db_path) as reopened:
            assert len(await reopened.recent_scans()) == 1
