"""
Tests for the read API.
Exercises every endpoint against a seeded SQLite file through TestClient.
"""

import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from dex.store import ResultStore
from dex.types import ScanRecord
from pair_arbitrage.exceptions import PersistenceFailure
from pair_arbitrage.utils import get_current_timestamp_ms, parse_iso_date, utc_today
from web_server import create_app


async def seed(db_path):
    now = get_current_timestamp_ms()
    async with ResultStore(db_path) as store:
        for i, profit in enumerate(("2.5", "-1.0", "0.75")):
            await store.insert_scan(
                ScanRecord(
                    timestamp=now - i,
                    dex_a="A",
                    dex_b="B",
                    pair="WETH/USDC",
                    amount_in=Decimal("1"),
                    direction="BuyA_SellB",
                    buy_price=Decimal("2000"),
                    sell_price=Decimal("2010"),
                    estimated_profit=Decimal(profit),
                )
            )
        await store.upsert_daily_metric(utc_today())
        await store.upsert_daily_metric("2020-01-01")


@pytest.fixture
def api_config(scanner_config, tmp_path):
    return replace(scanner_config, db_path=str(tmp_path / "api_test.db"))


@pytest.fixture
def client(api_config):
    """Test client over a seeded database; the app opens its own store."""
    asyncio.run(seed(api_config.db_path))
    with TestClient(create_app(api_config)) as test_client:
        yield test_client


class BrokenStore:
    async def recent_scans(self, limit):
        raise PersistenceFailure("recent_scans failed: database disk image is malformed")


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "running"
    assert data["pair"] == "WETH/USDC"
    assert data["exchanges"] == ["A", "B", "C"]


def test_opportunities(client):
    data = client.get("/opportunities").json()
    assert data["success"] is True
    assert data["count"] == 3
    assert data["data"][0]["estimated_profit"] == 2.5
    assert data["data"][0]["price_difference"] == pytest.approx(10.0)


def test_opportunities_limit(client):
    data = client.get("/opportunities", params={"limit": 1}).json()
    assert data["count"] == 1


def test_opportunities_invalid_limit(client):
    assert client.get("/opportunities", params={"limit": 0}).status_code == 422


def test_profitable_opportunities(client):
    data = client.get("/opportunities/profitable").json()
    assert data["count"] == 2
    assert [row["estimated_profit"] for row in data["data"]] == [2.5, 0.75]


def test_daily_summary(client):
    data = client.get("/summary/daily", params={"days": 7}).json()
    assert data["count"] == 2
    today = data["data"][0]
    assert today["date"] == utc_today()
    assert today["total_scans"] == 3
    assert today["profitable_scans"] == 2


def test_performance_defaults_to_last_week(client):
    data = client.get("/performance").json()
    assert [row["date"] for row in data["data"]] == [utc_today()]


def test_performance_explicit_range(client):
    today = parse_iso_date(utc_today())
    params = {"start": "2019-12-31", "end": (today - timedelta(days=1)).isoformat()}
    data = client.get("/performance", params=params).json()
    assert [row["date"] for row in data["data"]] == ["2020-01-01"]


def test_performance_rejects_bad_date(client):
    assert client.get("/performance", params={"start": "yesterday"}).status_code == 422


def test_exchanges(client):
    data = client.get("/exchanges").json()
    assert data["count"] == 3
    assert data["data"][0] == {
        "id": "A",
        "name": "Venue A",
        "pool_address": "0xpoolA",
        "fee": 0.0,
    }


def test_health(client):
    data = client.get("/health").json()
    assert data["success"] is True
    assert data["status"] == "healthy"
    assert data["uptime_seconds"] >= 0


def test_cors_is_open(client):
    response = client.get("/health", headers={"Origin": "http://dashboard.local"})
    assert response.headers["access-control-allow-origin"] == "*"


def test_persistence_failure_returns_500(api_config):
    client = TestClient(create_app(api_config, store=BrokenStore()))

    response = client.get("/opportunities")

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "recent_scans failed: database disk image is malformed",
    }
