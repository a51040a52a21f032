"""Shared fixtures: a WETH/USDC pair, three fake venues and an in-process pool source."""

from decimal import Decimal

import pytest

from dex.config import ScannerConfig
from dex.types import ExchangeDescriptor, PoolState, TokenInfo
from pair_arbitrage.retry import RetryPolicy, linear_backoff

WETH = TokenInfo("WETH", "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619", 18)
USDC = TokenInfo("USDC", "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", 6)


def raw_units(amount, decimals: int) -> int:
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def weth_usdc_state(weth_reserve, usdc_reserve, weth_first: bool = True) -> PoolState:
    """PoolState for a WETH/USDC pair given human-unit reserves."""
    weth_raw = raw_units(weth_reserve, WETH.decimals)
    usdc_raw = raw_units(usdc_reserve, USDC.decimals)
    if weth_first:
        return PoolState(WETH.address, USDC.address, weth_raw, usdc_raw)
    return PoolState(USDC.address, WETH.address, usdc_raw, weth_raw)


class FakePoolSource:
    """
    Pool source driven by a script per pool address.

    Each entry is a PoolState, an exception instance (raised on every call)
    or a list of those consumed one per call.
    """

    def __init__(self, script=None):
        self.script = dict(script or {})
        self.calls = {}

    async def get_pool_state(self, pool_address: str) -> PoolState:
        self.calls[pool_address] = self.calls.get(pool_address, 0) + 1
        outcome = self.script[pool_address]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def base_token():
    return WETH


@pytest.fixture
def quote_token():
    return USDC


@pytest.fixture
def exchanges():
    return (
        ExchangeDescriptor("A", "Venue A", "0xpoolA", Decimal("0")),
        ExchangeDescriptor("B", "Venue B", "0xpoolB", Decimal("0")),
        ExchangeDescriptor("C", "Venue C", "0xpoolC", Decimal("0")),
    )


@pytest.fixture
def scanner_config(exchanges):
    return ScannerConfig(
        base_token=WETH,
        quote_token=USDC,
        exchanges=exchanges,
        rpc_url="http://localhost:8545",
        gas_usd_per_leg=Decimal("0"),
        min_profit_threshold=Decimal("1.0"),
        trade_size=Decimal("1"),
        pair_delay_sec=0.0,
        retry_max_attempts=3,
        retry_backoff_sec=0.0,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fast_retry(recording_sleep):
    return RetryPolicy(max_attempts=3, backoff=linear_backoff(1.0), sleep=recording_sleep)


@pytest.fixture
def fake_source_factory():
    return FakePoolSource


@pytest.fixture
def make_state():
    return weth_usdc_state
