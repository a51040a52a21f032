"""
Core data types for cross-DEX pair arbitrage scanning.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TokenInfo:
    """
    A token of the scanned pair.

    Attributes:
        symbol: Display symbol (e.g., "WETH")
        address: On-chain token address
        decimals: Fixed-point scale of raw amounts (e.g., 18 for WETH, 6 for USDC)
    """

    symbol: str
    address: str
    decimals: int


@dataclass(frozen=True)
class ExchangeDescriptor:
    """
    Static description of one venue's pool for the scanned pair.

    Attributes:
        id: Short identifier used in logs and records (e.g., "Uniswap")
        name: Display name (e.g., "Uniswap V2")
        pool_address: On-chain address of the pair contract
        fee: Swap fee as decimal in [0, 1) (e.g., 0.003 for 30 bps)
    """

    id: str
    name: str
    pool_address: str
    fee: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pool_address": self.pool_address,
            "fee": float(self.fee),
        }


@dataclass(frozen=True)
class PoolState:
    """Raw pair contract state: slot identities and reserves in native units."""

    token0: str
    token1: str
    reserve0: int
    reserve1: int


@dataclass(frozen=True)
class NormalizedReserves:
    """Reserves rescaled to human units and oriented as (base, quote)."""

    base_reserve: Decimal
    quote_reserve: Decimal
    price: Decimal


@dataclass(frozen=True)
class PoolReading:
    """
    Point-in-time reading of one exchange's pool.

    Attributes:
        exchange_id: Exchange the reading belongs to
        base_reserve: Base asset reserve in human units (> 0)
        quote_reserve: Quote asset reserve in human units (> 0)
        price: Quote per base (quote_reserve / base_reserve)
        state: Raw pool state the reading was derived from
        timestamp: Unix milliseconds when the reading was taken
    """

    exchange_id: str
    base_reserve: Decimal
    quote_reserve: Decimal
    price: Decimal
    state: PoolState
    timestamp: int


@dataclass(frozen=True)
class PriceFeedObservation:
    """A successful pool reading as stored in the price feed log."""

    exchange: str
    pair: str
    price: Decimal
    liquidity_token0: Decimal
    liquidity_token1: Decimal
    timestamp: int
    volume: Optional[Decimal] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class ScanRecord:
    """
    Persisted outcome of one simulated direction.

    ``price_difference`` and ``price_difference_pct`` are derived from the
    buy/sell prices when the record is written.
    """

    timestamp: int
    dex_a: str
    dex_b: str
    pair: str
    amount_in: Decimal
    direction: str
    buy_price: Decimal
    sell_price: Decimal
    estimated_profit: Decimal
    gas_cost_estimate: Decimal = Decimal(0)

    @property
    def price_difference(self) -> Decimal:
        return abs(self.sell_price - self.buy_price)

    @property
    def price_difference_pct(self) -> Decimal:
        return self.price_difference / self.buy_price * Decimal(100)


@dataclass(frozen=True)
class SimulationResult:
    """
    Two-leg arbitrage outcome: buy base on one venue, sell it on another.

    Attributes:
        buy_exchange: Venue the base asset is bought on
        sell_exchange: Venue the base asset is sold on
        buy_price: Spot price on the buy venue (quote per base)
        sell_price: Spot price on the sell venue
        trade_size: Base asset amount traded
        quote_cost: Quote spent to acquire trade_size on the buy venue
        quote_proceeds: Quote received for trade_size on the sell venue
        gross_profit: quote_proceeds - quote_cost
        gas_estimate: Gas cost for both legs, in quote units
        net_profit: gross_profit - gas_estimate
        profitable: net_profit > min profit threshold
        price_spread_pct: Signed spread relative to the buy price, in percent
    """

    buy_exchange: str
    sell_exchange: str
    buy_price: Decimal
    sell_price: Decimal
    trade_size: Decimal
    quote_cost: Decimal
    quote_proceeds: Decimal
    gross_profit: Decimal
    gas_estimate: Decimal
    net_profit: Decimal
    profitable: bool
    price_spread_pct: Decimal

    @property
    def direction(self) -> str:
        return f"Buy{self.buy_exchange}_Sell{self.sell_exchange}"

    def to_scan_record(self, timestamp: int, pair: str) -> ScanRecord:
        return ScanRecord(
            timestamp=timestamp,
            dex_a=self.buy_exchange,
            dex_b=self.sell_exchange,
            pair=pair,
            amount_in=self.trade_size,
            direction=self.direction,
            buy_price=self.buy_price,
            sell_price=self.sell_price,
            estimated_profit=self.net_profit,
            gas_cost_estimate=self.gas_estimate,
        )


@dataclass(frozen=True)
class DailyMetric:
    """Aggregates over one UTC calendar day of scan records."""

    date: str
    total_scans: int
    profitable_scans: int
    total_profit: float
    avg_profit: float
    max_profit: float

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DailyMetric":
        return cls(
            date=row["date"],
            total_scans=int(row["total_scans"] or 0),
            profitable_scans=int(row["profitable_scans"] or 0),
            total_profit=float(row["total_profit"] or 0.0),
            avg_profit=float(row["avg_profit"] or 0.0),
            max_profit=float(row["max_profit"] or 0.0),
        )
