"""
Two-leg arbitrage simulation: buy the base asset on one venue, sell it on another.

Both legs go through the constant-product formulas, so the result includes
the price impact of the trade itself, the venue fees and a fixed gas cost.
"""

import asyncio
from decimal import Decimal

from pair_arbitrage.utils import get_logger

from .adapters.v2 import swap_in, swap_out
from .reader import ExchangeReader
from .types import ExchangeDescriptor, PoolReading, SimulationResult

logger = get_logger(__name__)


def simulate_round_trip(
    buy_pool: PoolReading,
    sell_pool: PoolReading,
    buy_fee: Decimal,
    sell_fee: Decimal,
    trade_size: Decimal,
    gas_usd_per_leg: Decimal,
    min_profit_threshold: Decimal,
) -> SimulationResult:
    """
    Price a buy-on-A/sell-on-B round trip from two pool readings.

    quote_cost is what it takes to pull ``trade_size`` base out of the buy
    pool; quote_proceeds is what ``trade_size`` base fetches in the sell pool.

    Raises:
        DomainError: If trade_size is not below the buy pool's base reserve
    """
    quote_cost = swap_in(trade_size, buy_pool.quote_reserve, buy_pool.base_reserve, buy_fee)
    quote_proceeds = swap_out(
        trade_size, sell_pool.base_reserve, sell_pool.quote_reserve, sell_fee
    )

    gross_profit = quote_proceeds - quote_cost
    gas_estimate = gas_usd_per_leg * 2
    net_profit = gross_profit - gas_estimate

    return SimulationResult(
        buy_exchange=buy_pool.exchange_id,
        sell_exchange=sell_pool.exchange_id,
        buy_price=buy_pool.price,
        sell_price=sell_pool.price,
        trade_size=trade_size,
        quote_cost=quote_cost,
        quote_proceeds=quote_proceeds,
        gross_profit=gross_profit,
        gas_estimate=gas_estimate,
        net_profit=net_profit,
        profitable=net_profit > min_profit_threshold,
        price_spread_pct=(sell_pool.price - buy_pool.price) / buy_pool.price * 100,
    )


class ArbitrageSimulator:
    """
    Reads two venues and simulates the round trip between them.

    No retries happen here; the reader already absorbs transient failures,
    so any exception is reported to the caller as-is.
    """

    def __init__(
        self,
        reader: ExchangeReader,
        gas_usd_per_leg: Decimal,
        min_profit_threshold: Decimal,
    ):
        self.reader = reader
        self.gas_usd_per_leg = gas_usd_per_leg
        self.min_profit_threshold = min_profit_threshold

    async def simulate(
        self,
        buy_exchange: ExchangeDescriptor,
        sell_exchange: ExchangeDescriptor,
        trade_size: Decimal,
    ) -> SimulationResult:
        """
        Simulate buying ``trade_size`` base on ``buy_exchange`` and selling it on ``sell_exchange``.

        Raises:
            ReadFailure: Either pool could not be read
            NormalizationFailure: Either pool does not match the configured pair
            DomainError: The trade cannot be filled by the buy pool
        """
        buy_pool, sell_pool = await asyncio.gather(
            self.reader.read_pool(buy_exchange),
            self.reader.read_pool(sell_exchange),
        )

        result = simulate_round_trip(
            buy_pool,
            sell_pool,
            buy_exchange.fee,
            sell_exchange.fee,
            trade_size,
            self.gas_usd_per_leg,
            self.min_profit_threshold,
        )

        logger.debug(
            f"{result.buy_exchange}: ${float(result.buy_price):.2f} | "
            f"{result.sell_exchange}: ${float(result.sell_price):.2f} | "
            f"Spread: {float(result.price_spread_pct):.3f}% | "
            f"Net: ${float(result.net_profit):.2f}"
        )
        return result
