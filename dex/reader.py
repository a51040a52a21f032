"""
Exchange reader: fetch a venue's pool state and turn it into a PoolReading.

Transient source failures are retried under a RetryPolicy; normalization
failures mean the config does not match the chain and are raised at once.
"""

from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from pair_arbitrage.exceptions import NormalizationFailure, PersistenceFailure, ReadFailure
from pair_arbitrage.retry import RetryPolicy
from pair_arbitrage.utils import get_current_timestamp_ms, get_logger

from .normalizer import normalize_pool_state
from .store import ResultStore
from .types import ExchangeDescriptor, PoolReading, PoolState, PriceFeedObservation, TokenInfo

logger = get_logger(__name__)


@runtime_checkable
class PoolStateSource(Protocol):
    """Anything that can report a V2 pair's token identities and raw reserves."""

    async def get_pool_state(self, pool_address: str) -> PoolState:
        ...


class ExchangeReader:
    """
    Reads pools for the configured base/quote pair.

    Args:
        source: On-chain data source
        base_token: Configured base asset
        quote_token: Configured quote asset
        retry_policy: Attempts and backoff for transient failures
        store: Optional result store; successful readings are logged as price feeds
    """

    def __init__(
        self,
        source: PoolStateSource,
        base_token: TokenInfo,
        quote_token: TokenInfo,
        retry_policy: Optional[RetryPolicy] = None,
        store: Optional[ResultStore] = None,
    ):
        self.source = source
        self.base_token = base_token
        self.quote_token = quote_token
        self.retry_policy = retry_policy or RetryPolicy()
        self.store = store

    @property
    def pair_name(self) -> str:
        return f"{self.base_token.symbol}/{self.quote_token.symbol}"

    async def read_pool(self, exchange: ExchangeDescriptor) -> PoolReading:
        """
        Read and normalize one exchange's pool.

        Raises:
            ReadFailure: The source kept failing for the whole retry budget
            NormalizationFailure: The pool does not hold the configured base asset
                or reports a non-positive reserve (not retried)
        """

        async def attempt() -> PoolReading:
            state = await self.source.get_pool_state(exchange.pool_address)
            normalized = normalize_pool_state(
                state, self.base_token, self.quote_token, exchange.pool_address
            )
            return PoolReading(
                exchange_id=exchange.id,
                base_reserve=normalized.base_reserve,
                quote_reserve=normalized.quote_reserve,
                price=normalized.price,
                state=state,
                timestamp=get_current_timestamp_ms(),
            )

        def on_retry(attempt_num: int, error: BaseException, delay: float) -> None:
            logger.warning(
                f"Attempt {attempt_num} failed for {exchange.id}: {error} "
                f"(retrying in {delay:.1f}s)"
            )

        try:
            reading = await self.retry_policy.call(
                attempt, non_retryable=(NormalizationFailure,), on_retry=on_retry
            )
        except NormalizationFailure:
            raise
        except Exception as e:
            raise ReadFailure(
                f"Failed to get price for {exchange.id} after "
                f"{self.retry_policy.max_attempts} attempts: {e}",
                exchange_id=exchange.id,
                cause=e,
            ) from e

        await self._record_price_feed(reading)
        return reading

    async def _record_price_feed(self, reading: PoolReading) -> None:
        if self.store is None:
            return

        observation = PriceFeedObservation(
            exchange=reading.exchange_id,
            pair=self.pair_name,
            price=reading.price,
            liquidity_token0=Decimal(reading.state.reserve0),
            liquidity_token1=Decimal(reading.state.reserve1),
            timestamp=reading.timestamp,
        )
        try:
            await self.store.insert_price_feed(observation)
        except PersistenceFailure as e:
            logger.warning(f"Price feed for {reading.exchange_id} not stored: {e}")
