"""
Uniswap V2 style adapter for constant-product AMM pools.

Implements pool state fetching and swap simulation using the x*y=k formula
with fees embedded in the swap calculation.
"""

import asyncio
from decimal import Decimal
from typing import Dict, Tuple

from web3 import Web3

from pair_arbitrage.exceptions import DomainError
from pair_arbitrage.utils import get_logger

from ..abi import UNISWAP_V2_PAIR_ABI
from ..types import PoolState

logger = get_logger(__name__)


def _check_reserves_and_fee(reserve_in: Decimal, reserve_out: Decimal, fee: Decimal):
    if reserve_in <= 0 or reserve_out <= 0:
        raise DomainError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if fee < 0 or fee >= 1:
        raise DomainError(f"Fee must be in [0, 1): {fee}")


def swap_out(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Decimal:
    """
    Calculate output amount for a V2 swap using constant-product formula.

    Formula (with fee embedded):
        amountInWithFee = amountIn * (1 - fee)
        amountOut = (amountInWithFee * reserveOut) / (reserveIn + amountInWithFee)

    Args:
        amount_in: Input token amount (>= 0)
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        fee: Fee as decimal (e.g., 0.003 for 30 bps)

    Returns:
        Output token amount, in the same units as reserve_out

    Raises:
        DomainError: If amount is negative, a reserve is not positive or fee is outside [0, 1)
    """
    if amount_in < 0:
        raise DomainError(f"amount_in must be non-negative: {amount_in}")
    _check_reserves_and_fee(reserve_in, reserve_out, fee)

    amount_in_with_fee = amount_in * (Decimal(1) - fee)

    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in + amount_in_with_fee

    return numerator / denominator


def swap_in(
    amount_out: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Decimal:
    """
    Calculate the input required to receive ``amount_out`` from a V2 swap.

    Algebraic inverse of :func:`swap_out`:
        amountIn = (reserveIn * amountOut) / ((reserveOut - amountOut) * (1 - fee))

    Args:
        amount_out: Desired output amount, strictly between 0 and reserve_out
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        fee: Fee as decimal

    Returns:
        Input token amount, in the same units as reserve_in

    Raises:
        DomainError: If amount_out is not in (0, reserve_out) or reserves/fee are invalid
    """
    _check_reserves_and_fee(reserve_in, reserve_out, fee)
    if amount_out <= 0:
        raise DomainError(f"amount_out must be positive: {amount_out}")
    if amount_out >= reserve_out:
        raise DomainError(
            f"amount_out {amount_out} must be below the output reserve {reserve_out}"
        )

    numerator = reserve_in * amount_out
    denominator = (reserve_out - amount_out) * (Decimal(1) - fee)

    return numerator / denominator


def price_quote_in_out(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Tuple[Decimal, Decimal]:
    """
    Calculate both output amount and effective price for a V2 swap.

    Returns:
        Tuple of (amount_out, effective_price)
        where effective_price = amount_out / amount_in (0 for a zero input)
    """
    amount_out = swap_out(amount_in, reserve_in, reserve_out, fee)
    price = amount_out / amount_in if amount_in > 0 else Decimal(0)
    return amount_out, price


def connect_web3(rpc_url: str, timeout_sec: float = 10.0) -> Web3:
    """
    Build a Web3 client for an HTTP(S) RPC endpoint.

    Raises:
        ValueError: If the URL is not HTTP(S)
    """
    if not rpc_url or not rpc_url.startswith(("http://", "https://")):
        raise ValueError(f"Invalid RPC URL format: {rpc_url}")

    web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_sec}))
    logger.info(f"Using RPC endpoint: {rpc_url}")
    return web3


class Web3PoolStateSource:
    """
    Reads V2 pair state over JSON-RPC.

    Web3's HTTP provider is synchronous, so the three contract calls run in
    the default thread pool and are awaited together as one round trip.
    """

    def __init__(self, web3: Web3):
        self.web3 = web3
        self._contracts: Dict[str, object] = {}

    def _pair(self, pool_address: str):
        pair = self._contracts.get(pool_address)
        if pair is None:
            pair = self.web3.eth.contract(
                address=Web3.to_checksum_address(pool_address), abi=UNISWAP_V2_PAIR_ABI
            )
            self._contracts[pool_address] = pair
        return pair

    async def get_pool_state(self, pool_address: str) -> PoolState:
        """
        Fetch token addresses and reserves from a Uniswap V2 style pair.

        Args:
            pool_address: Address of the pair contract

        Returns:
            PoolState with checksummed token addresses and raw reserves

        Raises:
            Exception: Whatever the provider raises (timeouts, RPC errors, bad payloads)
        """
        pair = self._pair(pool_address)
        loop = asyncio.get_running_loop()

        token0, token1, reserves = await asyncio.gather(
            loop.run_in_executor(None, pair.functions.token0().call),
            loop.run_in_executor(None, pair.functions.token1().call),
            loop.run_in_executor(None, pair.functions.getReserves().call),
        )

        return PoolState(
            token0=Web3.to_checksum_address(token0),
            token1=Web3.to_checksum_address(token1),
            reserve0=int(reserves[0]),
            reserve1=int(reserves[1]),
        )
