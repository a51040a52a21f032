"""
Reserve normalization for V2 pairs.

Pair contracts order their tokens by address, so the configured base asset
may sit in either slot. This module orients raw reserves as (base, quote)
and strips each token's fixed-point scale.
"""

from decimal import Decimal
from typing import Optional

from pair_arbitrage.exceptions import NormalizationFailure

from .types import NormalizedReserves, PoolState, TokenInfo


def to_human_units(raw_amount: int, decimals: int) -> Decimal:
    """Rescale a raw token amount: raw / 10**decimals."""
    return Decimal(raw_amount) / (Decimal(10) ** decimals)


def normalize_reserves(
    token0: str,
    token1: str,
    reserve0_raw: int,
    reserve1_raw: int,
    base: TokenInfo,
    quote: TokenInfo,
) -> NormalizedReserves:
    """
    Orient a pair's raw reserves as (base, quote) and compute the quote-per-base price.

    Args:
        token0: Address of the token in slot 0
        token1: Address of the token in slot 1
        reserve0_raw: Slot 0 reserve in native units
        reserve1_raw: Slot 1 reserve in native units
        base: Configured base asset
        quote: Configured quote asset

    Returns:
        NormalizedReserves with human-unit reserves and price

    Raises:
        NormalizationFailure: If neither slot holds the base asset, or a reserve is not positive
    """
    base_addr = base.address.lower()

    if token0.lower() == base_addr:
        base_raw, quote_raw = reserve0_raw, reserve1_raw
    elif token1.lower() == base_addr:
        base_raw, quote_raw = reserve1_raw, reserve0_raw
    else:
        raise NormalizationFailure(
            f"Unrecognized pair composition: tokens ({token0}, {token1}) "
            f"do not include base asset {base.symbol} ({base.address})",
            details={"token0": token0, "token1": token1},
        )

    if base_raw <= 0 or quote_raw <= 0:
        raise NormalizationFailure(
            f"Non-positive reserve: {base.symbol}={base_raw}, {quote.symbol}={quote_raw}",
            details={"base_raw": base_raw, "quote_raw": quote_raw},
        )

    base_reserve = to_human_units(base_raw, base.decimals)
    quote_reserve = to_human_units(quote_raw, quote.decimals)

    return NormalizedReserves(
        base_reserve=base_reserve,
        quote_reserve=quote_reserve,
        price=quote_reserve / base_reserve,
    )


def normalize_pool_state(
    state: PoolState,
    base: TokenInfo,
    quote: TokenInfo,
    pool_address: Optional[str] = None,
) -> NormalizedReserves:
    """Normalize a fetched PoolState, tagging failures with the pool address."""
    try:
        return normalize_reserves(
            state.token0, state.token1, state.reserve0, state.reserve1, base, quote
        )
    except NormalizationFailure as e:
        e.pool_address = pool_address
        raise
