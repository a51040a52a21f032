"""
DEX adapter modules for different AMM types.
"""

from .v2 import Web3PoolStateSource, connect_web3, price_quote_in_out, swap_in, swap_out

__all__ = [
    "Web3PoolStateSource",
    "connect_web3",
    "swap_out",
    "swap_in",
    "price_quote_in_out",
]
