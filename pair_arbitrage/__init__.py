"""
Cross-DEX Pair Arbitrage Scanner.

Samples constant-product pools on several decentralized exchanges, simulates
buy-on-one/sell-on-another round trips net of fees and gas, and records every
result for inspection through a read-only API.
"""

from pair_arbitrage.version import __version__

PROJECT_NAME = "Pair-Arbitrage-Scanner"
VERSION = __version__

__all__ = ["PROJECT_NAME", "VERSION"]
