"""Version information for the pair arbitrage scanner."""

__version__ = "2.0.0"
