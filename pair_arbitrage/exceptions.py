"""
Exception hierarchy for the pair arbitrage scanner.

Provides specific exception types for each failure category so the scan
orchestrator can decide what to retry, what to isolate and what to surface.
"""

from typing import Any, Dict, Optional


class PairArbitrageError(Exception):
    """Base exception for all scanner related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PairArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


class ReadFailure(PairArbitrageError):
    """Raised when a pool read keeps failing after the retry budget is spent."""

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.exchange_id = exchange_id
        self.cause = cause


class NormalizationFailure(PairArbitrageError):
    """Raised when pool data cannot be mapped onto the configured base/quote pair."""

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_address = pool_address


class DomainError(PairArbitrageError, ValueError):
    """Raised when swap math is called outside its valid domain."""

    pass


class PersistenceFailure(PairArbitrageError):
    """Raised when the result store rejects a read or write."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.operation = operation
