"""
Exception hierarchy for the cross-chain arbitrage engine.

Per-cycle errors (prices, gas, ledger commits, network) are recoverable and
are caught at the cycle boundary. Only configuration errors raised at
startup are allowed to stop the process.
"""

from typing import Any, Dict, Optional


class StableArbitrageError(Exception):
    """Base exception for all cross-chain arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(StableArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


class PriceUnavailable(StableArbitrageError):
    """Raised when a pool price reading is missing, zero or non-finite."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        pool: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.chain = chain
        self.pool = pool


class GasEstimateUnavailable(StableArbitrageError):
    """Raised when no gas price or native token price can be produced."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.chain = chain
        self.operation = operation


class LedgerCommitRejected(StableArbitrageError):
    """Raised when a planned trade no longer fits the ledger at commit time."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        required: Optional[float] = None,
        available: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.chain = chain
        self.required = required
        self.available = available


class NetworkError(StableArbitrageError):
    """Raised when network or connectivity issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
