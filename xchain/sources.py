"""
Interfaces for the external data the engine consumes.

The engine never talks to a chain directly: prices, gas prices and native
token prices arrive through these protocols. xchain.adapters provides the
web3-backed implementation, tests provide in-memory fakes.
"""

from typing import Protocol, runtime_checkable

from .types import PoolPriceReading


@runtime_checkable
class ChainDataSource(Protocol):
    """Protocol for per-chain market and gas data."""

    async def fetch_pool_price(self, chain: str, pool_address: str) -> PoolPriceReading:
        """Read the current pool price and token metadata."""
        ...

    async def fetch_gas_price(self, chain: str) -> int:
        """Read the current gas price in wei."""
        ...

    async def fetch_native_usd_price(self, chain: str) -> float:
        """Read the chain's native token price in USD."""
        ...
