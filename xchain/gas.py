"""
Gas cost estimation for the two legs of a cross-chain arbitrage.

Gas units per operation are fixed per chain (config table). Gas prices are
read from chain every cycle. Native token prices come from a price feed,
cached for a short TTL, with a static per-chain fallback so a feed outage
makes the estimate approximate instead of blocking evaluation.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

from stable_arbitrage.exceptions import GasEstimateUnavailable
from stable_arbitrage.interfaces import SystemTimeProvider, TimeProvider
from stable_arbitrage.utils import get_logger

from .config import CrossChainConfig
from .sources import ChainDataSource
from .types import GasEstimate

logger = get_logger(__name__)


class GasCostEstimator:
    """
    Turns per-chain gas prices into USD costs.

    Holds the latest GasEstimate per chain; a failed refresh keeps the
    previous estimate so evaluation can proceed on slightly stale data.
    """

    def __init__(
        self,
        config: CrossChainConfig,
        source: ChainDataSource,
        time_provider: Optional[TimeProvider] = None,
    ):
        """
        Initialize estimator.

        Args:
            config: Validated CrossChainConfig (gas tables, fallbacks, TTL)
            source: Data source for gas prices and native token prices
            time_provider: Clock for the native price cache (default: system)
        """
        self.config = config
        self.source = source
        self.time_provider = time_provider or SystemTimeProvider()
        self.cache_ttl_sec = config.native_price_cache_ttl_sec

        self.estimates: Dict[str, GasEstimate] = {}
        self._native_price_cache: Dict[str, Tuple[float, float]] = {}  # {chain: (price, ts)}

    def estimate(self, chain: str, operation: str, gas_price_wei: int) -> GasEstimate:
        """
        Build a GasEstimate from a gas price and the configured gas units.

        Args:
            chain: Chain name
            operation: Operation kind (e.g., "swap")
            gas_price_wei: Current gas price in wei

        Returns:
            GasEstimate with total_cost_wei = gas_price_wei * gas_units
        """
        gas_units = self.config.gas_units_for(chain, operation)
        return GasEstimate(
            gas_price_wei=int(gas_price_wei),
            gas_units=gas_units,
            timestamp_ms=self.time_provider.current_time_ms(),
        )

    async def refresh(self, chain: str, operation: str = "swap") -> GasEstimate:
        """
        Fetch the chain's gas price and store a fresh estimate.

        Falls back to the previous estimate on failure.

        Raises:
            GasEstimateUnavailable: If the fetch fails and no previous estimate exists
        """
        try:
            gas_price_wei = await self.source.fetch_gas_price(chain)
            if gas_price_wei is None or int(gas_price_wei) < 0:
                raise ValueError(f"invalid gas price {gas_price_wei!r}")
        except Exception as e:
            previous = self.estimates.get(chain)
            if previous is not None:
                logger.warning(
                    f"{chain} gas price fetch failed ({e}); using previous estimate "
                    f"from {previous.timestamp_ms}"
                )
                return previous
            raise GasEstimateUnavailable(
                f"{chain} gas price unavailable: {e}", chain=chain, operation=operation
            ) from e

        estimate = self.estimate(chain, operation, gas_price_wei)
        self.estimates[chain] = estimate

        logger.info(
            f"{chain} gas cost: {estimate.gas_price_wei} wei/gas x {estimate.gas_units} gas "
            f"= {estimate.total_cost_wei} wei ({estimate.total_cost_native:.8f} "
            f"{self.config.chains[chain]['native_symbol']})"
        )
        return estimate

    async def native_token_usd_price(self, chain: str) -> float:
        """
        Native token price in USD, cached for cache_ttl_sec.

        Raises:
            GasEstimateUnavailable: If the feed fails and no fallback is configured
        """
        now = self.time_provider.current_timestamp()

        cached = self._native_price_cache.get(chain)
        if cached is not None:
            price, fetched_at = cached
            if now - fetched_at < self.cache_ttl_sec:
                logger.debug(f"Cache hit for {chain} native price: {price}")
                return price

        chain_cfg = self.config.chains[chain]
        symbol = chain_cfg["native_symbol"]
        try:
            price = float(await self.source.fetch_native_usd_price(chain))
            if not price > 0:
                raise ValueError(f"non-positive price {price}")
        except Exception as e:
            fallback = chain_cfg["fallback_native_usd"]
            if fallback:
                logger.warning(
                    f"Failed to fetch {symbol} price on {chain} ({e}); "
                    f"using fallback ${fallback}"
                )
                return fallback
            raise GasEstimateUnavailable(
                f"No price available for {symbol} on {chain}: {e}", chain=chain
            ) from e

        self._native_price_cache[chain] = (price, now)
        logger.info(f"Fetched {symbol} price on {chain}: ${price:.4f}")
        return price

    async def cost_in_usd(self, chain: str) -> float:
        """
        USD cost of the chain's latest gas estimate.

        Raises:
            GasEstimateUnavailable: If no estimate exists or no native price is available
        """
        estimate = self.estimates.get(chain)
        if estimate is None:
            raise GasEstimateUnavailable(f"No gas estimate for {chain}", chain=chain)

        native_usd = await self.native_token_usd_price(chain)
        return estimate.total_cost_native * native_usd

    async def total_arbitrage_cost_usd(
        self, chains: Iterable[str]
    ) -> Tuple[float, Dict[str, float], bool]:
        """
        Sum the gas cost of one leg on each chain.

        A chain whose cost can't be produced counts as 0 and is logged, so
        gas-aware checks are skipped for it this cycle.

        Returns:
            Tuple of (total_usd, {chain: usd}, degraded)
        """
        per_chain: Dict[str, float] = {}
        degraded = False
        for chain in chains:
            try:
                per_chain[chain] = await self.cost_in_usd(chain)
            except GasEstimateUnavailable as e:
                logger.warning(f"{e}; skipping gas cost for {chain} this cycle")
                per_chain[chain] = 0.0
                degraded = True

        total = sum(per_chain.values())
        if logger.isEnabledFor(logging.INFO):
            parts = ", ".join(f"{c} ${v:.4f}" for c, v in per_chain.items())
            logger.info(f"Gas costs: {parts}, Total ${total:.4f}")
        return total, per_chain, degraded
