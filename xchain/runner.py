"""
Cross-chain arbitrage cycle runner.

One cycle: fetch both chains' prices and gas prices concurrently, pick the
target asset, size the opportunity, apply it to the paper ledger, report.
Cycles run strictly one after another; a failed cycle is logged and
followed by the shorter retry delay instead of the poll interval.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from stable_arbitrage.exceptions import (
    LedgerCommitRejected,
    PriceUnavailable,
    StableArbitrageError,
)
from stable_arbitrage.interfaces import SystemTimeProvider, TimeProvider
from stable_arbitrage.utils import format_duration, format_usd, get_logger

from .adapters import Web3ChainSource
from .config import CrossChainConfig
from .gas import GasCostEstimator
from .ledger import PaperLedger, Rejected
from .normalizer import normalize_reading
from .opportunity_math import Decision, ExecutionPlan, NoOpportunity, OpportunityEvaluator
from .selector import select_target_asset
from .sources import ChainDataSource
from .types import Asset, Balance, PortfolioStats, PricePair, Trade

logger = get_logger(__name__)


class CycleState(Enum):
    IDLE = "idle"
    FETCHING_PRICES = "fetching_prices"
    SELECTING_TARGET = "selecting_target"
    EVALUATING = "evaluating"
    APPLYING = "applying"
    REPORTING = "reporting"
    SLEEPING = "sleeping"


@dataclass
class CycleReport:
    """Outcome of one cycle, for logging and for callers of run_cycle()."""

    cycle: int
    started_at: float
    prices: Dict[str, Optional[PricePair]] = field(default_factory=dict)
    gas_costs_usd: Dict[str, float] = field(default_factory=dict)
    total_gas_usd: float = 0.0
    gas_degraded: bool = False
    target: Optional[Asset] = None
    decision: Optional[Decision] = None
    trade: Optional[Trade] = None
    rejected: Optional[Rejected] = None
    stats: Optional[PortfolioStats] = None
    error: Optional[str] = None
    duration_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        prices = {}
        for chain, pair in self.prices.items():
            prices[chain] = (
                None
                if pair is None
                else {
                    "base_to_quote": pair.base_to_quote,
                    "quote_to_base": pair.quote_to_base,
                    "timestamp_ms": pair.timestamp_ms,
                }
            )
        return {
            "cycle": self.cycle,
            "ok": self.ok,
            "prices": prices,
            "gas_costs_usd": dict(self.gas_costs_usd),
            "total_gas_usd": self.total_gas_usd,
            "gas_degraded": self.gas_degraded,
            "target": self.target.value if self.target else None,
            "decision": self.decision.to_dict() if self.decision else None,
            "trade": self.trade.to_dict() if self.trade else None,
            "rejected": self.rejected.reason if self.rejected else None,
            "stats": self.stats.to_dict() if self.stats else None,
            "error": self.error,
            "duration_sec": self.duration_sec,
        }


@dataclass
class EngineState:
    """
    Everything the engine mutates, owned by the runner.

    The ledger is only mutated through PaperLedger.apply_trade(); prices hold
    the latest successful reading per chain and are overwritten each cycle.
    """

    ledger: PaperLedger
    prices: Dict[str, PricePair] = field(default_factory=dict)
    last_report: Optional[CycleReport] = None
    cycle_count: int = 0


class CrossChainRunner:
    """
    Cross-chain stablecoin arbitrage paper trading loop.

    Monitors one pool per chain, trades the price difference of the pair
    on paper and tracks balances and P&L.
    """

    def __init__(
        self,
        config: CrossChainConfig,
        source: Optional[ChainDataSource] = None,
        ledger: Optional[PaperLedger] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        """
        Initialize runner with config.

        Args:
            config: Validated CrossChainConfig instance
            source: Chain data source; if None, connect() builds the web3 one
            ledger: Paper ledger; defaults to one seeded from config
            time_provider: Clock for caches, timestamps and durations
        """
        self.config = config
        self.time_provider = time_provider or SystemTimeProvider()
        self.source = source
        self.state = EngineState(
            ledger=ledger or PaperLedger.from_config(config, self.time_provider)
        )
        self.gas = GasCostEstimator(config, source, self.time_provider)
        self.evaluator = OpportunityEvaluator.from_config(config)
        self.cycle_state = CycleState.IDLE
        self._stop_event = asyncio.Event()

    @property
    def ledger(self) -> PaperLedger:
        return self.state.ledger

    @property
    def chains(self) -> List[str]:
        return self.config.chain_names

    def connect(self) -> None:
        """
        Connect to every chain's RPC with web3.

        Raises:
            ConfigError: If a chain has no RPC URL
            NetworkError: If a chain's RPC can't be queried
        """
        self.source = Web3ChainSource.connect(self.config)
        self.gas.source = self.source

    def stop(self) -> None:
        """Request shutdown. Honoured between states; no trade is applied after it."""
        if not self._stop_event.is_set():
            logger.info("Stop requested")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def get_ledger_snapshot(self) -> Dict[str, Balance]:
        return self.ledger.snapshot()

    def get_stats(self) -> PortfolioStats:
        return self.ledger.get_stats()

    def get_latest_prices(self) -> Dict[str, PricePair]:
        """Last good price per chain; a chain whose latest fetch failed is absent."""
        return dict(self.state.prices)

    def _enter(self, state: CycleState) -> None:
        logger.debug(f"{self.cycle_state.value} -> {state.value}")
        self.cycle_state = state

    async def _fetch_price(self, chain: str) -> PricePair:
        """Read and normalize one chain's pool price."""
        pool_address = self.config.chains[chain]["pool_address"]
        try:
            reading = await self.source.fetch_pool_price(chain, pool_address)
        except PriceUnavailable:
            raise
        except Exception as e:
            raise PriceUnavailable(
                f"{chain} pool price fetch failed: {e}", chain=chain, pool=pool_address
            ) from e
        return normalize_reading(
            reading, self.config.base_symbol, self.config.quote_symbol, chain
        )

    async def _fetch_prices(self, report: CycleReport) -> Dict[str, PricePair]:
        """
        Fetch prices and refresh gas estimates for both chains concurrently.

        Raises:
            PriceUnavailable: If either chain's price is missing (after logging
                whatever was fetched)
        """
        chains = self.chains
        results = await asyncio.gather(
            *[self._fetch_price(c) for c in chains],
            *[self.gas.refresh(c) for c in chains],
            return_exceptions=True,
        )
        price_results = results[: len(chains)]
        gas_results = results[len(chains):]

        base, quote = self.config.base_symbol, self.config.quote_symbol
        prices: Dict[str, PricePair] = {}
        failures: Dict[str, BaseException] = {}

        for chain, result in zip(chains, price_results):
            if isinstance(result, BaseException):
                failures[chain] = result
                report.prices[chain] = None
                self.state.prices.pop(chain, None)
                logger.warning(f"{chain} price unavailable: {result}")
                continue
            prices[chain] = result
            report.prices[chain] = result
            self.state.prices[chain] = result
            logger.info(
                f"{chain} price: 1 {base} = {result.base_to_quote:.6f} {quote}, "
                f"1 {quote} = {result.quote_to_base:.6f} {base}"
            )

        for chain, result in zip(chains, gas_results):
            if isinstance(result, BaseException):
                logger.warning(f"{chain} gas estimate unavailable: {result}")

        if failures:
            # Never evaluate one fresh price against a stale or missing one
            missing = ", ".join(failures)
            raise PriceUnavailable(
                f"Skipping evaluation: price unavailable on {missing}",
                chain=next(iter(failures)),
            )

        return prices

    async def _run_steps(self, report: CycleReport) -> None:
        chain_a, chain_b = self.chains

        self._enter(CycleState.FETCHING_PRICES)
        prices = await self._fetch_prices(report)
        total_gas, per_chain, degraded = await self.gas.total_arbitrage_cost_usd(
            self.chains
        )
        report.gas_costs_usd = per_chain
        report.total_gas_usd = total_gas
        report.gas_degraded = degraded

        if self.stop_requested:
            logger.info("Stop requested; abandoning cycle before evaluation")
            return

        self._enter(CycleState.SELECTING_TARGET)
        target = select_target_asset(self.ledger)
        report.target = target
        logger.info(
            f"Target asset: {target.value} "
            f"(base total {self.ledger.total(Asset.BASE):.2f}, "
            f"quote total {self.ledger.total(Asset.QUOTE):.2f})"
        )

        self._enter(CycleState.EVALUATING)
        decision = self.evaluator.evaluate(
            prices[chain_a], prices[chain_b], chain_a, chain_b, target, total_gas, self.ledger
        )
        report.decision = decision

        if isinstance(decision, NoOpportunity):
            ratio = decision.metrics.get("ratio")
            detail = f" (ratio {ratio:.6f})" if ratio is not None else ""
            logger.info(f"No opportunity: {decision.reason}{detail}")
        elif isinstance(decision, ExecutionPlan):
            logger.info(
                f"Opportunity: buy {target.value} on {decision.buy_chain} at "
                f"{decision.buy_price:.6f}, sell on {decision.sell_chain} at "
                f"{decision.sell_price:.6f}, amount {decision.amount:.6f}, "
                f"expected net {format_usd(decision.expected_net_profit_usd)}"
            )

            if self.stop_requested:
                logger.info("Stop requested; not applying trade")
                return

            self._enter(CycleState.APPLYING)
            result = self.ledger.apply_trade(decision)
            if isinstance(result, Rejected):
                report.rejected = result
                raise LedgerCommitRejected(
                    result.reason,
                    chain=decision.buy_chain,
                    required=decision.amount,
                    available=self.ledger.balance(decision.buy_chain).of(
                        decision.starting_asset
                    ),
                )
            report.trade = result

        self._enter(CycleState.REPORTING)
        self._report_balances()
        report.stats = self.get_stats()
        self._report_stats(report.stats)

    def _report_balances(self) -> None:
        base, quote = self.config.base_symbol, self.config.quote_symbol
        for chain, balance in self.get_ledger_snapshot().items():
            logger.info(
                f"{chain} balance: {balance.base:,.6f} {base}, {balance.quote:,.6f} {quote}"
            )

    @staticmethod
    def _report_stats(stats: PortfolioStats) -> None:
        logger.info(
            f"Stats: {stats.total_trades} trades, {stats.profitable_trades} profitable "
            f"({stats.win_rate:.1%}), total profit {format_usd(stats.total_profit_usd)}, "
            f"portfolio {format_usd(stats.total_portfolio_value_usd, 2)}"
        )

    async def run_cycle(self) -> CycleReport:
        """
        Run one full cycle. Never raises for per-cycle failures; they are
        logged and recorded in the report's ``error``.
        """
        if self.source is None:
            raise RuntimeError("No data source. Call connect() before run_cycle().")

        self.state.cycle_count += 1
        started = self.time_provider.current_timestamp()
        report = CycleReport(cycle=self.state.cycle_count, started_at=started)

        try:
            await self._run_steps(report)
        except StableArbitrageError as e:
            report.error = str(e)
            logger.warning(f"Cycle {report.cycle} skipped: {e}")
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            logger.error(f"Cycle {report.cycle} failed: {e}", exc_info=True)
        finally:
            report.duration_sec = self.time_provider.current_timestamp() - started
            self.state.last_report = report
            self._enter(CycleState.IDLE)

        logger.info(
            f"Cycle {report.cycle} {'ok' if report.ok else 'failed'} "
            f"in {format_duration(report.duration_sec)}"
        )
        logger.debug(f"Cycle report: {report.to_dict()}")
        return report

    def next_delay(self, report: CycleReport) -> float:
        """Seconds to sleep after a cycle: poll interval, or retry delay after a failure."""
        return self.config.poll_interval_sec if report.ok else self.config.retry_delay_sec

    async def run_async(self, max_cycles: Optional[int] = None) -> None:
        """
        Main loop: cycle, sleep, repeat until stop() (or config.once).

        Args:
            max_cycles: Stop after this many cycles (None = unlimited)
        """
        if self.source is None:
            raise RuntimeError("No data source. Call connect() before run_async().")

        chain_a, chain_b = self.chains
        logger.info(
            f"Monitoring {self.config.base_symbol}/{self.config.quote_symbol} on "
            f"{chain_a} and {chain_b} (poll {self.config.poll_interval_ms}ms, "
            f"threshold {format_usd(self.evaluator.profit_threshold_usd)})"
        )

        cycles = 0
        while not self.stop_requested:
            report = await self.run_cycle()
            cycles += 1

            if self.config.once or (max_cycles is not None and cycles >= max_cycles):
                break
            if self.stop_requested:
                break

            delay = self.next_delay(report)
            self._enter(CycleState.SLEEPING)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            self._enter(CycleState.IDLE)

        logger.info(f"Stopped after {cycles} cycles")
