"""
Paper ledger for cross-chain trades.

Holds per-chain balances of both assets and the append-only trade history.
Bridging is instantaneous: a trade debits the buy chain and credits the
sell chain in the same commit.
"""

import threading
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple, Union

from stable_arbitrage.interfaces import SystemTimeProvider, TimeProvider
from stable_arbitrage.utils import get_logger

from .types import Asset, Balance, PortfolioStats, Trade, TradeStatus

if TYPE_CHECKING:
    from .config import CrossChainConfig
    from .opportunity_math import ExecutionPlan

logger = get_logger(__name__)

REASON_COMMIT_INSUFFICIENT = "insufficient balance at commit time"


@dataclass(frozen=True)
class Rejected:
    """
    A plan the ledger refused to commit. No balance was touched.

    ``trade`` is a failed-status record for reporting only; it is not
    appended to the trade history.
    """

    reason: str
    plan: "ExecutionPlan"
    trade: Trade


class PaperLedger:
    """
    In-memory balances and trade history for the two monitored chains.

    apply_trade() is serialized with a lock and touches only in-memory state,
    so a commit is never observed half done.
    """

    def __init__(
        self,
        seed: Mapping[str, Union[Balance, Mapping[str, float]]],
        time_provider: Optional[TimeProvider] = None,
    ):
        """
        Initialize ledger with seed balances.

        Args:
            seed: {chain -> Balance or {"base": x, "quote": y}}
            time_provider: Clock for balance and trade timestamps
        """
        self.time_provider = time_provider or SystemTimeProvider()
        self._lock = threading.Lock()
        self._balances: Dict[str, Balance] = {}
        self._trades: List[Trade] = []

        now = self.time_provider.current_time_ms()
        for chain, value in seed.items():
            if isinstance(value, Balance):
                self._balances[chain] = value
            else:
                self._balances[chain] = Balance(
                    base=float(value["base"]),
                    quote=float(value["quote"]),
                    timestamp_ms=now,
                )

    @classmethod
    def from_config(
        cls, config: "CrossChainConfig", time_provider: Optional[TimeProvider] = None
    ) -> "PaperLedger":
        seed = {name: info["seed_balance"] for name, info in config.chains.items()}
        return cls(seed, time_provider=time_provider)

    @property
    def chains(self) -> List[str]:
        return list(self._balances.keys())

    def balance(self, chain: str) -> Balance:
        """Current balance on a chain. Raises KeyError for unknown chains."""
        return self._balances[chain]

    def snapshot(self) -> Dict[str, Balance]:
        """Copy of {chain -> Balance}; Balance itself is immutable."""
        with self._lock:
            return dict(self._balances)

    def total(self, asset: Asset) -> float:
        """Sum of one asset across all chains."""
        return sum(b.of(asset) for b in self._balances.values())

    def portfolio_value_usd(self) -> float:
        """Both assets valued at 1 USD per unit."""
        return self.total(Asset.BASE) + self.total(Asset.QUOTE)

    def trade_history(self) -> Tuple[Trade, ...]:
        return tuple(self._trades)

    def apply_trade(self, plan: "ExecutionPlan") -> Union[Trade, Rejected]:
        """
        Commit a plan: debit the starting asset on the buy chain, credit the
        target asset on the sell chain, record the Trade.

        The buy-chain balance is re-checked here rather than trusted from
        evaluation. Both new balances are built before either is stored.

        Args:
            plan: ExecutionPlan from the evaluator

        Returns:
            The executed Trade, or Rejected with no mutation
        """
        starting = plan.starting_asset
        target = plan.target
        amount = plan.amount
        amount_out = plan.amount_out
        gross_profit = amount_out - amount

        with self._lock:
            now = self.time_provider.current_time_ms()
            source = self._balances[plan.buy_chain]
            dest = self._balances[plan.sell_chain]
            available = source.of(starting)

            if amount <= 0 or available < amount:
                trade = self._record(
                    plan, amount_out, gross_profit, now, TradeStatus.FAILED,
                    REASON_COMMIT_INSUFFICIENT,
                )
                logger.warning(
                    f"Rejected {plan.buy_chain}->{plan.sell_chain} trade: "
                    f"need {amount:.6f} {starting.value}, have {available:.6f}"
                )
                return Rejected(reason=REASON_COMMIT_INSUFFICIENT, plan=plan, trade=trade)

            new_source = source.with_amount(starting, available - amount, now)
            new_dest = dest.with_amount(target, dest.of(target) + amount_out, now)

            self._balances[plan.buy_chain] = new_source
            self._balances[plan.sell_chain] = new_dest

            trade = self._record(
                plan, amount_out, gross_profit, now, TradeStatus.EXECUTED, None
            )
            self._trades.append(trade)

        logger.info(
            f"Paper trade {trade.id[:8]}: {amount:.6f} {starting.value} on "
            f"{plan.buy_chain} -> {amount_out:.6f} {target.value} on {plan.sell_chain} "
            f"(net ${trade.net_profit_usd:.4f})"
        )
        return trade

    @staticmethod
    def _record(
        plan: "ExecutionPlan",
        amount_out: float,
        gross_profit: float,
        timestamp_ms: int,
        status: TradeStatus,
        reason: Optional[str],
    ) -> Trade:
        return Trade(
            id=str(uuid.uuid4()),
            source_chain=plan.buy_chain,
            target_chain=plan.sell_chain,
            starting_asset=plan.starting_asset,
            target_asset=plan.target,
            buy_price=plan.buy_price,
            sell_price=plan.sell_price,
            amount=plan.amount,
            amount_out=amount_out,
            gross_profit=gross_profit,
            gas_cost_usd=plan.gas_cost_usd,
            net_profit_usd=gross_profit - plan.gas_cost_usd,
            timestamp_ms=timestamp_ms,
            status=status,
            reason=reason,
        )

    def get_stats(self) -> PortfolioStats:
        """Stats from trade history and current balances. Pure read."""
        with self._lock:
            trades = list(self._trades)
            value = self.portfolio_value_usd()

        total = len(trades)
        profitable = sum(1 for t in trades if t.net_profit_usd > 0)
        return PortfolioStats(
            total_trades=total,
            profitable_trades=profitable,
            total_profit_usd=sum(t.net_profit_usd for t in trades),
            total_portfolio_value_usd=value,
            win_rate=(profitable / total) if total else 0.0,
        )
