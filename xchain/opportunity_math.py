"""
Single source of truth for cross-chain opportunity sizing.

Given both chains' normalized prices for the current target asset, finds
the direction of the spread, solves analytically for the smallest trade
that clears gas + profit threshold, caps it against the buy-chain balance,
and confirms the result at the actual (unrounded) prices.

Both directions (accumulate base / accumulate quote) run through the same
code: the target asset picks which side of each PricePair is the cost.

All monetary math is float. Both assets are valued at 1 USD per unit.
"""

import math
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import Any, ClassVar, Dict, Union

from stable_arbitrage.utils import get_logger

from .config import CrossChainConfig
from .ledger import PaperLedger
from .types import Asset, PricePair

logger = get_logger(__name__)

REASON_NO_SPREAD = "no spread"
REASON_RATIO_NOT_PROFITABLE = "ratio <= 1"
REASON_INSUFFICIENT_BALANCE = "insufficient balance"
REASON_BELOW_THRESHOLD = "below threshold after final check"


@dataclass(frozen=True)
class NoOpportunity:
    """Decision not to trade this cycle, with the reason."""

    reason: str
    metrics: Dict[str, float] = field(default_factory=dict)

    action: ClassVar[str] = "SKIP"

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "reason": self.reason, "metrics": self.metrics}


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Decision to trade: spend ``amount`` of the starting asset on buy_chain,
    receive the target asset on sell_chain.

    Attributes:
        buy_chain: Chain where the target asset is cheaper (debited)
        sell_chain: Chain where the target asset is dearer (credited)
        target: Asset being accumulated
        amount: Starting-asset amount to spend
        buy_price: Cost of one target unit on buy_chain (counter-asset units)
        sell_price: Cost of one target unit on sell_chain
        gas_cost_usd: Combined gas cost of both legs
        expected_gross_profit: amount * (ratio - 1)
        expected_net_profit_usd: expected_gross_profit - gas_cost_usd
    """

    buy_chain: str
    sell_chain: str
    target: Asset
    amount: float
    buy_price: float
    sell_price: float
    gas_cost_usd: float
    expected_gross_profit: float
    expected_net_profit_usd: float

    action: ClassVar[str] = "EXECUTE"

    @property
    def starting_asset(self) -> Asset:
        return self.target.other

    @property
    def ratio(self) -> float:
        return price_ratio(self.buy_price, self.sell_price)

    @property
    def amount_out(self) -> float:
        """Target-asset amount the round trip credits on sell_chain."""
        return self.amount * self.ratio

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "buy_chain": self.buy_chain,
            "sell_chain": self.sell_chain,
            "target": self.target.value,
            "amount": self.amount,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "ratio": self.ratio,
            "gas_cost_usd": self.gas_cost_usd,
            "expected_gross_profit": self.expected_gross_profit,
            "expected_net_profit_usd": self.expected_net_profit_usd,
        }


Decision = Union[NoOpportunity, ExecutionPlan]


def ceil_to_unit(value: float, unit: float) -> float:
    """Round value up to the next multiple of unit (e.g. 1e-6)."""
    unit_d = Decimal(str(unit))
    steps = (Decimal(str(value)) / unit_d).to_integral_value(rounding=ROUND_CEILING)
    return float(steps * unit_d)


def price_ratio(buy_price: float, sell_price: float) -> float:
    """Round-trip multiplier: target units bought on one chain, valued on the other."""
    return sell_price / buy_price


def min_trade_amount(
    ratio: float, gas_cost_usd: float, profit_threshold_usd: float, atomic_unit: float
) -> float:
    """
    Break-even trade size for a round trip with the given price ratio.

    Solves X * (ratio - 1) = gas + threshold + one atomic unit for X and
    rounds up to the atomic unit, so the result clears the threshold
    instead of falling just short of it.

    Returns:
        Minimum starting-asset amount, or math.inf if ratio <= 1
    """
    if ratio <= 1:
        return math.inf
    required = gas_cost_usd + profit_threshold_usd + atomic_unit
    return ceil_to_unit(required / (ratio - 1), atomic_unit)


class OpportunityEvaluator:
    """
    Sizes the minimum profitable cross-chain trade for a target asset.

    Trade size is the smallest amount that clears the profit
    floor and the absolute minimum, never more than the balance cap.
    """

    def __init__(
        self,
        profit_threshold_usd: float = 0.0,
        max_trade_fraction_of_balance: float = 0.5,
        absolute_min_trade_size: float = 100.0,
        atomic_unit: float = 1e-6,
    ):
        """
        Initialize evaluator.

        Args:
            profit_threshold_usd: Net profit (after gas) a trade must exceed
            max_trade_fraction_of_balance: Max share of the buy-chain holding per trade
            absolute_min_trade_size: Smallest trade ever attempted
            atomic_unit: Minimum increment of either asset
        """
        self.profit_threshold_usd = float(profit_threshold_usd)
        self.max_trade_fraction_of_balance = float(max_trade_fraction_of_balance)
        self.absolute_min_trade_size = float(absolute_min_trade_size)
        self.atomic_unit = float(atomic_unit)

    @classmethod
    def from_config(cls, config: CrossChainConfig) -> "OpportunityEvaluator":
        return cls(
            profit_threshold_usd=config.profit_threshold_usd,
            max_trade_fraction_of_balance=config.max_trade_fraction_of_balance,
            absolute_min_trade_size=config.absolute_min_trade_size,
            atomic_unit=config.atomic_unit,
        )

    def max_trade_amount(self, available: float) -> float:
        """Balance cap: floor(available * max_trade_fraction_of_balance)."""
        return float(math.floor(available * self.max_trade_fraction_of_balance))

    def evaluate(
        self,
        price_a: PricePair,
        price_b: PricePair,
        chain_a: str,
        chain_b: str,
        target: Asset,
        total_gas_usd: float,
        ledger: PaperLedger,
    ) -> Decision:
        """
        Decide whether to trade between chain_a and chain_b this cycle.

        Args:
            price_a: Normalized price on chain_a
            price_b: Normalized price on chain_b
            chain_a: First chain name
            chain_b: Second chain name
            target: Asset to accumulate
            total_gas_usd: Combined gas cost of both legs
            ledger: Paper ledger (read only, for the balance cap)

        Returns:
            ExecutionPlan or NoOpportunity with reason
        """
        cost_a = price_a.cost_of(target)
        cost_b = price_b.cost_of(target)

        if cost_a == cost_b:
            return NoOpportunity(REASON_NO_SPREAD, {"price": cost_a})

        if cost_a < cost_b:
            buy_chain, sell_chain, buy_price, sell_price = chain_a, chain_b, cost_a, cost_b
        else:
            buy_chain, sell_chain, buy_price, sell_price = chain_b, chain_a, cost_b, cost_a

        ratio = price_ratio(buy_price, sell_price)
        metrics = {
            "buy_price": buy_price,
            "sell_price": sell_price,
            "ratio": ratio,
            "gas_cost_usd": total_gas_usd,
        }

        if ratio <= 1:
            return NoOpportunity(REASON_RATIO_NOT_PROFITABLE, metrics)

        min_amount = min_trade_amount(
            ratio, total_gas_usd, self.profit_threshold_usd, self.atomic_unit
        )
        available = ledger.balance(buy_chain).of(target.other)
        max_amount = self.max_trade_amount(available)
        floor_amount = max(min_amount, self.absolute_min_trade_size)

        metrics.update(
            {"min_amount": min_amount, "max_amount": max_amount, "available": available}
        )

        if max_amount < floor_amount:
            return NoOpportunity(REASON_INSUFFICIENT_BALANCE, metrics)

        trade_amount = min(max_amount, floor_amount)

        # Final check at the actual prices
        gross_profit = trade_amount * sell_price / buy_price - trade_amount
        net_profit = gross_profit - total_gas_usd
        metrics.update(
            {
                "trade_amount": trade_amount,
                "gross_profit": gross_profit,
                "net_profit_usd": net_profit,
            }
        )

        if not net_profit > self.profit_threshold_usd:
            return NoOpportunity(REASON_BELOW_THRESHOLD, metrics)

        logger.debug(
            f"Sized {target.value} trade {buy_chain}->{sell_chain}: "
            f"min={min_amount:.6f} max={max_amount:.0f} amount={trade_amount:.6f}"
        )

        return ExecutionPlan(
            buy_chain=buy_chain,
            sell_chain=sell_chain,
            target=target,
            amount=trade_amount,
            buy_price=buy_price,
            sell_price=sell_price,
            gas_cost_usd=total_gas_usd,
            expected_gross_profit=gross_profit,
            expected_net_profit_usd=net_profit,
        )
