"""
Core data types for cross-chain stablecoin arbitrage.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from stable_arbitrage.utils import now_ms, timestamp_ms_to_iso


class Asset(Enum):
    """The two stablecoin roles of the monitored pair."""

    BASE = "base"
    QUOTE = "quote"

    @property
    def other(self) -> "Asset":
        """The counter-asset of this one."""
        return Asset.QUOTE if self is Asset.BASE else Asset.BASE


class TradeStatus(Enum):
    EXECUTED = "executed"
    FAILED = "failed"


@dataclass(frozen=True)
class PoolPriceReading:
    """
    Raw pool price as read from chain, before normalization.

    Attributes:
        raw_price: token1 units per one token0 unit (human units)
        token0_symbol: Symbol of the pool's slot-0 token
        token1_symbol: Symbol of the pool's slot-1 token
        token0_decimals: Decimals of token0
        token1_decimals: Decimals of token1
    """

    raw_price: float
    token0_symbol: str
    token1_symbol: str
    token0_decimals: int = 6
    token1_decimals: int = 6


@dataclass(frozen=True)
class PricePair:
    """
    Symmetric price of the pair on one chain.

    Attributes:
        base_to_quote: Quote units per 1 base unit
        quote_to_base: Base units per 1 quote unit (1 / base_to_quote)
        timestamp_ms: When the price was produced
    """

    base_to_quote: float
    quote_to_base: float
    timestamp_ms: int = field(default_factory=now_ms)

    def __post_init__(self):
        for name in ("base_to_quote", "quote_to_base"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be positive and finite, got {value}")

    def cost_of(self, asset: Asset) -> float:
        """Units of the counter-asset spent to acquire one unit of ``asset``."""
        return self.base_to_quote if asset is Asset.BASE else self.quote_to_base


@dataclass(frozen=True)
class GasEstimate:
    """
    Gas cost of one operation on one chain.

    total_cost_wei is always gas_price_wei * gas_units.
    """

    gas_price_wei: int
    gas_units: int
    timestamp_ms: int = field(default_factory=now_ms)

    @property
    def total_cost_wei(self) -> int:
        return self.gas_price_wei * self.gas_units

    @property
    def total_cost_native(self) -> float:
        """Total cost in whole native tokens (18 decimals)."""
        return self.total_cost_wei / 1e18


@dataclass(frozen=True)
class Balance:
    """
    Paper holdings of both assets on one chain. Never negative.
    """

    base: float
    quote: float
    timestamp_ms: int = field(default_factory=now_ms)

    def __post_init__(self):
        if self.base < 0 or self.quote < 0:
            raise ValueError(
                f"Balance cannot be negative: base={self.base}, quote={self.quote}"
            )

    def of(self, asset: Asset) -> float:
        return self.base if asset is Asset.BASE else self.quote

    def with_amount(self, asset: Asset, amount: float, timestamp_ms: int) -> "Balance":
        """Return a copy with ``asset`` set to ``amount``."""
        if asset is Asset.BASE:
            return Balance(base=amount, quote=self.quote, timestamp_ms=timestamp_ms)
        return Balance(base=self.base, quote=amount, timestamp_ms=timestamp_ms)

    def to_dict(self):
        return {"base": self.base, "quote": self.quote, "timestamp_ms": self.timestamp_ms}


@dataclass(frozen=True)
class Trade:
    """
    Immutable record of one simulated cross-chain trade.

    Attributes:
        id: Unique trade id
        source_chain: Chain debited with the starting asset (buy chain)
        target_chain: Chain credited with the target asset (sell chain)
        starting_asset: Asset spent on the source chain
        target_asset: Asset received on the target chain
        buy_price: Cost of one target unit on the source chain
        sell_price: Cost of one target unit on the target chain
        amount: Starting-asset amount spent
        amount_out: Target-asset amount credited
        gross_profit: amount_out - amount (USD at 1:1 peg)
        gas_cost_usd: Combined gas cost of both legs
        net_profit_usd: gross_profit - gas_cost_usd
        timestamp_ms: Commit time
        status: executed or failed
        reason: Failure reason for failed records
    """

    id: str
    source_chain: str
    target_chain: str
    starting_asset: Asset
    target_asset: Asset
    buy_price: float
    sell_price: float
    amount: float
    amount_out: float
    gross_profit: float
    gas_cost_usd: float
    net_profit_usd: float
    timestamp_ms: int
    status: TradeStatus = TradeStatus.EXECUTED
    reason: Optional[str] = None

    def to_dict(self):
        return {
            "id": self.id,
            "source_chain": self.source_chain,
            "target_chain": self.target_chain,
            "starting_asset": self.starting_asset.value,
            "target_asset": self.target_asset.value,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "amount": self.amount,
            "amount_out": self.amount_out,
            "gross_profit": self.gross_profit,
            "gas_cost_usd": self.gas_cost_usd,
            "net_profit_usd": self.net_profit_usd,
            "timestamp_ms": self.timestamp_ms,
            "time": timestamp_ms_to_iso(self.timestamp_ms),
            "status": self.status.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class PortfolioStats:
    total_trades: int
    profitable_trades: int
    total_profit_usd: float
    total_portfolio_value_usd: float
    win_rate: float

    def to_dict(self):
        return {
            "total_trades": self.total_trades,
            "profitable_trades": self.profitable_trades,
            "total_profit_usd": self.total_profit_usd,
            "total_portfolio_value_usd": self.total_portfolio_value_usd,
            "win_rate": self.win_rate,
        }
