"""
Pool price normalization.

Pools store their two tokens in an arbitrary slot order. Everything
downstream works with a PricePair whose base_to_quote always means
"quote units per 1 base unit", whichever token sits in slot 0 on-chain.
"""

import math
from decimal import Decimal, getcontext
from typing import Optional

from stable_arbitrage.exceptions import PriceUnavailable

from .types import PoolPriceReading, PricePair

getcontext().prec = 50

Q96 = Decimal(2) ** 96


def price_from_sqrt_price_x96(
    sqrt_price_x96: int, token0_decimals: int = 6, token1_decimals: int = 6
) -> float:
    """
    Convert a concentrated-liquidity pool's slot0 price to human units.

    Formula:
        price = (sqrtPriceX96 / 2**96) ** 2 * 10 ** (token0_decimals - token1_decimals)

    Args:
        sqrt_price_x96: slot0().sqrtPriceX96 of the pool
        token0_decimals: Decimals of the pool's token0
        token1_decimals: Decimals of the pool's token1

    Returns:
        token1 units per one token0 unit
    """
    ratio = Decimal(int(sqrt_price_x96)) / Q96
    scale = Decimal(10) ** (int(token0_decimals) - int(token1_decimals))
    return float(ratio * ratio * scale)


def normalize_price(
    raw_price: float,
    token0_symbol: str,
    base_symbol: str,
    chain: Optional[str] = None,
) -> PricePair:
    """
    Orient a raw pool price to the caller's (base, quote) assignment.

    Args:
        raw_price: token1 units per one token0 unit
        token0_symbol: Symbol of the pool's slot-0 token
        base_symbol: Symbol the caller treats as base
        chain: Chain name, only used for error context

    Returns:
        PricePair with base_to_quote = quote per base

    Raises:
        PriceUnavailable: If raw_price is zero, negative or non-finite
    """
    try:
        price = float(raw_price)
    except (TypeError, ValueError) as e:
        raise PriceUnavailable(
            f"Unparseable pool price {raw_price!r}", chain=chain
        ) from e

    if not math.isfinite(price) or price <= 0:
        raise PriceUnavailable(f"Invalid pool price {raw_price!r}", chain=chain)

    try:
        if token0_symbol.upper() == base_symbol.upper():
            base_to_quote = price
        else:
            base_to_quote = 1.0 / price
        quote_to_base = 1.0 / base_to_quote
    except (OverflowError, ZeroDivisionError) as e:
        raise PriceUnavailable(f"Pool price {raw_price!r} out of range", chain=chain) from e

    for value in (base_to_quote, quote_to_base):
        if not math.isfinite(value) or value <= 0:
            raise PriceUnavailable(
                f"Pool price {raw_price!r} out of range", chain=chain
            )

    return PricePair(base_to_quote=base_to_quote, quote_to_base=quote_to_base)


def normalize_reading(
    reading: PoolPriceReading,
    base_symbol: str,
    quote_symbol: str,
    chain: Optional[str] = None,
) -> PricePair:
    """
    Normalize a full pool reading after checking the pool holds the expected pair.

    Raises:
        PriceUnavailable: If the pool's tokens don't match (base, quote) or the
            price is invalid
    """
    pool_tokens = {reading.token0_symbol.upper(), reading.token1_symbol.upper()}
    expected = {base_symbol.upper(), quote_symbol.upper()}
    if pool_tokens != expected:
        raise PriceUnavailable(
            f"Pool tokens ({reading.token0_symbol}, {reading.token1_symbol}) "
            f"don't match config ({base_symbol}, {quote_symbol})",
            chain=chain,
        )

    return normalize_price(reading.raw_price, reading.token0_symbol, base_symbol, chain)
