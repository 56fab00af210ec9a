"""
Shared fixtures: an in-memory chain data source and config builders.

No test touches the network.
"""

import copy
from collections import defaultdict

import pytest

from stable_arbitrage.exceptions import NetworkError
from stable_arbitrage.interfaces import ManualTimeProvider
from xchain.config import CrossChainConfig
from xchain.types import PoolPriceReading

# 10 gwei x 250k gas = 0.0025 native; at $20 that's $0.05 per chain
GAS_PRICE_WEI = 10_000_000_000
NATIVE_USD = 20.0

BASE_CONFIG = {
    "poll_interval_ms": 5000,
    "retry_delay_ms": 1000,
    "max_retries": 3,
    "base_symbol": "USDC",
    "quote_symbol": "USDT",
    "profit_threshold_usd": 0.5,
    "seed_balances": {"base": 50000, "quote": 50000},
    "chains": {
        "chain_a": {
            "rpc_url": "http://localhost:8545",
            "pool_address": "0x184b487c7e811f1d9734d49e78293e00b3768079",
            "native_symbol": "AVAX",
            "price_feed": "0x0A77230d17318075983913bC2145DB16C7366156",
            "fallback_native_usd": 25.0,
            "gas_units": {"swap": 250000},
        },
        "chain_b": {
            "rpc_url": "http://localhost:8546",
            "pool_address": "0x9053fe060f412ad5677f934f89e07524343ee8e7",
            "native_symbol": "S",
            "price_feed": "0xc76dFb89fF298145b417d221B2c747d84952e01d",
            "gas_units": {"swap": 250000},
        },
    },
}


class FakeChainSource:
    """
    ChainDataSource backed by dicts.

    raw prices are token1 per token0 with token0 = USDC unless token_order
    says otherwise.
    """

    def __init__(self, prices=None, gas_prices=None, native_prices=None):
        self.prices = dict(prices or {"chain_a": 1.0002, "chain_b": 0.9998})
        self.gas_prices = dict(
            gas_prices or {"chain_a": GAS_PRICE_WEI, "chain_b": GAS_PRICE_WEI}
        )
        self.native_prices = dict(
            native_prices or {"chain_a": NATIVE_USD, "chain_b": NATIVE_USD}
        )
        self.token_order = {"chain_a": ("USDC", "USDT"), "chain_b": ("USDC", "USDT")}
        self.fail_price = set()
        self.fail_gas = set()
        self.fail_native = set()
        self.calls = defaultdict(int)

    async def fetch_pool_price(self, chain, pool_address):
        self.calls["pool"] += 1
        if chain in self.fail_price:
            raise NetworkError(f"{chain} RPC timeout", endpoint=chain)
        token0, token1 = self.token_order[chain]
        return PoolPriceReading(
            raw_price=self.prices[chain], token0_symbol=token0, token1_symbol=token1
        )

    async def fetch_gas_price(self, chain):
        self.calls["gas"] += 1
        if chain in self.fail_gas:
            raise NetworkError(f"{chain} eth_gasPrice failed", endpoint=chain)
        return self.gas_prices[chain]

    async def fetch_native_usd_price(self, chain):
        self.calls["native"] += 1
        if chain in self.fail_native:
            raise NetworkError(f"{chain} feed unreachable", endpoint=chain)
        return self.native_prices[chain]


def build_config_dict(**overrides):
    """Deep copy of BASE_CONFIG with top-level overrides applied."""
    config_dict = copy.deepcopy(BASE_CONFIG)
    config_dict.update(overrides)
    return config_dict


@pytest.fixture
def config_dict():
    return build_config_dict()


@pytest.fixture
def config(config_dict):
    return CrossChainConfig(config_dict)


@pytest.fixture
def fake_source():
    return FakeChainSource()


@pytest.fixture
def clock():
    return ManualTimeProvider()


@pytest.fixture
def make_config():
    """Factory: make_config(profit_threshold_usd=1000) -> CrossChainConfig."""

    def _make(**overrides):
        return CrossChainConfig(build_config_dict(**overrides))

    return _make


@pytest.fixture
def make_source():
    """Factory for FakeChainSource with custom prices."""
    return FakeChainSource
