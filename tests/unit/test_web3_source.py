"""
Tests for xchain/adapters/web3_source.py with a mocked Web3 client.
"""

from unittest.mock import MagicMock, PropertyMock

import pytest

from stable_arbitrage.exceptions import NetworkError
from xchain.adapters import Web3ChainSource, connect_chain
from xchain.normalizer import Q96

POOL = "0x184b487c7e811f1d9734d49e78293e00b3768079"
FEED = "0x0A77230d17318075983913bC2145DB16C7366156"
USDC = "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E"
USDT = "0x9702230A8Ea53601f5cD2dc00fDBc13d4dF4A8c7"


def contract_mock(**calls):
    """Contract whose functions.<name>().call returns (or raises) the given value."""
    contract = MagicMock()
    for name, value in calls.items():
        fn = getattr(contract.functions, name).return_value
        if isinstance(value, Exception) or isinstance(value, list):
            fn.call.side_effect = value
        else:
            fn.call.return_value = value
    return contract


def make_web3(contracts, gas_price=25_000_000_000):
    web3 = MagicMock()
    web3.eth.gas_price = gas_price
    web3.eth.chain_id = 43114
    web3.eth.block_number = 1_234_567

    def contract(address, abi):
        return contracts[address.lower()]

    web3.eth.contract.side_effect = contract
    return web3


@pytest.fixture
def fast_config(make_config):
    return make_config(retry_delay_ms=0, max_retries=3)


@pytest.fixture
def contracts():
    return {
        POOL.lower(): contract_mock(
            slot0=(int(Q96), 0, 0, 0, 0, 0, True), token0=USDT, token1=USDC
        ),
        USDC.lower(): contract_mock(symbol="USDC", decimals=6),
        USDT.lower(): contract_mock(symbol="USDt", decimals=6),
        FEED.lower(): contract_mock(
            latestRoundData=(1, 2_150_000_000, 0, 0, 1), decimals=8
        ),
    }


class TestWeb3ChainSource:
    @pytest.mark.asyncio
    async def test_fetch_pool_price(self, fast_config, contracts):
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)

        reading = await source.fetch_pool_price("chain_a", POOL)

        assert reading.raw_price == pytest.approx(1.0)
        assert reading.token0_symbol == "USDt"
        assert reading.token1_symbol == "USDC"
        assert reading.token0_decimals == 6

    @pytest.mark.asyncio
    async def test_token_metadata_is_cached(self, fast_config, contracts):
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)

        await source.fetch_pool_price("chain_a", POOL)
        await source.fetch_pool_price("chain_a", POOL)

        assert contracts[USDC.lower()].functions.symbol.return_value.call.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_gas_price(self, fast_config, contracts):
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)
        assert await source.fetch_gas_price("chain_a") == 25_000_000_000

    @pytest.mark.asyncio
    async def test_fetch_native_usd_price(self, fast_config, contracts):
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)
        assert await source.fetch_native_usd_price("chain_a") == pytest.approx(21.5)

    @pytest.mark.asyncio
    async def test_non_positive_feed_answer(self, fast_config, contracts):
        contracts[FEED.lower()] = contract_mock(latestRoundData=(1, 0, 0, 0, 1), decimals=8)
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)
        with pytest.raises(NetworkError):
            await source.fetch_native_usd_price("chain_a")

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, fast_config, contracts):
        contracts[POOL.lower()] = contract_mock(
            slot0=[ConnectionError("reset"), (int(Q96), 0, 0, 0, 0, 0, True)],
            token0=USDT,
            token1=USDC,
        )
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)

        reading = await source.fetch_pool_price("chain_a", POOL)
        assert reading.raw_price == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_persistent_failure_raises_network_error(self, fast_config, contracts):
        contracts[POOL.lower()] = contract_mock(
            slot0=ConnectionError("down"), token0=USDT, token1=USDC
        )
        source = Web3ChainSource({"chain_a": make_web3(contracts)}, fast_config)

        with pytest.raises(NetworkError, match="after 3 attempts"):
            await source.fetch_pool_price("chain_a", POOL)
        slot0_call = contracts[POOL.lower()].functions.slot0.return_value.call
        assert slot0_call.call_count == 3

    @pytest.mark.asyncio
    async def test_unknown_chain(self, fast_config):
        source = Web3ChainSource({}, fast_config)
        with pytest.raises(NetworkError):
            await source.fetch_gas_price("chain_a")


class TestConnectChain:
    def test_connect_verifies_chain(self, fast_config, monkeypatch):
        web3 = make_web3({})
        monkeypatch.setattr(
            "xchain.adapters.web3_source.Web3", MagicMock(return_value=web3)
        )
        assert connect_chain(fast_config, "chain_a") is web3

    def test_connect_failure_raises_network_error(self, fast_config, monkeypatch):
        web3 = MagicMock()
        type(web3.eth).chain_id = PropertyMock(side_effect=OSError("refused"))
        monkeypatch.setattr(
            "xchain.adapters.web3_source.Web3", MagicMock(return_value=web3)
        )
        with pytest.raises(NetworkError, match="chain_a"):
            connect_chain(fast_config, "chain_a")
