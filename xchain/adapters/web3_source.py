"""
web3.py-backed ChainDataSource.

Reads concentrated-liquidity pool prices (slot0), gas prices and Chainlink
native/USD feeds. web3 calls are blocking, so each one runs in the event
loop's default executor and the two chains can be read concurrently.
"""

import asyncio
from typing import Any, Callable, Dict, Optional, Tuple

from web3 import Web3

from stable_arbitrage.exceptions import NetworkError
from stable_arbitrage.utils import get_logger

from ..abi import CHAINLINK_AGGREGATOR_ABI, CL_POOL_ABI, ERC20_ABI
from ..config import CrossChainConfig
from ..normalizer import price_from_sqrt_price_x96
from ..types import PoolPriceReading

logger = get_logger(__name__)

RPC_TIMEOUT_SEC = 10


def connect_chain(config: CrossChainConfig, chain: str) -> Web3:
    """
    Build a Web3 client for a chain and verify it answers.

    Raises:
        ConfigError: If the chain has no resolvable RPC URL
        NetworkError: If the endpoint can't be queried
    """
    rpc_url = config.rpc_url_for(chain)
    logger.info(f"Connecting to {chain} RPC")

    web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": RPC_TIMEOUT_SEC}))
    try:
        # Query the chain directly; is_connected() is unreliable on some providers
        chain_id = web3.eth.chain_id
        block = web3.eth.block_number
    except Exception as e:
        raise NetworkError(
            f"Failed to connect to {chain} RPC: {e}", endpoint=chain
        ) from e

    logger.info(f"✓ Connected to {chain} (chain id {chain_id}, block #{block:,})")
    return web3


class Web3ChainSource:
    """
    ChainDataSource over one Web3 client per chain.

    Token symbols and decimals never change for a pool, so they are read
    once and cached.
    """

    def __init__(
        self,
        clients: Dict[str, Web3],
        config: CrossChainConfig,
    ):
        """
        Initialize source.

        Args:
            clients: {chain -> connected Web3}
            config: Validated config (feeds, retry settings)
        """
        self.clients = clients
        self.config = config
        self.max_retries = max(1, config.max_retries)
        self.retry_delay_sec = config.retry_delay_sec
        self._token_info: Dict[Tuple[str, str], Tuple[str, int]] = {}

    @classmethod
    def connect(cls, config: CrossChainConfig) -> "Web3ChainSource":
        """Connect to every configured chain."""
        clients = {chain: connect_chain(config, chain) for chain in config.chain_names}
        return cls(clients, config)

    def _client(self, chain: str) -> Web3:
        try:
            return self.clients[chain]
        except KeyError:
            raise NetworkError(f"No RPC client for chain '{chain}'", endpoint=chain)

    async def _call(self, chain: str, description: str, fn: Callable[[], Any]) -> Any:
        """
        Run a blocking web3 call in the executor with retries.

        Raises:
            NetworkError: After max_retries failed attempts
        """
        loop = asyncio.get_event_loop()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await loop.run_in_executor(None, fn)
            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    logger.debug(
                        f"{chain} {description} failed (attempt {attempt}/"
                        f"{self.max_retries}): {e}"
                    )
                    await asyncio.sleep(self.retry_delay_sec)

        raise NetworkError(
            f"{chain} {description} failed after {self.max_retries} attempts: {last_error}",
            endpoint=chain,
        ) from last_error

    async def _token_symbol_and_decimals(self, chain: str, token: str) -> Tuple[str, int]:
        key = (chain, token)
        if key not in self._token_info:
            web3 = self._client(chain)
            erc20 = web3.eth.contract(address=token, abi=ERC20_ABI)
            symbol, decimals = await asyncio.gather(
                self._call(chain, f"symbol({token})", erc20.functions.symbol().call),
                self._call(chain, f"decimals({token})", erc20.functions.decimals().call),
            )
            self._token_info[key] = (str(symbol), int(decimals))
        return self._token_info[key]

    async def fetch_pool_price(self, chain: str, pool_address: str) -> PoolPriceReading:
        """
        Read slot0 and token metadata of a concentrated-liquidity pool.

        Returns:
            PoolPriceReading with raw_price = token1 per token0
        """
        web3 = self._client(chain)
        pool = web3.eth.contract(
            address=Web3.to_checksum_address(pool_address), abi=CL_POOL_ABI
        )

        slot0, token0, token1 = await asyncio.gather(
            self._call(chain, "slot0()", pool.functions.slot0().call),
            self._call(chain, "token0()", pool.functions.token0().call),
            self._call(chain, "token1()", pool.functions.token1().call),
        )
        token0 = Web3.to_checksum_address(token0)
        token1 = Web3.to_checksum_address(token1)

        (symbol0, decimals0), (symbol1, decimals1) = await asyncio.gather(
            self._token_symbol_and_decimals(chain, token0),
            self._token_symbol_and_decimals(chain, token1),
        )

        raw_price = price_from_sqrt_price_x96(slot0[0], decimals0, decimals1)
        logger.debug(f"{chain} pool {pool_address}: 1 {symbol0} = {raw_price} {symbol1}")

        return PoolPriceReading(
            raw_price=raw_price,
            token0_symbol=symbol0,
            token1_symbol=symbol1,
            token0_decimals=decimals0,
            token1_decimals=decimals1,
        )

    async def fetch_gas_price(self, chain: str) -> int:
        web3 = self._client(chain)
        gas_price = await self._call(chain, "eth_gasPrice", lambda: web3.eth.gas_price)
        return int(gas_price)

    async def fetch_native_usd_price(self, chain: str) -> float:
        """Read the chain's Chainlink native/USD aggregator."""
        web3 = self._client(chain)
        feed_address = self.config.chains[chain]["price_feed"]
        feed = web3.eth.contract(
            address=Web3.to_checksum_address(feed_address),
            abi=CHAINLINK_AGGREGATOR_ABI,
        )

        round_data, decimals = await asyncio.gather(
            self._call(chain, "latestRoundData()", feed.functions.latestRoundData().call),
            self._call(chain, "decimals()", feed.functions.decimals().call),
        )
        answer = int(round_data[1])
        if answer <= 0:
            raise NetworkError(
                f"{chain} price feed returned non-positive answer {answer}",
                endpoint=feed_address,
            )
        return answer / (10 ** int(decimals))
