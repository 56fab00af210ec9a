"""
Configuration loading and validation for the cross-chain arbitrage engine.
"""

import os
from typing import Any, Dict, Mapping, Optional

import yaml

from stable_arbitrage.exceptions import ConfigurationError

# Gas units per operation kind when a chain doesn't configure its own table
DEFAULT_GAS_UNITS = {"swap": 300_000}

DEFAULT_SEED_BALANCE = {"base": 50_000.0, "quote": 50_000.0}

PROFIT_THRESHOLD_ENV_VAR = "PROFIT_THRESHOLD"


class ConfigError(ConfigurationError):
    """Raised when config is invalid or missing required fields."""

    pass


class CrossChainConfig:
    """
    Parsed and validated configuration for cross-chain paper trading.

    Attributes:
        poll_interval_ms: Delay between successful cycles
        retry_delay_ms: Delay after a failed cycle (also used between RPC retries)
        max_retries: Retries for a single transient network call
        once: If True, run a single cycle and exit
        profit_threshold_usd: Minimum net profit in USD to execute
        max_trade_fraction_of_balance: Cap on one trade vs. the buy-chain holding
        absolute_min_trade_size: Smallest trade ever attempted (asset units)
        atomic_unit: Minimum increment of either asset
        native_price_cache_ttl_sec: TTL of native token USD prices
        base_symbol: Symbol of the base stablecoin (e.g., "USDC")
        quote_symbol: Symbol of the quote stablecoin (e.g., "USDT")
        chains: Dict of {chain name -> chain settings}, exactly two entries
    """

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Parse and validate config from dictionary.

        Args:
            config_dict: Loaded YAML config

        Raises:
            ConfigError: If required fields missing or invalid
        """
        # Loop settings
        self.poll_interval_ms: int = self._get_int(config_dict, "poll_interval_ms", 5000)
        self.retry_delay_ms: int = self._get_int(config_dict, "retry_delay_ms", 1000)
        self.max_retries: int = self._get_int(config_dict, "max_retries", 3)
        self.once: bool = bool(config_dict.get("once", False))

        # Trading parameters
        self.profit_threshold_usd: float = self._get_float(
            config_dict, "profit_threshold_usd", 0.0
        )
        self.max_trade_fraction_of_balance: float = self._get_float(
            config_dict, "max_trade_fraction_of_balance", 0.5
        )
        self.absolute_min_trade_size: float = self._get_float(
            config_dict, "absolute_min_trade_size", 100.0
        )
        self.atomic_unit: float = self._get_float(config_dict, "atomic_unit", 1e-6)
        self.native_price_cache_ttl_sec: float = self._get_float(
            config_dict, "native_price_cache_ttl_sec", 30.0
        )

        if not 0 < self.max_trade_fraction_of_balance <= 1:
            raise ConfigError(
                "max_trade_fraction_of_balance must be in (0, 1], "
                f"got {self.max_trade_fraction_of_balance}"
            )
        if self.absolute_min_trade_size < 0:
            raise ConfigError("absolute_min_trade_size must be >= 0")
        if self.atomic_unit <= 0:
            raise ConfigError("atomic_unit must be > 0")
        if self.poll_interval_ms < 0 or self.retry_delay_ms < 0:
            raise ConfigError("poll_interval_ms and retry_delay_ms must be >= 0")

        # Pair symbols
        self.base_symbol: str = self._get_required(config_dict, "base_symbol", str)
        self.quote_symbol: str = self._get_required(config_dict, "quote_symbol", str)
        if self.base_symbol.upper() == self.quote_symbol.upper():
            raise ConfigError("base_symbol and quote_symbol must differ")

        # Chains
        seed_default = self._parse_seed(
            config_dict.get("seed_balances", DEFAULT_SEED_BALANCE), "seed_balances"
        )
        chains_raw = self._get_required(config_dict, "chains", dict)
        self.chains: Dict[str, Dict[str, Any]] = self._parse_chains(
            chains_raw, seed_default
        )

    @staticmethod
    def _get_required(d: Dict, key: str, expected_type: type) -> Any:
        """Get required config field with type validation."""
        if key not in d:
            raise ConfigError(f"Missing required config field: {key}")
        val = d[key]
        if not isinstance(val, expected_type):
            raise ConfigError(
                f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
            )
        return val

    @staticmethod
    def _get_float(d: Dict, key: str, default: float) -> float:
        try:
            return float(d.get(key, default))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Config field '{key}' must be a number") from e

    @staticmethod
    def _get_int(d: Dict, key: str, default: int) -> int:
        try:
            return int(d.get(key, default))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Config field '{key}' must be an integer") from e

    @staticmethod
    def _parse_seed(seed_raw: Any, where: str) -> Dict[str, float]:
        """Parse a {base, quote} seed allocation."""
        if not isinstance(seed_raw, dict):
            raise ConfigError(f"{where} must be a dict with 'base' and 'quote'")
        seed = {}
        for key in ("base", "quote"):
            if key not in seed_raw:
                raise ConfigError(f"{where} missing '{key}'")
            try:
                seed[key] = float(seed_raw[key])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{where}.{key} must be a number") from e
            if seed[key] < 0:
                raise ConfigError(f"{where}.{key} must be >= 0")
        return seed

    @classmethod
    def _parse_chains(
        cls, chains_raw: Dict[str, Any], seed_default: Dict[str, float]
    ) -> Dict[str, Dict[str, Any]]:
        """Parse and validate the two chain configs."""
        if len(chains_raw) != 2:
            raise ConfigError(
                f"Exactly two chains must be configured, got {len(chains_raw)}"
            )

        chains = {}
        for name, info in chains_raw.items():
            if not isinstance(info, dict):
                raise ConfigError(f"Chain '{name}' config must be a dict")

            pool_address = info.get("pool_address")
            if not pool_address:
                raise ConfigError(f"Chain '{name}' missing 'pool_address'")

            native_symbol = info.get("native_symbol")
            if not native_symbol:
                raise ConfigError(f"Chain '{name}' missing 'native_symbol'")

            price_feed = info.get("price_feed")
            if not price_feed:
                raise ConfigError(
                    f"Chain '{name}' missing 'price_feed' for {native_symbol}/USD"
                )

            fallback = info.get("fallback_native_usd")
            if fallback is not None:
                try:
                    fallback = float(fallback)
                except (TypeError, ValueError) as e:
                    raise ConfigError(
                        f"Chain '{name}' fallback_native_usd must be a number"
                    ) from e
                if fallback <= 0:
                    raise ConfigError(f"Chain '{name}' fallback_native_usd must be > 0")

            gas_units_raw = info.get("gas_units", DEFAULT_GAS_UNITS)
            if not isinstance(gas_units_raw, dict) or not gas_units_raw:
                raise ConfigError(f"Chain '{name}' gas_units must be a non-empty dict")
            gas_units = {}
            for op, units in gas_units_raw.items():
                try:
                    gas_units[op] = int(units)
                except (TypeError, ValueError) as e:
                    raise ConfigError(
                        f"Chain '{name}' gas_units.{op} must be an integer"
                    ) from e
                if gas_units[op] <= 0:
                    raise ConfigError(f"Chain '{name}' gas_units.{op} must be > 0")

            if "seed_balance" in info:
                seed = cls._parse_seed(info["seed_balance"], f"{name}.seed_balance")
            else:
                seed = dict(seed_default)

            chains[name] = {
                "name": name,
                "rpc_url": info.get("rpc_url"),
                "rpc_url_env": info.get("rpc_url_env"),
                "pool_address": pool_address,
                "dex": info.get("dex", "unknown"),
                "native_symbol": native_symbol,
                "price_feed": price_feed,
                "fallback_native_usd": fallback,
                "gas_units": gas_units,
                "seed_balance": seed,
            }

        return chains

    @property
    def chain_names(self):
        """The two chain names, in config order."""
        return list(self.chains.keys())

    @property
    def poll_interval_sec(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def retry_delay_sec(self) -> float:
        return self.retry_delay_ms / 1000.0

    def rpc_url_for(
        self, chain: str, environ: Optional[Mapping[str, str]] = None
    ) -> str:
        """
        Resolve a chain's RPC URL from config or its environment variable.

        Raises:
            ConfigError: If neither rpc_url nor a set rpc_url_env is available
        """
        environ = os.environ if environ is None else environ
        info = self.chains[chain]
        if info["rpc_url"]:
            return info["rpc_url"]
        env_name = info["rpc_url_env"]
        if env_name and environ.get(env_name):
            return environ[env_name]
        raise ConfigError(
            f"No RPC URL for chain '{chain}' "
            f"(set rpc_url or the {env_name or 'rpc_url_env'} environment variable)"
        )

    def gas_units_for(self, chain: str, operation: str) -> int:
        """Gas units of an operation kind on a chain."""
        table = self.chains[chain]["gas_units"]
        if operation not in table:
            raise ConfigError(f"Chain '{chain}' has no gas_units for '{operation}'")
        return table[operation]


def apply_env_overrides(
    config: CrossChainConfig, environ: Optional[Mapping[str, str]] = None
) -> CrossChainConfig:
    """
    Apply environment variable overrides (currently PROFIT_THRESHOLD).

    Raises:
        ConfigError: If an override is not a valid number
    """
    environ = os.environ if environ is None else environ
    raw = environ.get(PROFIT_THRESHOLD_ENV_VAR)
    if raw:
        try:
            config.profit_threshold_usd = float(raw)
        except ValueError as e:
            raise ConfigError(
                f"{PROFIT_THRESHOLD_ENV_VAR} must be a number, got {raw!r}"
            ) from e
    return config


def load_config(config_path: str) -> CrossChainConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated CrossChainConfig instance

    Raises:
        ConfigError: If config invalid, unparseable or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError("Config file must contain a YAML dictionary")

    return CrossChainConfig(config_dict)
