#!/usr/bin/env python3
"""
Cross-chain stablecoin arbitrage paper trading CLI.

Watches one stablecoin pool on each of two chains, simulates trades on the
price difference and logs balances and P&L.

Usage:
    python3 run_xchain_paper.py
    python3 run_xchain_paper.py --config configs/xchain_avax_sonic.yaml
    python3 run_xchain_paper.py --config configs/xchain_avax_sonic.yaml --once
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

import logging_config
from stable_arbitrage.exceptions import NetworkError
from stable_arbitrage.utils import format_usd, get_logger
from stable_arbitrage.version import get_version
from xchain.config import ConfigError, apply_env_overrides, load_config
from xchain.runner import CrossChainRunner

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cross-chain stablecoin arbitrage paper trader",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  python3 run_xchain_paper.py

  # Single cycle (for testing/CI)
  python3 run_xchain_paper.py --once

  # Require $1 net profit per trade
  python3 run_xchain_paper.py --profit-threshold 1.0
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/xchain_avax_sonic.yaml",
        help="Path to config YAML file (default: configs/xchain_avax_sonic.yaml)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit (overrides config setting)",
    )

    parser.add_argument(
        "--profit-threshold",
        type=float,
        default=None,
        help="Minimum net profit in USD (overrides config and PROFIT_THRESHOLD)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    return parser.parse_args(argv)


def log_final_stats(runner: CrossChainRunner) -> None:
    stats = runner.get_stats()
    logger.info("Final stats:")
    logger.info(f"  Trades: {stats.total_trades} ({stats.profitable_trades} profitable)")
    logger.info(f"  Win rate: {stats.win_rate:.1%}")
    logger.info(f"  Total profit: {format_usd(stats.total_profit_usd)}")
    logger.info(f"  Portfolio value: {format_usd(stats.total_portfolio_value_usd, 2)}")
    for chain, pair in runner.get_latest_prices().items():
        logger.info(f"  Last {chain} price: {pair.base_to_quote:.6f}")


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    args = parse_args(argv)
    logging_config.setup(args.log_level)

    # Load config
    try:
        config = apply_env_overrides(load_config(args.config))
    except ConfigError as e:
        logger.error(f"❌ Config error: {e}")
        return 1

    # CLI flags win over config and environment
    if args.once:
        config.once = True
    if args.profit_threshold is not None:
        config.profit_threshold_usd = args.profit_threshold

    # Initialize runner
    runner = CrossChainRunner(config)
    try:
        runner.connect()
    except ConfigError as e:
        logger.error(f"❌ Config error: {e}")
        return 1
    except NetworkError as e:
        logger.error(f"❌ Connection failed: {e}")
        return 1

    try:
        asyncio.run(runner.run_async())
    except KeyboardInterrupt:
        logger.info("⏸ Stopped by user")
    finally:
        log_final_stats(runner)

    return 0


if __name__ == "__main__":
    sys.exit(main())
