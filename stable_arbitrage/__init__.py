"""
Cross-Chain Stablecoin Arbitrage System.

Detects and sizes stablecoin arbitrage between two DEX pools on different
chains, simulates execution against a dual-chain paper ledger, and reports
the results of every polling cycle.
"""

from stable_arbitrage.version import __version__

PROJECT_NAME = "Cross-Chain-Stable-Arbitrage"
VERSION = __version__

__all__ = [
    "PROJECT_NAME",
    "VERSION",
]
