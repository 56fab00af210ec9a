"""Version of the cross-chain stablecoin arbitrage package."""

__version__ = "0.3.0"


def get_version() -> str:
    """Version string shown by ``run_xchain_paper.py --version``."""
    return __version__
