"""
Target asset selection.

Each cycle the engine tries to accumulate whichever asset it holds less of
across both chains, so paper capital doesn't drift into a single asset.
"""

from .ledger import PaperLedger
from .types import Asset


def select_target_asset(ledger: PaperLedger) -> Asset:
    """
    Pick the scarcer asset system-wide.

    Sums each asset across all chains and returns the smaller one. Ties go
    to Asset.BASE. Always computed from current balances, never cached.
    """
    base_total = ledger.total(Asset.BASE)
    quote_total = ledger.total(Asset.QUOTE)
    return Asset.BASE if base_total <= quote_total else Asset.QUOTE
