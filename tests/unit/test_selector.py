"""Tests for xchain/selector.py"""

from xchain.ledger import PaperLedger
from xchain.selector import select_target_asset
from xchain.types import Asset


def make_ledger(a, b):
    return PaperLedger({"chain_a": a, "chain_b": b})


def test_tie_favors_base():
    ledger = make_ledger({"base": 50000, "quote": 50000}, {"base": 50000, "quote": 50000})
    assert select_target_asset(ledger) is Asset.BASE


def test_scarcer_base_is_target():
    ledger = make_ledger({"base": 10000, "quote": 50000}, {"base": 50000, "quote": 10000})
    # base 60000 vs quote 60000 -> tie
    assert select_target_asset(ledger) is Asset.BASE

    ledger = make_ledger({"base": 10000, "quote": 50000}, {"base": 40000, "quote": 50000})
    assert select_target_asset(ledger) is Asset.BASE


def test_scarcer_quote_is_target():
    ledger = make_ledger({"base": 60000, "quote": 40000}, {"base": 50000, "quote": 50000})
    assert select_target_asset(ledger) is Asset.QUOTE


def test_sums_across_chains_not_per_chain():
    # chain_a alone is short on quote, but system-wide base is scarcer
    ledger = make_ledger({"base": 50000, "quote": 1000}, {"base": 0, "quote": 60000})
    assert select_target_asset(ledger) is Asset.BASE
