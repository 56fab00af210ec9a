"""
Cross-chain stablecoin arbitrage engine.

Normalizes pool prices from two chains, sizes the minimum profitable trade
after gas, and applies it to an in-memory paper ledger.
"""
