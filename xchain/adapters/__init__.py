"""On-chain data sources for the cross-chain engine."""

from .web3_source import Web3ChainSource, connect_chain

__all__ = ["Web3ChainSource", "connect_chain"]
