# infrastructure/rpc.py
"""
Web3 connections for the Haiku Execution Backend.
One cached HTTP provider per RPC URL; URLs come from the ChainRegistry.
"""
from typing import Dict

from web3 import Web3

from infrastructure.chains import ChainDescriptor

DEFAULT_REQUEST_TIMEOUT = 30

# Cached connections keyed by RPC URL (lazy initialization)
_connections: Dict[str, Web3] = {}


def get_web3(rpc_url: str) -> Web3:
    """Get a Web3 instance for an RPC URL, reusing an existing connection."""
    w3 = _connections.get(rpc_url)
    if w3 is None:
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": DEFAULT_REQUEST_TIMEOUT}))
        _connections[rpc_url] = w3
    return w3


def get_chain_web3(chain: ChainDescriptor) -> Web3:
    """Get a Web3 instance for a resolved chain."""
    return get_web3(chain.rpc_url)

