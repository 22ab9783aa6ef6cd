"""
ethfaucet/chain - Chain access for the faucet.

Provides an async JSON-RPC client (balance queries, transfer broadcasting,
receipt waits) and prioritized endpoint failover.
"""

from .client import ChainClient, ChainError, ReceiptTimeout, create_client
from .endpoints import EndpointSelector, NoEndpointAvailable

__all__ = [
    "ChainClient",
    "ChainError",
    "ReceiptTimeout",
    "create_client",
    "EndpointSelector",
    "NoEndpointAvailable",
]
