"""
ethfaucet - Testnet ETH faucet

Sends a fixed amount of test ETH from a custodial wallet to any address,
at most once per address every 24 hours, and keeps the ten most recent
disbursements in memory.

Built on:
- trio for concurrency
- web3 / eth-account for chain access and signing

Usage:
    import trio
    from ethfaucet import Faucet, FaucetConfig

    faucet = Faucet.from_config(FaucetConfig.from_env())

    result = trio.run(faucet.disburse, "0x1234...")
    recent = faucet.get_recent_transactions()

REST API Usage:
    from ethfaucet import FaucetAPI

    api = FaucetAPI(faucet, config)
    await api.start()
"""

from .config import (
    FaucetConfig,
    FAUCET_AMOUNT,
    COOLDOWN_PERIOD_MS,
    MAX_RECENT_TXS,
    CONFIRMATION_TIMEOUT_MS,
)
from .errors import FaucetError, FaucetErrorKind, classify_broadcast_error
from .cooldown import CooldownTracker
from .history import HistoryLedger, Transaction
from .chain import ChainClient, ChainError, EndpointSelector, NoEndpointAvailable
from .faucet import Faucet, DisbursementResult, DisbursementStatus, is_valid_address
from .metrics import FaucetMetrics
from .api import FaucetAPI

__version__ = "0.1.0"

__all__ = [
    # Core
    "Faucet",
    "DisbursementResult",
    "DisbursementStatus",
    "is_valid_address",
    # State
    "CooldownTracker",
    "HistoryLedger",
    "Transaction",
    # Chain access
    "ChainClient",
    "ChainError",
    "EndpointSelector",
    "NoEndpointAvailable",
    # Errors
    "FaucetError",
    "FaucetErrorKind",
    "classify_broadcast_error",
    # Config
    "FaucetConfig",
    "FAUCET_AMOUNT",
    "COOLDOWN_PERIOD_MS",
    "MAX_RECENT_TXS",
    "CONFIRMATION_TIMEOUT_MS",
    # Service
    "FaucetAPI",
    "FaucetMetrics",
]
