"""
ethfaucet/config.py

Configuration constants and data classes for ethfaucet.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os


# Amount sent per disbursement, in ETH
FAUCET_AMOUNT = "0.05"

# Rate limiting and bookkeeping
COOLDOWN_PERIOD_MS = 24 * 60 * 60 * 1000    # 24 hours
MAX_RECENT_TXS = 10                          # History entries kept in memory

# Network timeouts
CONFIRMATION_TIMEOUT_MS = 30 * 1000          # Wait for receipt before giving up
CONFIRMATION_TIMEOUT = CONFIRMATION_TIMEOUT_MS / 1000
PROBE_TIMEOUT = 5.0                          # seconds, per endpoint liveness probe
RPC_REQUEST_TIMEOUT = 10.0                   # seconds, per JSON-RPC request
RECEIPT_POLL_INTERVAL = 1.0                  # seconds between receipt lookups

# HTTP API defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

# Block explorer used for links in API responses
DEFAULT_EXPLORER_URL = "https://sepolia.etherscan.io"


def _split_urls(value: Optional[str]) -> List[str]:
    """Split a comma separated URL list, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class FaucetConfig:
    """
    Runtime configuration for the faucet service.

    Values can be set via:
    1. Environment variables (see from_env)
    2. Command-line flags (host, port, log level)
    3. Programmatic configuration
    """
    rpc_endpoints: List[str] = field(default_factory=list)
    private_key: Optional[str] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    explorer_url: str = DEFAULT_EXPLORER_URL
    log_level: str = "INFO"
    probe_timeout: float = PROBE_TIMEOUT
    request_timeout: float = RPC_REQUEST_TIMEOUT

    def __post_init__(self):
        # Keep priority order, drop absent entries
        self.rpc_endpoints = [url.strip() for url in self.rpc_endpoints if url and url.strip()]

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "FaucetConfig":
        """
        Build configuration from environment variables.

        SEPOLIA_RPC_URL is the preferred custom endpoint; FAUCET_RPC_URLS
        adds comma separated fallbacks tried after it.
        """
        env = os.environ if environ is None else environ
        endpoints = _split_urls(env.get("SEPOLIA_RPC_URL"))
        endpoints += _split_urls(env.get("FAUCET_RPC_URLS"))
        return cls(
            rpc_endpoints=endpoints,
            private_key=env.get("FAUCET_PRIVATE_KEY") or None,
            host=env.get("FAUCET_HOST", DEFAULT_HOST),
            port=int(env.get("FAUCET_PORT", str(DEFAULT_PORT))),
            explorer_url=env.get("FAUCET_EXPLORER_URL", DEFAULT_EXPLORER_URL).rstrip("/"),
            log_level=env.get("FAUCET_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty if usable)."""
        problems = []
        if not self.rpc_endpoints:
            problems.append("no RPC endpoint configured (set SEPOLIA_RPC_URL)")
        if not self.private_key:
            problems.append("no faucet signing key configured (set FAUCET_PRIVATE_KEY)")
        return problems

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction."""
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        """Explorer link for an address."""
        return f"{self.explorer_url}/address/{address}"
