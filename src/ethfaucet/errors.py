"""
ethfaucet/errors.py

Caller-facing error taxonomy for disbursements.

Every failure inside the disbursement pipeline is raised as a FaucetError
carrying a FaucetErrorKind; the controller converts it into a failed result
with the kind's human-readable message.
"""

from enum import Enum
from typing import Optional


class FaucetErrorKind(Enum):
    """Kinds of disbursement failure, with their caller-facing messages."""
    INVALID_ADDRESS = "Invalid Ethereum address"
    RATE_LIMITED = "This address has already received ETH in the last 24 hours"
    REQUEST_IN_PROGRESS = (
        "A request for this address is already being processed. Please wait for it to finish."
    )
    NETWORK_UNAVAILABLE = "Failed to connect to Sepolia network. Please try again later."
    INSUFFICIENT_FUNDS = "The faucet is out of funds. Please contact the administrator."
    BROADCAST_INSUFFICIENT_FUNDS = (
        "The faucet wallet has insufficient funds. Please contact the administrator."
    )
    NONCE_CONFLICT = "Transaction nonce error. Please try again."
    GAS_ESTIMATION = (
        "Gas estimation failed. The network might be congested. Please try again later."
    )
    BROADCAST_FAILED = "Failed to send ETH. Please try again later."

    @property
    def message(self) -> str:
        return self.value

    @property
    def is_client_error(self) -> bool:
        """True for failures caused by the request rather than the faucet."""
        return self in (
            FaucetErrorKind.INVALID_ADDRESS,
            FaucetErrorKind.RATE_LIMITED,
            FaucetErrorKind.REQUEST_IN_PROGRESS,
        )

    def __str__(self) -> str:
        return self.name.lower()


class FaucetError(Exception):
    """Exception raised for a failed disbursement step."""

    def __init__(self, kind: FaucetErrorKind, detail: Optional[str] = None):
        super().__init__(detail or kind.message)
        self.kind = kind
        self.detail = detail

    @property
    def message(self) -> str:
        """Message safe to show to the caller."""
        return self.kind.message


# Checked in order; first substring match wins
_BROADCAST_PATTERNS = (
    ("insufficient funds", FaucetErrorKind.BROADCAST_INSUFFICIENT_FUNDS),
    ("nonce", FaucetErrorKind.NONCE_CONFLICT),
    ("gas", FaucetErrorKind.GAS_ESTIMATION),
)


def classify_broadcast_error(error: BaseException) -> FaucetErrorKind:
    """
    Map an exception raised while submitting a transaction to an error kind.

    Args:
        error: Exception raised by the chain client

    Returns:
        Matching FaucetErrorKind (BROADCAST_FAILED if nothing matches)
    """
    text = str(error).lower()
    for needle, kind in _BROADCAST_PATTERNS:
        if needle in text:
            return kind
    return FaucetErrorKind.BROADCAST_FAILED
