"""
ethfaucet/faucet.py

Disbursement controller.

Runs one disbursement as a sequential pipeline:

    validate -> cooldown check -> acquire endpoint -> balance check
             -> submit -> await confirmation (bounded) -> record

Every failure before the transaction is broadcast becomes a failed
DisbursementResult and leaves cooldown and history untouched, as does a
receipt showing the transaction reverted. Otherwise a broadcast request
succeeds, whether or not a receipt is seen within CONFIRMATION_TIMEOUT.

Usage:
    from ethfaucet import Faucet, FaucetConfig

    faucet = Faucet.from_config(FaucetConfig.from_env())
    result = await faucet.disburse("0x1234...")
    if result.success:
        print(result.tx_hash)
"""

import logging
import re
import threading
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set

import trio
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .chain import ChainClient, ChainError, EndpointSelector, NoEndpointAvailable
from .config import CONFIRMATION_TIMEOUT, FAUCET_AMOUNT, FaucetConfig
from .cooldown import CooldownTracker, normalize_address
from .errors import FaucetError, FaucetErrorKind, classify_broadcast_error
from .history import HistoryLedger, Transaction
from .metrics import FaucetMetrics

logger = logging.getLogger("ethfaucet.faucet")


# Client-side limit for the receipt poll loop
RECEIPT_TIMEOUT = 120.0

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def is_valid_address(address: Any) -> bool:
    """
    Check that a value is a 0x-prefixed, 40 hex digit address.

    Mixed-case input must carry a valid EIP-55 checksum; all-lower and
    all-upper digits are accepted as is.
    """
    if not isinstance(address, str) or not _ADDRESS_RE.fullmatch(address):
        return False
    digits = address[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    return Web3.is_checksum_address(address)


class DisbursementStatus(Enum):
    """Terminal state of a disbursement."""
    CONFIRMED = "confirmed"
    SUBMITTED = "submitted"  # Broadcast, receipt not seen in time
    FAILED = "failed"


@dataclass
class DisbursementResult:
    """Outcome of a disbursement request."""
    success: bool
    status: DisbursementStatus
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[FaucetErrorKind] = None

    @classmethod
    def ok(cls, tx_hash: str, status: DisbursementStatus) -> "DisbursementResult":
        return cls(success=True, status=status, tx_hash=tx_hash)

    @classmethod
    def failed(cls, kind: FaucetErrorKind) -> "DisbursementResult":
        return cls(
            success=False,
            status=DisbursementStatus.FAILED,
            error=kind.message,
            error_kind=kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "txHash": self.tx_hash}
        return {"success": False, "error": self.error}


class Faucet:
    """
    Dispenses a fixed amount of test ETH to an address.

    Owns the cooldown tracker and history ledger. Updates to both are
    applied together under one lock, and an address with a request still
    in progress cannot start a second one.
    """

    def __init__(
        self,
        selector: EndpointSelector,
        account: Optional[LocalAccount],
        cooldowns: Optional[CooldownTracker] = None,
        history: Optional[HistoryLedger] = None,
        metrics: Optional[FaucetMetrics] = None,
        amount: str = FAUCET_AMOUNT,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ):
        """
        Initialize the faucet.

        Args:
            selector: Endpoint selector used to reach the chain
            account: Custodial signing account (None if no key is configured)
            cooldowns: Cooldown tracker (new one if None)
            history: History ledger (new one if None)
            metrics: Optional metrics collector
            amount: ETH sent per disbursement, as a decimal string
            confirmation_timeout: Seconds to wait for a receipt before
                reporting the transaction as submitted
            receipt_timeout: Upper bound on receipt polling, in seconds
        """
        self.selector = selector
        self.account = account
        self.cooldowns = cooldowns if cooldowns is not None else CooldownTracker()
        self.history = history if history is not None else HistoryLedger()
        self.metrics = metrics
        self.amount = amount
        self.amount_wei = int(Web3.to_wei(Decimal(amount), "ether"))
        self.confirmation_timeout = confirmation_timeout
        self.receipt_timeout = receipt_timeout

        self._state_lock = threading.Lock()
        self._in_flight: Set[str] = set()

    @classmethod
    def from_config(
        cls,
        config: FaucetConfig,
        metrics: Optional[FaucetMetrics] = None,
    ) -> "Faucet":
        """Build a faucet from runtime configuration."""
        selector = EndpointSelector(
            config.rpc_endpoints,
            probe_timeout=config.probe_timeout,
            request_timeout=config.request_timeout,
        )
        account = Account.from_key(config.private_key) if config.private_key else None
        return cls(selector, account, metrics=metrics)

    @property
    def address(self) -> Optional[str]:
        """Address of the custodial wallet."""
        return self.account.address if self.account else None

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def disburse(self, address: str) -> DisbursementResult:
        """
        Send the faucet amount to an address.

        Never raises for request or network failures; the returned result
        carries either the transaction hash or a caller-facing error.

        Args:
            address: Recipient address as typed by the caller

        Returns:
            DisbursementResult
        """
        try:
            tx_hash, status = await self._disburse(address)
        except FaucetError as e:
            if e.kind.is_client_error:
                logger.warning(f"Request for {address!r} rejected: {e}")
            else:
                logger.error(f"Disbursement to {address!r} failed ({e.kind}): {e}")
            self._record_outcome(str(e.kind))
            return DisbursementResult.failed(e.kind)
        except Exception as e:
            kind = classify_broadcast_error(e)
            logger.error(f"Error sending ETH to {address!r}: {e}")
            self._record_outcome(str(kind))
            return DisbursementResult.failed(kind)

        self._record_outcome(status.value)
        return DisbursementResult.ok(tx_hash, status)

    def get_recent_transactions(self) -> List[Transaction]:
        """Recent disbursements, newest first."""
        return self.history.list()

    async def status(self) -> Dict[str, Any]:
        """
        Probe the network and report the faucet wallet state.

        Raises:
            NoEndpointAvailable: If no endpoint answers
            ChainError: If the balance query fails
        """
        client = await self.selector.acquire()
        info: Dict[str, Any] = {
            "endpoint": client.url,
            "address": self.address,
            "amount": self.amount,
        }
        if self.account is not None:
            balance = await client.get_balance(self.account.address)
            self._record_balance(balance)
            info["balance_wei"] = balance
            info["balance_eth"] = str(Web3.from_wei(balance, "ether"))
            info["disbursements_left"] = balance // self.amount_wei
        return info

    # ========================================================================
    # PIPELINE
    # ========================================================================

    async def _disburse(self, address: str):
        if not is_valid_address(address):
            raise FaucetError(FaucetErrorKind.INVALID_ADDRESS, f"malformed address {address!r}")

        key = normalize_address(address)
        with self._state_lock:
            if key in self._in_flight:
                raise FaucetError(FaucetErrorKind.REQUEST_IN_PROGRESS, "request already in progress")
            if self.cooldowns.is_on_cooldown(key):
                raise FaucetError(FaucetErrorKind.RATE_LIMITED, "address on cooldown")
            self._in_flight.add(key)

        try:
            client = await self._acquire_client()
            await self._check_balance(client)
            tx_hash = await self._submit(client, key)
            status = await self._await_confirmation(client, tx_hash)
            self._commit(key, tx_hash)
            return tx_hash, status
        finally:
            with self._state_lock:
                self._in_flight.discard(key)

    async def _acquire_client(self) -> ChainClient:
        if self.account is None:
            raise FaucetError(FaucetErrorKind.NETWORK_UNAVAILABLE, "faucet signing key not configured")
        try:
            return await self.selector.acquire()
        except NoEndpointAvailable as e:
            raise FaucetError(FaucetErrorKind.NETWORK_UNAVAILABLE, str(e)) from e

    async def _check_balance(self, client: ChainClient) -> None:
        balance = await client.get_balance(self.account.address)
        self._record_balance(balance)
        if balance < self.amount_wei:
            raise FaucetError(
                FaucetErrorKind.INSUFFICIENT_FUNDS,
                f"wallet balance {balance} wei below {self.amount_wei} wei",
            )

    async def _submit(self, client: ChainClient, recipient: str) -> str:
        try:
            tx_hash = await client.send_transfer(self.account, recipient, self.amount_wei)
        except ChainError as e:
            raise FaucetError(classify_broadcast_error(e), str(e)) from e
        logger.info(f"Transaction sent: {tx_hash}")
        return tx_hash

    async def _await_confirmation(self, client: ChainClient, tx_hash: str) -> DisbursementStatus:
        """Race the receipt against the confirmation timer."""
        started = trio.current_time()
        with trio.move_on_after(self.confirmation_timeout):
            try:
                receipt = await client.wait_for_receipt(tx_hash, self.receipt_timeout)
            except ChainError as e:
                logger.warning(f"Transaction {tx_hash} submitted but receipt lookup failed: {e}")
                return DisbursementStatus.SUBMITTED

            if receipt.get("status") == 0:
                logger.warning(f"Transaction {tx_hash} was mined but reverted")
                error = ChainError(f"transaction {tx_hash} reverted")
                raise FaucetError(classify_broadcast_error(error), str(error))
            logger.info(f"Transaction confirmed: {tx_hash}")
            if self.metrics:
                self.metrics.record_confirmation(trio.current_time() - started)
            return DisbursementStatus.CONFIRMED

        logger.warning(f"Transaction {tx_hash} submitted but confirmation timed out")
        return DisbursementStatus.SUBMITTED

    def _commit(self, key: str, tx_hash: str) -> None:
        with self._state_lock:
            self.cooldowns.mark_used(key)
            self.history.record(key, tx_hash, self.amount)
        if self.metrics:
            self.metrics.record_dispensed(self.amount_wei)

    def _record_outcome(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_outcome(outcome)

    def _record_balance(self, balance: int) -> None:
        if self.metrics:
            self.metrics.record_balance(balance)
