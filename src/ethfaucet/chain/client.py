"""
ethfaucet/chain/client.py

JSON-RPC client for an Ethereum-compatible endpoint.

Wraps a synchronous web3 instance and runs each blocking call in a worker
thread so it can be awaited from trio tasks. Provides:
- Liveness probe (current block number)
- Balance queries
- Signing and broadcasting of native-currency transfers
- Polling for transaction receipts
"""

import logging
from typing import Any, Callable, Dict, Optional

import trio
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TransactionNotFound

from ..config import RECEIPT_POLL_INTERVAL, RPC_REQUEST_TIMEOUT

logger = logging.getLogger("ethfaucet.chain.client")


# Gas limit of a plain value transfer, used when estimation returns less
TRANSFER_GAS = 21000


class ChainError(Exception):
    """Exception raised for chain RPC errors."""
    pass


class ReceiptTimeout(ChainError):
    """Receipt was not observed within the client-side timeout."""
    pass


class ChainClient:
    """
    Async client bound to a single RPC endpoint.

    Example:
        client = ChainClient("https://rpc.sepolia.org")
        height = await client.get_block_number()

        tx_hash = await client.send_transfer(account, "0xabc...", 10**16)
        receipt = await client.wait_for_receipt(tx_hash, timeout=120)
    """

    def __init__(
        self,
        url: str,
        timeout: float = RPC_REQUEST_TIMEOUT,
        web3: Optional[Web3] = None,
        poll_interval: float = RECEIPT_POLL_INTERVAL,
    ):
        """
        Initialize the client.

        Args:
            url: HTTP(S) JSON-RPC endpoint
            timeout: Per-request timeout in seconds
            web3: Preconfigured Web3 instance (mainly for tests)
            poll_interval: Seconds between receipt lookups
        """
        self.url = url
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.w3 = web3 or Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
        # Receipt lookups get their own token so an abandoned one never
        # starves the shared thread limiter used by probes and broadcasts
        self._receipt_limiter = trio.CapacityLimiter(1)

    def __repr__(self) -> str:
        return f"ChainClient({self.url!r})"

    async def _run(self, fn: Callable[..., Any], *args, limiter: Optional[trio.CapacityLimiter] = None) -> Any:
        """Run a blocking web3 call in a thread, wrapping failures in ChainError."""
        try:
            return await trio.to_thread.run_sync(fn, *args, abandon_on_cancel=True, limiter=limiter)
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(str(e) or type(e).__name__) from e

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def get_block_number(self) -> int:
        """
        Get current chain height.

        Returns:
            Latest block number
        """
        return await self._run(lambda: self.w3.eth.block_number)

    async def get_balance(self, address: str) -> int:
        """
        Get the balance of an address.

        Args:
            address: Hex address (any case)

        Returns:
            Balance in wei
        """
        checksum = Web3.to_checksum_address(address)
        return int(await self._run(self.w3.eth.get_balance, checksum))

    def _build_transfer(self, account: LocalAccount, to: str, value: int) -> Dict[str, Any]:
        """Build an EIP-1559 value transfer from account to the recipient."""
        eth = self.w3.eth
        tx: Dict[str, Any] = {
            "from": account.address,
            "to": Web3.to_checksum_address(to),
            "value": value,
            "nonce": eth.get_transaction_count(account.address, "pending"),
            "chainId": eth.chain_id,
        }
        tx["gas"] = max(eth.estimate_gas(tx), TRANSFER_GAS)

        priority_fee = eth.max_priority_fee
        base_fee = eth.get_block("latest").get("baseFeePerGas", 0)
        tx["maxPriorityFeePerGas"] = priority_fee
        tx["maxFeePerGas"] = 2 * base_fee + priority_fee
        return tx

    def _send_transfer_sync(self, account: LocalAccount, to: str, value: int) -> str:
        tx = self._build_transfer(account, to, value)
        signed = account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def send_transfer(self, account: LocalAccount, to: str, value: int) -> str:
        """
        Sign and broadcast a native-currency transfer.

        Args:
            account: Signing account paying for the transfer
            to: Recipient address
            value: Amount in wei

        Returns:
            Transaction hash (0x-prefixed hex)

        Raises:
            ChainError: If building, signing or broadcasting fails
        """
        tx_hash = await self._run(self._send_transfer_sync, account, to, value)
        logger.info(f"Transaction broadcast via {self.url}: {tx_hash}")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Dict[str, Any]:
        """
        Poll until the transaction is mined.

        Each lookup is a single short RPC call; the wait between lookups
        happens in trio, so cancelling the caller leaves no long-running
        worker thread behind.

        Args:
            tx_hash: Transaction hash
            timeout: Seconds before giving up

        Returns:
            Transaction receipt

        Raises:
            ReceiptTimeout: If no receipt appears within timeout
            ChainError: On RPC failure
        """
        def lookup():
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        try:
            with trio.fail_after(timeout):
                while True:
                    receipt = await self._run(lookup, limiter=self._receipt_limiter)
                    if receipt is not None:
                        return dict(receipt)
                    await trio.sleep(self.poll_interval)
        except trio.TooSlowError as e:
            raise ReceiptTimeout(f"no receipt for {tx_hash} within {timeout}s") from e


def create_client(url: str, timeout: float = RPC_REQUEST_TIMEOUT) -> ChainClient:
    """Default client factory used by the endpoint selector."""
    return ChainClient(url, timeout=timeout)
