"""
ethfaucet/history.py

Bounded in-memory record of recent disbursements, newest first.
"""

import threading
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import MAX_RECENT_TXS
from .cooldown import now_ms


@dataclass(frozen=True)
class Transaction:
    """A completed (or submitted) disbursement."""
    id: str
    address: str
    tx_hash: str
    amount: str  # Decimal string, in ETH
    timestamp: int  # Milliseconds since epoch

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "address": self.address,
            "txHash": self.tx_hash,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


class HistoryLedger:
    """
    Newest-first list of recent transactions, capped at max_size.

    Usage:
        ledger = HistoryLedger()
        ledger.record("0xabc...", "0xdef...", "0.05")
        recent = ledger.list()
    """

    def __init__(
        self,
        max_size: int = MAX_RECENT_TXS,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.max_size = max_size
        self._clock = clock or now_ms
        self._transactions: List[Transaction] = []
        self._lock = threading.Lock()

    def record(self, address: str, tx_hash: str, amount: str) -> Transaction:
        """
        Add a transaction at the head of the history.

        Args:
            address: Recipient address
            tx_hash: Transaction hash
            amount: Amount sent, as a decimal string

        Returns:
            The stored Transaction
        """
        tx = Transaction(
            id=str(uuid.uuid4()),
            address=address,
            tx_hash=tx_hash,
            amount=amount,
            timestamp=self._clock(),
        )
        with self._lock:
            self._transactions.insert(0, tx)
            # Drop the oldest entries past the cap
            if len(self._transactions) > self.max_size:
                del self._transactions[self.max_size:]
        return tx

    def list(self) -> List[Transaction]:
        """Snapshot of the history, newest first."""
        with self._lock:
            return list(self._transactions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)
