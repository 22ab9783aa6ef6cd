"""
ethfaucet/cooldown.py

Per-address cooldown tracking.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from .config import COOLDOWN_PERIOD_MS

logger = logging.getLogger("ethfaucet.cooldown")


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def normalize_address(address: str) -> str:
    """Canonical form used as the cooldown and history key."""
    return address.strip().lower()


class CooldownTracker:
    """
    Remembers when each address last received funds.

    Entries are overwritten on every successful disbursement and never
    deleted; stale entries simply fall out of the cooldown window.
    """

    def __init__(
        self,
        period_ms: int = COOLDOWN_PERIOD_MS,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the tracker.

        Args:
            period_ms: Cooldown window in milliseconds
            clock: Callable returning the current time in milliseconds
        """
        self.period_ms = period_ms
        self._clock = clock or now_ms
        self._last_used: Dict[str, int] = {}
        self._lock = threading.Lock()

    def is_on_cooldown(self, address: str) -> bool:
        """Check whether the address received funds within the window."""
        return self.remaining_ms(address) > 0

    def remaining_ms(self, address: str) -> int:
        """Milliseconds until the address may request again (0 if allowed now)."""
        key = normalize_address(address)
        with self._lock:
            last = self._last_used.get(key)
        if last is None:
            return 0
        elapsed = self._clock() - last
        if elapsed < self.period_ms:
            return self.period_ms - elapsed
        return 0

    def mark_used(self, address: str) -> None:
        """Start (or restart) the cooldown window for an address."""
        key = normalize_address(address)
        with self._lock:
            self._last_used[key] = self._clock()
        logger.debug(f"Cooldown started for {key}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_used)
