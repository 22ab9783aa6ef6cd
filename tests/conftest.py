"""
Shared fixtures for ethfaucet tests.

Provides an in-memory chain client so the disbursement pipeline can be
exercised without a node.
"""

import itertools

import pytest
import trio
from eth_account import Account

from ethfaucet.chain import EndpointSelector
from ethfaucet.cooldown import CooldownTracker
from ethfaucet.faucet import Faucet
from ethfaucet.history import HistoryLedger
from ethfaucet.metrics import FaucetMetrics


FAUCET_KEY = "0x" + "11" * 32
ONE_ETH = 10 ** 18


class FakeChainClient:
    """Chain client double with scripted behavior."""

    _hashes = itertools.count(1)

    def __init__(
        self,
        url: str = "http://fake-rpc",
        balance: int = ONE_ETH,
        send_error: Exception = None,
        receipt_error: Exception = None,
        receipt_delay: float = 0.0,
        receipt_status: int = 1,
        hang_receipt: bool = False,
        probe_error: Exception = None,
        probe_delay: float = 0.0,
    ):
        self.url = url
        self.balance = balance
        self.send_error = send_error
        self.receipt_error = receipt_error
        self.receipt_delay = receipt_delay
        self.receipt_status = receipt_status
        self.hang_receipt = hang_receipt
        self.probe_error = probe_error
        self.probe_delay = probe_delay

        self.probes = 0
        self.balance_queries = 0
        self.sent = []

    async def get_block_number(self) -> int:
        self.probes += 1
        if self.probe_delay:
            await trio.sleep(self.probe_delay)
        if self.probe_error:
            raise self.probe_error
        return 5_000_000

    async def get_balance(self, address: str) -> int:
        self.balance_queries += 1
        return self.balance

    async def send_transfer(self, account, to: str, value: int) -> str:
        if self.send_error:
            raise self.send_error
        self.sent.append((to, value))
        return "0x" + f"{next(self._hashes):064x}"

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict:
        if self.hang_receipt:
            await trio.sleep_forever()
        if self.receipt_delay:
            await trio.sleep(self.receipt_delay)
        if self.receipt_error:
            raise self.receipt_error
        return {"transactionHash": tx_hash, "status": self.receipt_status}


class ManualClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def faucet_account():
    return Account.from_key(FAUCET_KEY)


@pytest.fixture
def clock():
    return ManualClock(start=1_700_000_000_000)


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def make_chain():
    """Factory for FakeChainClient instances."""
    return FakeChainClient


@pytest.fixture
def make_faucet(faucet_account, clock):
    """Build a Faucet wired to the given fake clients (in priority order)."""

    def factory(*clients, account=faucet_account, metrics=None, **kwargs):
        if not clients:
            clients = (FakeChainClient(),)
        by_url = {c.url: c for c in clients}
        selector = EndpointSelector(
            [c.url for c in clients],
            client_factory=lambda url, timeout: by_url[url],
        )
        return Faucet(
            selector,
            account,
            cooldowns=kwargs.pop("cooldowns", CooldownTracker(clock=clock)),
            history=kwargs.pop("history", HistoryLedger(clock=clock)),
            metrics=metrics,
            **kwargs,
        )

    return factory


@pytest.fixture
def metrics():
    return FaucetMetrics()
