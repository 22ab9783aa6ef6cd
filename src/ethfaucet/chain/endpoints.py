"""
ethfaucet/chain/endpoints.py

Prioritized RPC endpoint selection with failover.
"""

import logging
from typing import Callable, Iterable, List, Optional

import trio

from ..config import PROBE_TIMEOUT, RPC_REQUEST_TIMEOUT
from .client import ChainClient, ChainError, create_client

logger = logging.getLogger("ethfaucet.chain.endpoints")


class NoEndpointAvailable(ChainError):
    """No configured endpoint answered the liveness probe."""
    pass


ClientFactory = Callable[[str, float], ChainClient]


class EndpointSelector:
    """
    Returns a client for the first reachable endpoint.

    Endpoints are probed one at a time in priority order; the first that
    reports a block height within probe_timeout wins and the rest are not
    contacted.
    """

    def __init__(
        self,
        endpoints: Iterable[Optional[str]],
        client_factory: ClientFactory = create_client,
        probe_timeout: float = PROBE_TIMEOUT,
        request_timeout: float = RPC_REQUEST_TIMEOUT,
    ):
        """
        Initialize the selector.

        Args:
            endpoints: RPC URLs in order of preference (None/blank entries ignored)
            client_factory: Callable building a client for (url, timeout)
            probe_timeout: Seconds allowed for each liveness probe
            request_timeout: Per-request timeout handed to created clients
        """
        self.endpoints: List[str] = [url for url in endpoints if url and url.strip()]
        self.client_factory = client_factory
        self.probe_timeout = probe_timeout
        self.request_timeout = request_timeout

    async def _probe(self, url: str) -> ChainClient:
        client = self.client_factory(url, self.request_timeout)
        with trio.fail_after(self.probe_timeout):
            height = await client.get_block_number()
        logger.info(f"Connected to RPC endpoint: {url} (block {height})")
        return client

    async def acquire(self) -> ChainClient:
        """
        Find a working endpoint.

        Returns:
            Client bound to the first endpoint that answered

        Raises:
            NoEndpointAvailable: If the list is empty or every probe failed
        """
        for url in self.endpoints:
            try:
                return await self._probe(url)
            except trio.TooSlowError:
                logger.warning(f"Failed to connect to RPC endpoint {url}: "
                               f"no answer within {self.probe_timeout}s")
            except Exception as e:
                logger.warning(f"Failed to connect to RPC endpoint {url}: {e}")

        if not self.endpoints:
            logger.error("No RPC endpoints configured")
        else:
            logger.error(f"All {len(self.endpoints)} RPC endpoints are unreachable")
        raise NoEndpointAvailable("No RPC endpoint available")
