"""
ethfaucet/api.py

HTTP API server for the faucet.

Endpoints:
    POST /faucet         {"address": "0x..."} -> disbursement result
    GET  /transactions   recent disbursements, newest first
    GET  /status         selected endpoint and faucet wallet balance
    GET  /health         liveness and configuration state
    GET  /metrics        Prometheus metrics
"""

import json
import logging
import time
import trio
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from .config import FaucetConfig
from .errors import FaucetErrorKind
from .faucet import Faucet
from .metrics import FaucetMetrics

logger = logging.getLogger("ethfaucet.api")

MAX_BODY_SIZE = 16 * 1024

STATUS_TEXT = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    413: "Payload Too Large",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

# HTTP status for each failure kind; anything unlisted is a broadcast failure
ERROR_STATUS = {
    FaucetErrorKind.INVALID_ADDRESS: 400,
    FaucetErrorKind.RATE_LIMITED: 429,
    FaucetErrorKind.REQUEST_IN_PROGRESS: 429,
    FaucetErrorKind.NETWORK_UNAVAILABLE: 503,
    FaucetErrorKind.INSUFFICIENT_FUNDS: 503,
}


class RequestError(Exception):
    """Malformed or oversized request, answered with an error status."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


@dataclass
class Request:
    """HTTP request representation."""
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: bytes


@dataclass
class Response:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str]
    body: bytes

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        """Create JSON response."""
        body = json.dumps(data, indent=2).encode("utf-8")
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=body,
        )

    @classmethod
    def text(cls, text: str, status: int = 200, content_type: str = "text/plain") -> "Response":
        """Create text response."""
        return cls(
            status=status,
            headers={"Content-Type": content_type},
            body=text.encode("utf-8"),
        )

    @classmethod
    def error(cls, message: str, status: int = 400) -> "Response":
        """Create error response."""
        return cls.json({"success": False, "error": message}, status=status)


class FaucetAPI:
    """
    HTTP API server exposing a Faucet.

    Usage:
        faucet = Faucet.from_config(config)
        api = FaucetAPI(faucet, config)
        await api.start()

        # API available at http://localhost:3000
    """

    def __init__(
        self,
        faucet: Faucet,
        config: Optional[FaucetConfig] = None,
        metrics: Optional[FaucetMetrics] = None,
    ):
        """
        Initialize API server.

        Args:
            faucet: Faucet to expose
            config: Runtime configuration (host, port, explorer links)
            metrics: Metrics collector for the /metrics endpoint
        """
        self.faucet = faucet
        self.config = config or FaucetConfig()
        self.metrics = metrics if metrics is not None else faucet.metrics
        self.host = self.config.host
        self.port = self.config.port

        self._running = False
        self._start_time = time.time()

        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/status"): self._handle_status,
            ("GET", "/transactions"): self._handle_transactions,
            ("POST", "/faucet"): self._handle_faucet,
            ("GET", "/metrics"): self._handle_metrics,
        }

    async def start(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """Start the API server (runs until cancelled)."""
        if self._running:
            logger.warning("API server already running")
            return

        self._running = True
        logger.info(f"Starting faucet API on {self.host}:{self.port}")

        try:
            await trio.serve_tcp(
                self._handle_connection,
                self.port,
                host=self.host,
                task_status=task_status,
            )
        except Exception as e:
            logger.error(f"API server error: {e}")
            raise
        finally:
            self._running = False

    async def _handle_connection(self, stream: trio.abc.Stream) -> None:
        """Handle one HTTP exchange on a connection."""
        try:
            try:
                request = await self._read_request(stream)
            except RequestError as e:
                logger.warning(f"Rejected request: {e}")
                response = Response.error(str(e), status=e.status)
            else:
                if not request:
                    return
                response = await self._route_request(request)
                logger.debug(f"{request.method} {request.path} -> {response.status}")

            await self._send_response(stream, response)

        except Exception as e:
            logger.error(f"Connection error: {e}")
            try:
                await self._send_response(stream, Response.error("Internal server error", status=500))
            except Exception:
                pass
        finally:
            await stream.aclose()

    async def _read_request(self, stream: trio.abc.Stream) -> Optional[Request]:
        """Read and parse an HTTP request."""
        try:
            data = b""
            while b"\r\n\r\n" not in data:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    return None
                data += chunk
                if len(data) > MAX_BODY_SIZE:
                    raise RequestError("Request too large", status=413)

            header_end = data.index(b"\r\n\r\n")
            header_data = data[:header_end].decode("utf-8")
            body = data[header_end + 4:]

            lines = header_data.split("\r\n")
            request_line = lines[0].split(" ")
            method = request_line[0].upper()
            path_with_query = request_line[1] if len(request_line) > 1 else "/"

            parsed = urlparse(path_with_query)
            headers = {}
            for line in lines[1:]:
                if ":" in line:
                    key, value = line.split(":", 1)
                    headers[key.strip().lower()] = value.strip()

            raw_length = headers.get("content-length", "0")
            if not raw_length.isdigit():
                raise RequestError("Invalid Content-Length", status=400)
            content_length = int(raw_length)
            if content_length > MAX_BODY_SIZE:
                raise RequestError("Request too large", status=413)

            while len(body) < content_length:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    break
                body += chunk

            return Request(
                method=method,
                path=parsed.path,
                query=parse_qs(parsed.query),
                headers=headers,
                body=body[:content_length],
            )

        except RequestError:
            raise
        except Exception as e:
            logger.error(f"Error reading request: {e}")
            return None

    async def _send_response(self, stream: trio.abc.Stream, response: Response) -> None:
        """Send HTTP response."""
        status_text = STATUS_TEXT.get(response.status, "Unknown")
        lines = [f"HTTP/1.1 {response.status} {status_text}"]

        response.headers["Content-Length"] = str(len(response.body))
        response.headers["Connection"] = "close"
        response.headers["Server"] = "ethfaucet/0.1.0"

        for key, value in response.headers.items():
            lines.append(f"{key}: {value}")

        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        await stream.send_all(header_bytes + response.body)

    async def _route_request(self, request: Request) -> Response:
        handler = self._routes.get((request.method, request.path))
        if handler:
            return await handler(request)
        return Response.error("Not Found", status=404)

    # ========== Route Handlers ==========

    async def _handle_root(self, request: Request) -> Response:
        return Response.json({
            "name": "ethfaucet",
            "version": "0.1.0",
            "amount": self.faucet.amount,
            "endpoints": list(f"{m} {p}" for (m, p) in self._routes.keys()),
        })

    async def _handle_health(self, request: Request) -> Response:
        """Report liveness without touching the network."""
        problems = self.config.validate()
        return Response.json({
            "status": "healthy" if not problems else "misconfigured",
            "problems": problems,
            "faucet_address": self.faucet.address,
            "uptime_seconds": time.time() - self._start_time,
        }, status=200 if not problems else 503)

    async def _handle_status(self, request: Request) -> Response:
        try:
            info = await self.faucet.status()
        except Exception as e:
            logger.warning(f"Status probe failed: {e}")
            return Response.error(FaucetErrorKind.NETWORK_UNAVAILABLE.message, status=503)
        return Response.json(info)

    async def _handle_transactions(self, request: Request) -> Response:
        transactions = []
        for tx in self.faucet.get_recent_transactions():
            item = tx.to_dict()
            item["explorerUrl"] = self.config.tx_url(tx.tx_hash)
            item["addressUrl"] = self.config.address_url(tx.address)
            transactions.append(item)
        return Response.json({
            "count": len(transactions),
            "transactions": transactions,
        })

    async def _handle_faucet(self, request: Request) -> Response:
        """Handle a disbursement request."""
        if not request.body:
            return Response.error("Request body required", status=400)

        try:
            body = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return Response.error("Invalid JSON", status=400)

        address = body.get("address") if isinstance(body, dict) else None
        if not isinstance(address, str):
            return Response.error("address is required", status=400)

        result = await self.faucet.disburse(address.strip())
        payload = result.to_dict()
        if result.success:
            payload["status"] = result.status.value
            payload["explorerUrl"] = self.config.tx_url(result.tx_hash)
            return Response.json(payload)

        return Response.json(payload, status=ERROR_STATUS.get(result.error_kind, 502))

    async def _handle_metrics(self, request: Request) -> Response:
        """Handle Prometheus metrics endpoint."""
        if not self.metrics:
            return Response.error("Metrics not enabled", status=404)

        return Response.text(
            self.metrics.collect(),
            content_type="text/plain; version=0.0.4; charset=utf-8",
        )
