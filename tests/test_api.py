"""
ethfaucet/tests/test_api.py

Unit tests for the HTTP API and Prometheus metrics.
"""

import json

import pytest
import trio
import trio.testing

from ethfaucet.api import MAX_BODY_SIZE, FaucetAPI, Request, Response
from ethfaucet.chain import ChainError
from ethfaucet.config import FaucetConfig


RECIPIENT = "0x" + "cd" * 20


def make_request(method: str, path: str, body=None) -> Request:
    raw = json.dumps(body).encode() if isinstance(body, (dict, list)) else (body or b"")
    return Request(method=method, path=path, query={}, headers={}, body=raw)


@pytest.fixture
def config():
    return FaucetConfig(
        rpc_endpoints=["http://fake-rpc"],
        private_key="0x" + "11" * 32,
        explorer_url="https://sepolia.etherscan.io",
    )


@pytest.fixture
def api(make_faucet, metrics, config):
    faucet = make_faucet(metrics=metrics)
    return FaucetAPI(faucet, config)


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

class TestResponse:
    """Tests for Response constructors."""

    def test_json(self):
        response = Response.json({"a": 1}, status=201)
        assert response.status == 201
        assert response.headers["Content-Type"] == "application/json"
        assert json.loads(response.body) == {"a": 1}

    def test_error(self):
        response = Response.error("nope", status=429)
        assert json.loads(response.body) == {"success": False, "error": "nope"}


# ============================================================================
# ROUTES
# ============================================================================

class TestFaucetRoutes:
    """Tests for route handlers."""

    @pytest.mark.trio
    async def test_root(self, api):
        response = await api._route_request(make_request("GET", "/"))
        data = json.loads(response.body)
        assert data["name"] == "ethfaucet"
        assert "POST /faucet" in data["endpoints"]

    @pytest.mark.trio
    async def test_not_found(self, api):
        response = await api._route_request(make_request("GET", "/nope"))
        assert response.status == 404

    @pytest.mark.trio
    async def test_disburse_success(self, api):
        response = await api._route_request(
            make_request("POST", "/faucet", {"address": RECIPIENT})
        )
        data = json.loads(response.body)

        assert response.status == 200
        assert data["success"] is True
        assert data["txHash"].startswith("0x")
        assert data["status"] == "confirmed"
        assert data["explorerUrl"] == f"https://sepolia.etherscan.io/tx/{data['txHash']}"

    @pytest.mark.trio
    async def test_disburse_rate_limited(self, api):
        await api._route_request(make_request("POST", "/faucet", {"address": RECIPIENT}))
        response = await api._route_request(
            make_request("POST", "/faucet", {"address": RECIPIENT})
        )
        data = json.loads(response.body)

        assert response.status == 429
        assert data == {
            "success": False,
            "error": "This address has already received ETH in the last 24 hours",
        }

    @pytest.mark.trio
    async def test_disburse_invalid_address(self, api):
        response = await api._route_request(
            make_request("POST", "/faucet", {"address": "0x1234"})
        )
        assert response.status == 400
        assert json.loads(response.body)["error"] == "Invalid Ethereum address"

    @pytest.mark.trio
    @pytest.mark.parametrize("body", [b"", b"{not json", {"addr": RECIPIENT}, [RECIPIENT], {"address": 5}])
    async def test_disburse_bad_body(self, api, body):
        response = await api._route_request(make_request("POST", "/faucet", body))
        assert response.status == 400

    @pytest.mark.trio
    async def test_disburse_network_down(self, make_faucet, make_chain, config):
        faucet = make_faucet(make_chain(probe_error=ChainError("refused")))
        api = FaucetAPI(faucet, config)

        response = await api._route_request(
            make_request("POST", "/faucet", {"address": RECIPIENT})
        )
        assert response.status == 503

    @pytest.mark.trio
    async def test_disburse_broadcast_failure(self, make_faucet, make_chain, config):
        faucet = make_faucet(make_chain(send_error=ChainError("nonce too low")))
        api = FaucetAPI(faucet, config)

        response = await api._route_request(
            make_request("POST", "/faucet", {"address": RECIPIENT})
        )
        assert response.status == 502
        assert json.loads(response.body)["error"] == "Transaction nonce error. Please try again."

    @pytest.mark.trio
    async def test_transactions(self, api):
        await api._route_request(make_request("POST", "/faucet", {"address": RECIPIENT}))

        response = await api._route_request(make_request("GET", "/transactions"))
        data = json.loads(response.body)

        assert data["count"] == 1
        tx = data["transactions"][0]
        assert tx["address"] == RECIPIENT
        assert tx["amount"] == "0.05"
        assert tx["explorerUrl"].endswith(tx["txHash"])
        assert tx["addressUrl"] == f"https://sepolia.etherscan.io/address/{RECIPIENT}"

    @pytest.mark.trio
    async def test_health(self, api):
        response = await api._route_request(make_request("GET", "/health"))
        data = json.loads(response.body)
        assert response.status == 200
        assert data["status"] == "healthy"

    @pytest.mark.trio
    async def test_health_misconfigured(self, make_faucet):
        api = FaucetAPI(make_faucet(), FaucetConfig())
        response = await api._route_request(make_request("GET", "/health"))
        assert response.status == 503
        assert len(json.loads(response.body)["problems"]) == 2

    @pytest.mark.trio
    async def test_status(self, api):
        response = await api._route_request(make_request("GET", "/status"))
        data = json.loads(response.body)
        assert response.status == 200
        assert data["endpoint"] == "http://fake-rpc"
        assert data["balance_wei"] == 10 ** 18

    @pytest.mark.trio
    async def test_metrics(self, api):
        await api._route_request(make_request("POST", "/faucet", {"address": RECIPIENT}))

        response = await api._route_request(make_request("GET", "/metrics"))
        text = response.body.decode()

        assert response.headers["Content-Type"].startswith("text/plain")
        assert 'ethfaucet_disbursements_total{outcome="confirmed"} 1' in text

    @pytest.mark.trio
    async def test_metrics_disabled(self, make_faucet, config):
        api = FaucetAPI(make_faucet(), config)
        response = await api._route_request(make_request("GET", "/metrics"))
        assert response.status == 404


# ============================================================================
# WIRE FORMAT
# ============================================================================

async def exchange(api: FaucetAPI, raw: bytes) -> bytes:
    """Send raw bytes through the connection handler and collect the reply."""
    client, server = trio.testing.memory_stream_pair()
    reply = b""

    async with trio.open_nursery() as nursery:
        nursery.start_soon(api._handle_connection, server)
        await client.send_all(raw)
        while True:
            chunk = await client.receive_some(4096)
            if not chunk:
                break
            reply += chunk

    return reply


class TestWireFormat:
    """Tests for HTTP parsing and serialization."""

    @pytest.mark.trio
    async def test_post_faucet(self, api):
        body = json.dumps({"address": RECIPIENT}).encode()
        raw = (
            b"POST /faucet HTTP/1.1\r\n"
            b"Host: localhost\r\n"
            b"Content-Type: application/json\r\n"
            + f"Content-Length: {len(body)}\r\n\r\n".encode()
            + body
        )

        reply = await exchange(api, raw)

        head, _, payload = reply.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK")
        assert b"Connection: close" in head
        assert json.loads(payload)["success"] is True

    @pytest.mark.trio
    async def test_rate_limited_status_line(self, api):
        body = json.dumps({"address": RECIPIENT}).encode()
        raw = (
            b"POST /faucet HTTP/1.1\r\n"
            + f"Content-Length: {len(body)}\r\n\r\n".encode()
            + body
        )

        await exchange(api, raw)
        reply = await exchange(api, raw)

        assert reply.startswith(b"HTTP/1.1 429 Too Many Requests")

    @pytest.mark.trio
    async def test_get_with_query(self, api):
        reply = await exchange(api, b"GET /transactions?limit=5 HTTP/1.1\r\n\r\n")
        head, _, payload = reply.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK")
        assert json.loads(payload) == {"count": 0, "transactions": []}

    @pytest.mark.trio
    async def test_oversized_body_rejected(self, api):
        raw = b"POST /faucet HTTP/1.1\r\nContent-Length: 999999\r\n\r\n{}"

        reply = await exchange(api, raw)

        head, _, payload = reply.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 413 Payload Too Large")
        assert json.loads(payload) == {"success": False, "error": "Request too large"}
        assert api.faucet.get_recent_transactions() == []

    @pytest.mark.trio
    async def test_oversized_headers_rejected(self, api):
        raw = b"GET /health HTTP/1.1\r\nX-Filler: " + b"a" * (MAX_BODY_SIZE + 1)

        reply = await exchange(api, raw)

        assert reply.startswith(b"HTTP/1.1 413 Payload Too Large")

    @pytest.mark.trio
    @pytest.mark.parametrize("length", [b"abc", b"-5", b"1e3"])
    async def test_bad_content_length_rejected(self, api, length):
        raw = b"POST /faucet HTTP/1.1\r\nContent-Length: " + length + b"\r\n\r\n{}"

        reply = await exchange(api, raw)

        head, _, payload = reply.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 400 Bad Request")
        assert json.loads(payload)["error"] == "Invalid Content-Length"
