"""
Shared fixtures: a controllable clock, a scripted authenticator, a
scripted gateway for the resource clients and a local HTTP server for
the gateway itself.
"""

import asyncio
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional

import pytest

from caretqa.api.gateway import ApiResult
from caretqa.auth.session import Session
from caretqa.errors import AuthenticationError

BASE_URL = "https://qa.example.test"
T0 = 1_700_000_000.0


# ====================================================================
# Clock + sessions
# ====================================================================

class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += minutes * 60


def make_session(identity: str = "qa1@firm.test", created_at: float = T0,
                 token: str = "tok-123") -> Session:
    return Session(
        identity=identity,
        bearer_token=token,
        cookie_header=f"web-tok={token}; ASP.NET_SessionId=abc",
        base_url=BASE_URL,
        created_at=created_at,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return make_session()


# ====================================================================
# Authenticator
# ====================================================================

class FakeAuthenticator:
    """Counts logins; can be told to fail or to take a while."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None
        self.delay = 0.0

    async def authenticate(self, identity: str, secret: str) -> Session:
        self.calls.append(identity)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if secret == "wrong":
            raise AuthenticationError(f"Invalid Username or Password for {identity}", identity)
        return make_session(identity, created_at=self.clock(),
                            token=f"tok-{identity}-{len(self.calls)}")


@pytest.fixture
def authenticator(clock):
    return FakeAuthenticator(clock)


@pytest.fixture
def cache_file(tmp_path):
    return tmp_path / ".auth-cache" / "api-auth-cache.json"


# ====================================================================
# Gateway double for resource clients
# ====================================================================

class FakeGateway:
    """Replays queued (status, body) responses and records every call."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self._responses: List[ApiResult] = []

    def queue(self, body: Any = None, status: int = 200, status_text: str = "OK") -> "FakeGateway":
        self._responses.append(
            ApiResult(method="", url="", status=status, status_text=status_text, body=body)
        )
        return self

    def _reply(self, method: str, path: str, **kwargs) -> ApiResult:
        self.calls.append({"method": method, "path": path, **kwargs})
        result = self._responses.pop(0)
        result.method = method
        result.url = BASE_URL + path
        return result

    async def get(self, path, session, **kwargs):
        return self._reply("GET", path, **kwargs)

    async def post(self, path, session, payload=None, **kwargs):
        return self._reply("POST", path, payload=payload, **kwargs)

    async def put(self, path, session, payload=None, **kwargs):
        return self._reply("PUT", path, payload=payload, **kwargs)

    async def delete(self, path, session, **kwargs):
        return self._reply("DELETE", path, **kwargs)


@pytest.fixture
def gateway():
    return FakeGateway()


# ====================================================================
# Local HTTP server for gateway integration tests
# ====================================================================

class _Handler(BaseHTTPRequestHandler):
    received: List[Dict[str, Any]] = []

    def log_message(self, *args):
        pass

    def _send(self, status: int, body: str, content_type: str) -> None:
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _handle(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length).decode("utf-8") if length else ""
        record = {
            "method": self.command,
            "path": self.path,
            "headers": {k.lower(): v for k, v in self.headers.items()},
            "body": raw,
        }
        self.received.append(record)

        route = self.path.split("?", 1)[0]
        if route == "/api2/json":
            self._send(200, json.dumps({"ok": True, "items": [1, 2]}), "application/json")
        elif route == "/api2/number":
            self._send(200, "42", "application/json; charset=utf-8")
        elif route == "/api2/text":
            self._send(200, "plain words", "text/plain")
        elif route == "/api2/untyped-json":
            self._send(200, '{"id": 7}', "text/html")
        elif route == "/api2/broken-json":
            self._send(200, "{not json", "application/json")
        elif route == "/api2/fail":
            self._send(500, json.dumps({"Message": "boom"}), "application/json")
        else:
            self._send(200, json.dumps(record), "application/json")

    do_GET = do_POST = do_PUT = do_DELETE = _handle


@pytest.fixture
def http_server():
    """Yields (base_url, received_requests)."""
    _Handler.received = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}", _Handler.received
    finally:
        server.shutdown()
        server.server_close()
