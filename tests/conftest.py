"""Pytest configuration and fixtures for HTTP-Hopper tests."""

import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional, Union

import pytest

from http_hopper.core.config import ClientConfig, NetworkConfig
from http_hopper.core.exceptions import ConnectionError
from http_hopper.headers.block import HeaderBlock
from http_hopper.network.transport import HttpTransport
from http_hopper.utils.logging import setup_logging


@pytest.fixture(scope="session", autouse=True)
def quiet_logging() -> None:
    """Keep structured log output away from stdout during tests."""
    setup_logging(level="WARNING", quiet=True)


@dataclass
class RecordedCall:
    """One exchange seen by the scripted transport."""

    method: str
    uri: str
    headers: HeaderBlock
    payload: bytes


ScriptedReply = Union[str, ConnectionError]


class ScriptedTransport(HttpTransport):
    """Transport that replays canned raw responses in order."""

    name = "scripted"

    def __init__(self, uri: str, replies: List[ScriptedReply], config: Optional[NetworkConfig] = None):
        self.replies = list(replies)
        self.calls: List[RecordedCall] = []
        super().__init__(uri, config)

    def _perform(self, method: str, headers: HeaderBlock, payload: bytes) -> str:
        self.calls.append(RecordedCall(method, self._uri, headers.copy(), payload))
        if not self.replies:
            raise AssertionError(f"unexpected request #{len(self.calls)} to {self._uri}")
        reply = self.replies.pop(0)
        if isinstance(reply, ConnectionError):
            raise reply
        return reply


@pytest.fixture
def scripted_transport() -> Callable[..., ScriptedTransport]:
    """Factory for transports that replay canned responses."""
    def factory(uri: str, replies: List[ScriptedReply], config: Optional[NetworkConfig] = None):
        return ScriptedTransport(uri, replies, config)
    return factory


@pytest.fixture
def network_config() -> NetworkConfig:
    """Create network configuration for testing."""
    return NetworkConfig(
        connect_timeout=2.0,
        read_timeout=2.0,
        write_timeout=2.0,
    )


@pytest.fixture
def client_config(network_config: NetworkConfig) -> ClientConfig:
    """Client configuration with a small hop bound."""
    return ClientConfig(max_hops=5, network=network_config)


@pytest.fixture
def redirect_response() -> str:
    return (
        "HTTP/1.1 302 Found\r\n"
        "Location: /final\r\n"
        "Set-Cookie: sid=abc123; Path=/; HttpOnly\r\n"
        "Content-Length: 0\r\n"
        "\r\n"
    )


@pytest.fixture
def ok_response() -> str:
    return (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/plain\r\n"
        "Content-Length: 5\r\n"
        "\r\n"
        "hello"
    )


class OneShotServer:
    """Local TCP server answering each connection with a canned reply.

    Requests are captured so tests can inspect what was sent on the wire.
    """

    def __init__(self, replies: List[bytes], hold: float = 0.0):
        self.replies = list(replies)
        self.hold = hold
        self.requests: List[bytes] = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(5)
        self._sock.settimeout(5.0)
        self.port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def start(self) -> "OneShotServer":
        self._thread.start()
        return self

    def _read_request(self, conn: socket.socket) -> bytes:
        data = b""
        while b"\r\n\r\n" not in data:
            chunk = conn.recv(4096)
            if not chunk:
                return data
            data += chunk

        head, _, body = data.partition(b"\r\n\r\n")
        length = 0
        for line in head.split(b"\r\n")[1:]:
            name, _, value = line.partition(b":")
            if name.strip().lower() == b"content-length":
                length = int(value.strip())
        while len(body) < length:
            chunk = conn.recv(4096)
            if not chunk:
                break
            body += chunk
        return head + b"\r\n\r\n" + body

    def _serve(self) -> None:
        while self.replies:
            try:
                conn, _ = self._sock.accept()
            except OSError:
                return
            with conn:
                conn.settimeout(5.0)
                self.requests.append(self._read_request(conn))
                conn.sendall(self.replies.pop(0))
                if self.hold:
                    # Keep the connection open without sending more
                    time.sleep(self.hold)

    def close(self) -> None:
        self._sock.close()
        self._thread.join(timeout=5.0)


@pytest.fixture
def socket_server() -> Generator[Callable[[List[bytes]], OneShotServer], None, None]:
    """Factory for local servers replaying raw response bytes."""
    servers: List[OneShotServer] = []

    def factory(replies: List[bytes], hold: float = 0.0) -> OneShotServer:
        server = OneShotServer(replies, hold).start()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        server.close()


@pytest.fixture
def closed_port() -> int:
    """A local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
