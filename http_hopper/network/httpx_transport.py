"""HTTP transport backed by httpx.

httpx is used strictly as a single-exchange client: redirects are never
followed here, and the response is rendered back into raw HTTP text so
that callers see the same shape the socket transport produces.
"""

import ssl
from typing import Optional

import httpx

from http_hopper.core.config import NetworkConfig
from http_hopper.core.exceptions import (
    ConnectionError,
    ConnectionRefusedError,
    ConnectionTimeoutError,
    SSLError,
    DNSResolutionError,
    ProxyTunnelError,
)
from http_hopper.headers.block import HeaderBlock
from http_hopper.headers.status_codes import reason_phrase
from http_hopper.network.transport import HttpTransport


DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)

TIMEOUT_PHASES = (
    (httpx.ConnectTimeout, "connect"),
    (httpx.ReadTimeout, "read"),
    (httpx.WriteTimeout, "write"),
    (httpx.PoolTimeout, "pool"),
)


class HttpxTransport(HttpTransport):
    """HTTP transport using an httpx.Client per target URI."""

    name = "httpx"

    def __init__(
        self,
        uri: str,
        config: Optional[NetworkConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client: Optional[httpx.Client] = None
        self._httpx_transport = transport
        super().__init__(uri, config)

    @property
    def client(self) -> Optional[httpx.Client]:
        """The open httpx client, kept for inspection after a call."""
        return self._client

    def _ssl_verify(self):
        cfg = self.config
        if cfg.verify_ssl and not cfg.ssl_cert_path:
            return True

        context = ssl.create_default_context()
        if not cfg.verify_ssl:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if cfg.ssl_cert_path and cfg.ssl_key_path:
            context.load_cert_chain(cfg.ssl_cert_path, cfg.ssl_key_path)
        return context

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client

        cfg = self.config
        kwargs = {
            "follow_redirects": False,
            "timeout": httpx.Timeout(
                cfg.read_timeout,
                connect=cfg.connect_timeout,
                write=cfg.write_timeout,
            ),
            "verify": self._ssl_verify(),
        }

        if self._httpx_transport is not None:
            kwargs["transport"] = self._httpx_transport
        elif self._proxy is not None:
            auth = None
            if self._proxy_user:
                auth = (self._proxy_user, self._proxy_password or "")
            kwargs["proxy"] = httpx.Proxy(self._proxy.origin, auth=auth)

        self._client = httpx.Client(**kwargs)
        return self._client

    def _perform(self, method: str, headers: HeaderBlock, payload: bytes) -> str:
        client = self._get_client()
        target = self._target

        header_list = headers.header_lines()
        if "accept-encoding" not in headers:
            # Keep the body byte-for-byte what the headers describe
            header_list.append(("Accept-Encoding", "identity"))

        try:
            response = client.request(
                method,
                self._uri,
                headers=header_list,
                content=payload or None,
            )
        except httpx.TimeoutException as e:
            phase = next((p for cls, p in TIMEOUT_PHASES if isinstance(e, cls)), "read")
            timeout = self.config.connect_timeout if phase == "connect" else self.config.read_timeout
            raise ConnectionTimeoutError(target.host, target.port, timeout, phase)
        except httpx.ProxyError:
            raise ProxyTunnelError(self._proxy.origin if self._proxy else "", target.host_header)
        except httpx.ConnectError as e:
            raise self._classify_connect_error(e)
        except httpx.TransportError as e:
            raise ConnectionError(f"HTTP exchange with {self._uri} failed: {e}")

        return render_response(response)

    def _classify_connect_error(self, error: httpx.ConnectError) -> ConnectionError:
        target = self._target
        message = str(error)
        lowered = message.lower()

        if any(marker in lowered for marker in DNS_FAILURE_MARKERS):
            return DNSResolutionError(target.host)
        if "refused" in lowered:
            return ConnectionRefusedError(target.host, target.port)
        if "certificate" in lowered or "ssl" in lowered:
            return SSLError(target.host, message, message)
        return ConnectionError(f"Connection to {target.host}:{target.port} failed: {message}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def render_response(response: httpx.Response) -> str:
    """Render an httpx response as raw HTTP response text."""
    version = response.http_version or "HTTP/1.1"
    reason = response.reason_phrase or reason_phrase(response.status_code)

    lines = [f"{version} {response.status_code} {reason}".rstrip()]
    for name, value in response.headers.raw:
        lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")

    encoding = response.encoding or "utf-8"
    try:
        body = response.content.decode(encoding, errors="replace")
    except LookupError:
        body = response.content.decode("utf-8", errors="replace")

    return "\r\n".join(lines) + "\r\n\r\n" + body
