"""Raw socket HTTP/1.1 transport.

Speaks HTTP/1.1 directly over a TCP (optionally TLS) socket, for
environments where the native client library is unwanted or where the
exact bytes on the wire matter. Every request is sent with
``Connection: close`` and the response is read until it is complete or
the server closes the connection.
"""

import builtins
import re
import socket
import ssl
import time
from typing import Optional, Tuple

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
from http_hopper.network.transport import HttpTransport
from http_hopper.utils.helpers import ParsedURL, request_target, safe_decode


NO_BODY_STATUSES = (204, 304)
INTERIM_STATUS_RE = re.compile(rb"HTTP/\d(?:\.\d)? 1(?!01)\d\d ")


class SocketTransport(HttpTransport):
    """HTTP transport over raw sockets."""

    name = "socket"

    def __init__(self, uri: str, config: Optional[NetworkConfig] = None):
        self._socket: Optional[socket.socket] = None
        self._connected_host: Optional[str] = None
        self._connected_port: Optional[int] = None
        self._is_ssl: bool = False
        super().__init__(uri, config)

    def _create_ssl_context(self, verify: bool = True) -> ssl.SSLContext:
        """Create SSL context for HTTPS connections."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

        if verify:
            context.check_hostname = True
            context.verify_mode = ssl.CERT_REQUIRED
            context.load_default_certs()
        else:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        context.set_alpn_protocols(["http/1.1"])

        if self.config.ssl_cert_path and self.config.ssl_key_path:
            context.load_cert_chain(self.config.ssl_cert_path, self.config.ssl_key_path)

        return context

    def connect(self, host: str, port: int) -> None:
        """Open a TCP connection, closing any previous one."""
        self.close()

        try:
            addr_info = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror:
            raise DNSResolutionError(host)
        if not addr_info:
            raise DNSResolutionError(host)

        family, socktype, proto, _, sockaddr = addr_info[0]

        sock = socket.socket(family, socktype, proto)
        sock.settimeout(self.config.connect_timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        try:
            sock.connect(sockaddr)
        except socket.timeout:
            sock.close()
            raise ConnectionTimeoutError(host, port, self.config.connect_timeout, "connect")
        except builtins.ConnectionRefusedError:
            sock.close()
            raise ConnectionRefusedError(host, port)
        except OSError as e:
            sock.close()
            raise ConnectionError(f"Connection to {host}:{port} failed: {e}")

        self._socket = sock
        self._connected_host = host
        self._connected_port = port

    def _wrap_ssl(self, hostname: str) -> None:
        """Upgrade the open connection to TLS."""
        context = self._create_ssl_context(self.config.verify_ssl)
        try:
            self._socket = context.wrap_socket(self._socket, server_hostname=hostname)
        except ssl.CertificateError as e:
            self.close()
            raise SSLError(hostname, f"Certificate verification failed: {e}", str(e))
        except ssl.SSLError as e:
            self.close()
            raise SSLError(hostname, str(e), str(e))
        except socket.timeout:
            self.close()
            raise ConnectionTimeoutError(hostname, 443, self.config.connect_timeout, "tls")
        self._is_ssl = True

    def _open_tunnel(self, target: ParsedURL) -> None:
        """Ask the forward proxy for a CONNECT tunnel to the target."""
        authority = f"{target.host}:{target.port}"
        request = HeaderBlock()
        request.set_request_line("CONNECT", authority)
        request["host"] = authority
        if self.proxy_authorization:
            request["proxy-authorization"] = self.proxy_authorization

        self.send_raw(request.to_string().encode("utf-8") + b"\r\n")
        raw, _ = self.receive(headers_only=True)

        reply, _ = HeaderBlock.parse_document(safe_decode(raw))
        if reply.status_code != 200:
            raise ProxyTunnelError(self._proxy.origin, authority, reply.status_code)

    def send_raw(self, data: bytes, timeout: Optional[float] = None) -> None:
        """Send raw bytes over the connection."""
        if not self._socket:
            raise ConnectionError("Not connected")

        timeout = timeout or self.config.write_timeout
        self._socket.settimeout(timeout)

        try:
            self._socket.sendall(data)
        except socket.timeout:
            raise ConnectionTimeoutError(
                self._connected_host or "unknown",
                self._connected_port or 0,
                timeout,
                "write",
            )
        except OSError as e:
            raise ConnectionError(f"Could not send request data: {e}")

    def receive(
        self,
        timeout: Optional[float] = None,
        max_size: Optional[int] = None,
        head: bool = False,
        headers_only: bool = False,
    ) -> Tuple[bytes, float]:
        """Receive a response with timing information.

        Returns:
            Tuple of (received_data, response_time)

        Raises:
            ConnectionError: when the response is cut short or too large
        """
        if not self._socket:
            raise ConnectionError("Not connected")

        timeout = timeout or self.config.read_timeout
        max_size = max_size or self.config.max_response_size

        self._socket.settimeout(timeout)

        start_time = time.time()
        chunks = []
        total_size = 0

        while True:
            try:
                chunk = self._socket.recv(self.config.socket_buffer_size)
            except socket.timeout:
                raise ConnectionTimeoutError(
                    self._connected_host or "unknown",
                    self._connected_port or 0,
                    timeout,
                    "read",
                )
            except ssl.SSLEOFError:
                # TLS peer closed without close_notify
                chunk = b""
            except OSError as e:
                raise ConnectionError(f"Receive failed: {e}")

            if not chunk:
                # Connection closed; only unframed responses may end this way
                data = b"".join(chunks)
                if response_framing(data, head=head) is False:
                    raise ConnectionError(
                        f"Connection closed after {total_size} bytes of an incomplete response"
                    )
                break
            chunks.append(chunk)
            total_size += len(chunk)

            if total_size > max_size:
                raise ConnectionError(
                    f"Response exceeds max_response_size ({max_size} bytes)",
                    {"received": total_size},
                )

            data = b"".join(chunks)
            if headers_only and b"\r\n\r\n" in data:
                break
            if is_response_complete(data, head=head):
                break

        return b"".join(chunks), time.time() - start_time

    def _perform(self, method: str, headers: HeaderBlock, payload: bytes) -> str:
        target = self._target
        via_proxy = self._proxy is not None

        if via_proxy:
            self.connect(self._proxy.host, self._proxy.port)
        else:
            self.connect(target.host, target.port)

        try:
            if target.use_ssl:
                if via_proxy:
                    self._open_tunnel(target)
                self._wrap_ssl(target.host)

            # Plain-http requests through a proxy use the absolute form
            absolute = via_proxy and not target.use_ssl
            if "host" not in headers:
                headers["host"] = target.host_header
            headers.set_request_line(method, request_target(target, absolute))
            if absolute and self.proxy_authorization:
                headers["proxy-authorization"] = self.proxy_authorization
            headers["connection"] = "close"

            self.send_raw(build_raw_request(headers, payload))
            raw, _ = self.receive(head=method == "HEAD")
        except ConnectionError:
            self.close()
            raise

        if not raw:
            self.close()
            raise ConnectionError(f"Empty reply from {target.host_header}")

        return safe_decode(decode_transfer_encoding(raw))

    def close(self) -> None:
        """Close the connection."""
        if self._socket:
            try:
                self._socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._socket.close()
            self._socket = None

        self._connected_host = None
        self._connected_port = None
        self._is_ssl = False

    def is_connected(self) -> bool:
        """Check if connection is still open."""
        return self._socket is not None


def build_raw_request(headers: HeaderBlock, body: Optional[bytes] = None) -> bytes:
    """Serialize a request-shaped header block and body to wire bytes."""
    request = headers.to_string(include_previous=False).encode("utf-8") + b"\r\n"
    if body:
        return request + body
    return request


def _skip_interim(data: bytes) -> bytes:
    """Drop leading 1xx interim responses."""
    while INTERIM_STATUS_RE.match(data):
        if b"\r\n\r\n" not in data:
            break
        data = data[data.index(b"\r\n\r\n") + 4:]
    return data


def response_framing(data: bytes, head: bool = False) -> Optional[bool]:
    """Check received data against the response's own framing.

    Returns:
        True when the response is complete, False when its framing says
        more is due, None when there is no framing information and only
        the server closing the connection can end it
    """
    data = _skip_interim(data)
    if b"\r\n\r\n" not in data:
        return None

    header_end = data.index(b"\r\n\r\n") + 4
    header_text = data[:header_end].decode("utf-8", errors="replace").lower()
    body = data[header_end:]

    if head:
        return True

    parts = header_text.split(" ", 2)
    if len(parts) > 1 and parts[1].isdigit() and int(parts[1]) in NO_BODY_STATUSES:
        return True

    for line in header_text.split("\r\n"):
        if line.startswith("content-length:"):
            try:
                return len(body) >= int(line.split(":", 1)[1].strip())
            except ValueError:
                break

    if "transfer-encoding: chunked" in header_text:
        return body.endswith(b"0\r\n\r\n")

    return None


def is_response_complete(data: bytes, head: bool = False) -> bool:
    """Check if we've received a complete HTTP response."""
    return response_framing(data, head=head) is True


def decode_chunked(body: bytes) -> bytes:
    """Decode a chunked transfer-encoded body.

    Trailing garbage or a truncated final chunk is kept as-is.
    """
    output = []
    pos = 0
    while True:
        line_end = body.find(b"\r\n", pos)
        if line_end < 0:
            output.append(body[pos:])
            break
        size_text = body[pos:line_end].split(b";", 1)[0].strip()
        try:
            size = int(size_text, 16)
        except ValueError:
            output.append(body[pos:])
            break
        if size == 0:
            break
        start = line_end + 2
        output.append(body[start:start + size])
        pos = start + size + 2
    return b"".join(output)


def decode_transfer_encoding(raw: bytes) -> bytes:
    """De-chunk the final response body, leaving the headers untouched."""
    prefix_length = len(raw) - len(_skip_interim(raw))
    data = raw[prefix_length:]
    if b"\r\n\r\n" not in data:
        return raw

    header_end = data.index(b"\r\n\r\n") + 4
    header_text = data[:header_end].decode("utf-8", errors="replace").lower()
    if "transfer-encoding: chunked" not in header_text:
        return raw

    return raw[:prefix_length + header_end] + decode_chunked(data[header_end:])
