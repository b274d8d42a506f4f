"""Network transports for HTTP Hopper."""

from .transport import HttpTransport, get_transport
from .raw_socket import (
    SocketTransport,
    build_raw_request,
    decode_chunked,
    is_response_complete,
    response_framing,
)
from .httpx_transport import HttpxTransport, render_response

__all__ = [
    # Base
    "HttpTransport",
    "get_transport",
    # Raw sockets
    "SocketTransport",
    "build_raw_request",
    "decode_chunked",
    "is_response_complete",
    "response_framing",
    # httpx
    "HttpxTransport",
    "render_response",
]
