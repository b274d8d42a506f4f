"""Core modules for HTTP Hopper."""

from .config import (
    ClientConfig,
    NetworkConfig,
    TransportKind,
)
from .exceptions import (
    HopperException,
    ConnectionError,
    ConnectionRefusedError,
    ConnectionTimeoutError,
    SSLError,
    DNSResolutionError,
    ProxyTunnelError,
    ProtocolError,
    InvalidResponseError,
    RedirectError,
    RedirectLimitExceededError,
    InvalidURIError,
    ConfigurationError,
)
from .models import (
    HttpMethod,
    RequestSpec,
    ResponseResult,
)
from .client import RedirectingClient

__all__ = [
    # Config
    "ClientConfig",
    "NetworkConfig",
    "TransportKind",
    # Exceptions
    "HopperException",
    "ConnectionError",
    "ConnectionRefusedError",
    "ConnectionTimeoutError",
    "SSLError",
    "DNSResolutionError",
    "ProxyTunnelError",
    "ProtocolError",
    "InvalidResponseError",
    "RedirectError",
    "RedirectLimitExceededError",
    "InvalidURIError",
    "ConfigurationError",
    # Models
    "HttpMethod",
    "RequestSpec",
    "ResponseResult",
    # Client
    "RedirectingClient",
]
