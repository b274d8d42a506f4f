"""Custom exceptions for HTTP Hopper."""

from typing import Optional, Any, Dict, List


class HopperException(Exception):
    """Base exception for all HTTP Hopper errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ============================================================================
# Connection Errors
# ============================================================================


class ConnectionError(HopperException):
    """Base class for transport-level failures."""

    pass


class ConnectionRefusedError(ConnectionError):
    """Connection was refused by the target."""

    def __init__(self, host: str, port: int, message: Optional[str] = None):
        super().__init__(
            message or f"Connection refused to {host}:{port}",
            {"host": host, "port": port},
        )
        self.host = host
        self.port = port


class ConnectionTimeoutError(ConnectionError):
    """Connection timed out."""

    def __init__(self, host: str, port: int, timeout: float, phase: str = "connect"):
        super().__init__(
            f"Connection to {host}:{port} timed out after {timeout}s during {phase}",
            {"host": host, "port": port, "timeout": timeout, "phase": phase},
        )
        self.host = host
        self.port = port
        self.timeout = timeout
        self.phase = phase


class SSLError(ConnectionError):
    """SSL/TLS handshake or certificate error."""

    def __init__(self, host: str, message: str, ssl_error: Optional[str] = None):
        super().__init__(
            f"SSL error connecting to {host}: {message}",
            {"host": host, "ssl_error": ssl_error},
        )
        self.host = host
        self.ssl_error = ssl_error


class DNSResolutionError(ConnectionError):
    """DNS resolution failed."""

    def __init__(self, hostname: str):
        super().__init__(
            f"Failed to resolve hostname: {hostname}", {"hostname": hostname}
        )
        self.hostname = hostname


class ProxyTunnelError(ConnectionError):
    """Upstream proxy refused to open a CONNECT tunnel."""

    def __init__(self, proxy: str, target: str, status_code: Optional[int] = None):
        super().__init__(
            f"Proxy {proxy} could not tunnel to {target}",
            {"proxy": proxy, "target": target, "status_code": status_code},
        )
        self.proxy = proxy
        self.target = target
        self.status_code = status_code


# ============================================================================
# Protocol Errors
# ============================================================================


class ProtocolError(HopperException):
    """Base class for protocol-related errors."""

    pass


class InvalidResponseError(ProtocolError):
    """Received an invalid or malformed response."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(
            message,
            {"raw_response_preview": raw_response[:500] if raw_response else None},
        )
        self.raw_response = raw_response


# ============================================================================
# Redirect Errors
# ============================================================================


class RedirectError(HopperException):
    """Base class for redirect-handling errors."""

    pass


class RedirectLimitExceededError(RedirectError):
    """A logical request needed more exchanges than the hop bound allows."""

    def __init__(self, uri: str, max_hops: int):
        super().__init__(
            f"Redirect limit of {max_hops} hops exceeded at {uri}",
            {"uri": uri, "max_hops": max_hops},
        )
        self.uri = uri
        self.max_hops = max_hops


class InvalidURIError(RedirectError):
    """A target or Location URI could not be used."""

    def __init__(self, uri: str, reason: str = "Badly formatted URI string"):
        super().__init__(f"{reason}: {uri!r}", {"uri": uri})
        self.uri = uri
        self.reason = reason


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(HopperException):
    """Invalid or missing configuration."""

    def __init__(self, errors: List[str]):
        super().__init__(
            f"Configuration invalid: {'; '.join(errors)}", {"errors": errors}
        )
        self.errors = errors
