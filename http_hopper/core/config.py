"""Configuration classes for HTTP Hopper."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, List, Dict, Any, Union
from enum import Enum

import yaml

from .exceptions import ConfigurationError
from http_hopper.utils.helpers import parse_url


class TransportKind(Enum):
    """Which HTTP transport performs single exchanges."""

    AUTO = "auto"  # Native client library when available
    HTTPX = "httpx"
    SOCKET = "socket"


@dataclass
class NetworkConfig:
    """Network-level configuration."""

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    write_timeout: float = 10.0

    # SSL/TLS settings
    verify_ssl: bool = True
    ssl_cert_path: Optional[str] = None
    ssl_key_path: Optional[str] = None

    # Upstream forward proxy
    proxy_url: Optional[str] = None
    proxy_user: Optional[str] = None
    proxy_password: Optional[str] = None

    # Socket settings
    socket_buffer_size: int = 8192
    max_response_size: int = 10 * 1024 * 1024  # 10MB

    user_agent: str = "http-hopper/1.0"
    transport: TransportKind = TransportKind.AUTO

    def validate(self) -> List[str]:
        """Validate network settings and return list of errors."""
        errors = []

        for name in ("connect_timeout", "read_timeout", "write_timeout"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.socket_buffer_size <= 0:
            errors.append("socket_buffer_size must be positive")

        if self.max_response_size <= 0:
            errors.append("max_response_size must be positive")

        if bool(self.ssl_cert_path) != bool(self.ssl_key_path):
            errors.append("ssl_cert_path and ssl_key_path must be given together")

        if self.proxy_url:
            proxy = parse_url(self.proxy_url)
            if not proxy.host or proxy.scheme not in ("http", "https"):
                errors.append("proxy_url must be an http:// or https:// URL with a host")

        if self.proxy_password and not self.proxy_user:
            errors.append("proxy_password requires proxy_user")

        return errors


@dataclass
class ClientConfig:
    """Main configuration for the redirecting client."""

    # Redirect handling
    follow_redirects: bool = True
    max_hops: int = 10

    # Headers sent with every request
    default_headers: Dict[str, str] = field(default_factory=dict)

    # Sub-configuration
    network: NetworkConfig = field(default_factory=NetworkConfig)

    # Verbosity
    verbose: bool = False
    debug: bool = False
    quiet: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """Build configuration from a plain mapping (e.g. loaded YAML)."""
        data = dict(data or {})
        network_data = dict(data.pop("network", None) or {})

        known = {f.name for f in fields(cls)} - {"network"}
        unknown = sorted(set(data) - known)
        known_network = {f.name for f in fields(NetworkConfig)}
        unknown += sorted(f"network.{k}" for k in set(network_data) - known_network)
        if unknown:
            raise ConfigurationError([f"unknown option: {k}" for k in unknown])

        if "transport" in network_data:
            try:
                network_data["transport"] = TransportKind(network_data["transport"])
            except ValueError:
                raise ConfigurationError(
                    [f"unknown transport: {network_data['transport']}"]
                )

        return cls(network=NetworkConfig(**network_data), **data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ClientConfig":
        """Load configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError([f"{path}: invalid YAML: {e}"])

        if not isinstance(data, dict):
            raise ConfigurationError([f"{path}: top level must be a mapping"])

        return cls.from_dict(data)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.max_hops < 1:
            errors.append("max_hops must be at least 1")

        if self.quiet and self.verbose:
            errors.append("Cannot be both quiet and verbose")

        errors.extend(self.network.validate())

        return errors
