"""Tests for configuration classes."""

import pytest

from http_hopper.core.config import ClientConfig, NetworkConfig, TransportKind
from http_hopper.core.exceptions import ConfigurationError


class TestNetworkConfig:
    """Tests for network configuration."""

    def test_defaults_are_valid(self):
        config = NetworkConfig()

        assert config.validate() == []
        assert config.transport == TransportKind.AUTO
        assert config.verify_ssl

    def test_non_positive_timeout(self):
        errors = NetworkConfig(read_timeout=0).validate()

        assert "read_timeout must be positive" in errors

    def test_cert_needs_key(self):
        errors = NetworkConfig(ssl_cert_path="client.pem").validate()

        assert len(errors) == 1

    def test_proxy_password_needs_user(self):
        errors = NetworkConfig(proxy_url="http://proxy:3128", proxy_password="x").validate()

        assert "proxy_password requires proxy_user" in errors

    def test_proxy_url_needs_scheme_and_host(self):
        assert NetworkConfig(proxy_url="http://proxy.internal:3128").validate() == []
        assert NetworkConfig(proxy_url="proxy.internal:3128").validate() == [
            "proxy_url must be an http:// or https:// URL with a host"
        ]
        assert NetworkConfig(proxy_url="socks5://proxy.internal:1080").validate()


class TestClientConfig:
    """Tests for client configuration."""

    def test_defaults(self):
        config = ClientConfig()

        assert config.follow_redirects
        assert config.max_hops == 10
        assert config.validate() == []

    def test_hop_bound_must_be_positive(self):
        assert "max_hops must be at least 1" in ClientConfig(max_hops=0).validate()

    def test_quiet_and_verbose_conflict(self):
        assert ClientConfig(quiet=True, verbose=True).validate()

    def test_network_errors_are_included(self):
        config = ClientConfig(network=NetworkConfig(connect_timeout=-1))

        assert "connect_timeout must be positive" in config.validate()

    def test_from_dict(self):
        config = ClientConfig.from_dict({
            "max_hops": 3,
            "follow_redirects": False,
            "default_headers": {"Accept": "text/html"},
            "network": {"transport": "socket", "read_timeout": 5},
        })

        assert config.max_hops == 3
        assert not config.follow_redirects
        assert config.default_headers == {"Accept": "text/html"}
        assert config.network.transport == TransportKind.SOCKET
        assert config.network.read_timeout == 5

    def test_from_dict_rejects_unknown_options(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig.from_dict({"max_hop": 3, "network": {"timeout": 1}})

        assert exc_info.value.errors == ["unknown option: max_hop", "unknown option: network.timeout"]

    def test_from_dict_rejects_unknown_transport(self):
        with pytest.raises(ConfigurationError):
            ClientConfig.from_dict({"network": {"transport": "carrier-pigeon"}})

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "hopper.yaml"
        path.write_text(
            "max_hops: 4\n"
            "network:\n"
            "  transport: httpx\n"
            "  proxy_url: http://proxy.local:3128\n",
            encoding="utf-8",
        )

        config = ClientConfig.from_yaml(path)

        assert config.max_hops == 4
        assert config.network.transport == TransportKind.HTTPX
        assert config.network.proxy_url == "http://proxy.local:3128"

    def test_from_yaml_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert ClientConfig.from_yaml(path).max_hops == 10

    def test_from_yaml_requires_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ClientConfig.from_yaml(path)

    def test_from_yaml_invalid_syntax(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("max_hops: [1, 2\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ClientConfig.from_yaml(path)
