"""Single-exchange HTTP transports.

A transport performs exactly one request/response exchange against its
current target URI and returns the unparsed response text (status line,
headers, blank line, body). Redirects are never followed at this layer.

Transport failures (DNS, refused connections, timeouts, broken writes)
are raised internally as ``ConnectionError`` subclasses and reported to
callers as a ``None`` return value plus ``get_error()`` text. HTTP error
statuses are ordinary responses.
"""

from abc import ABC, abstractmethod
from typing import Optional, Mapping, Union, Any

from http_hopper.core.config import NetworkConfig, TransportKind
from http_hopper.core.exceptions import (
    HopperException,
    ConnectionError,
    InvalidURIError,
)
from http_hopper.core.models import HttpMethod, RequestBody
from http_hopper.headers.block import HeaderBlock
from http_hopper.utils.helpers import (
    ParsedURL,
    FileSpec,
    parse_url,
    basic_auth,
    encode_body,
    Timer,
)
from http_hopper.utils.logging import get_logger


logger = get_logger(__name__)


class HttpTransport(ABC):
    """Base class for one-exchange-per-call HTTP transports."""

    name = "base"

    def __init__(self, uri: str, config: Optional[NetworkConfig] = None):
        self.config = config or NetworkConfig()
        self._uri = ""
        self._target: Optional[ParsedURL] = None
        self._proxy: Optional[ParsedURL] = None
        self._proxy_user: Optional[str] = None
        self._proxy_password: Optional[str] = None
        self._proxy_error: Optional[InvalidURIError] = None
        self.last_error = ""
        self.last_exception: Optional[HopperException] = None

        if self.config.proxy_url:
            self.set_http_proxy(
                self.config.proxy_url,
                self.config.proxy_user,
                self.config.proxy_password,
            )
        self.set_uri(uri)

    # ------------------------------------------------------------------
    # Connection parameters
    # ------------------------------------------------------------------

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def target(self) -> Optional[ParsedURL]:
        return self._target

    def set_uri(self, uri: str) -> bool:
        """Point the transport at a new URI.

        Any open connection is torn down first; timeouts and proxy
        settings are kept.
        """
        target = parse_url(uri) if uri else None
        if target is None or not target.host or target.scheme not in ("http", "https"):
            self.close()
            self._uri = uri
            self._target = None
            self._record_error(InvalidURIError(uri))
            return False

        self.close()
        self._uri = uri
        self._target = target
        return True

    def set_http_proxy(
        self,
        uri: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> bool:
        """Route requests through an upstream forward proxy."""
        proxy = parse_url(uri)
        if not proxy.host or proxy.scheme not in ("http", "https"):
            # Requests fail until a usable proxy is set or the proxy is cleared
            self.close()
            self._proxy = None
            self._proxy_error = InvalidURIError(uri, "Badly formatted proxy URI")
            self._record_error(self._proxy_error)
            return False

        self.close()
        self._proxy = proxy
        self._proxy_error = None
        self._proxy_user = user if user is not None else proxy.username
        self._proxy_password = password if password is not None else proxy.password
        return True

    def clear_http_proxy(self) -> None:
        self.close()
        self._proxy = None
        self._proxy_error = None
        self._proxy_user = None
        self._proxy_password = None

    @property
    def proxy(self) -> Optional[ParsedURL]:
        return self._proxy

    @property
    def proxy_authorization(self) -> Optional[str]:
        if self._proxy is None or not self._proxy_user:
            return None
        return basic_auth(self._proxy_user, self._proxy_password)

    def get_error(self) -> str:
        """Last transport-level error message, or an empty string."""
        return self.last_error

    # ------------------------------------------------------------------
    # HTTP verbs
    # ------------------------------------------------------------------

    def get(self, headers: Optional[HeaderBlock] = None) -> Optional[str]:
        return self.request(HttpMethod.GET, headers)

    def head(self, headers: Optional[HeaderBlock] = None) -> Optional[str]:
        return self.request(HttpMethod.HEAD, headers)

    def put(self, body: RequestBody, headers: Optional[HeaderBlock] = None) -> Optional[str]:
        return self.request(HttpMethod.PUT, headers, body)

    def delete(
        self,
        headers: Optional[HeaderBlock] = None,
        body: RequestBody = None,
    ) -> Optional[str]:
        return self.request(HttpMethod.DELETE, headers, body)

    def post(
        self,
        data: RequestBody,
        headers: Optional[HeaderBlock] = None,
        files: Optional[Mapping[str, FileSpec]] = None,
    ) -> Optional[str]:
        """POST form fields (mapping), a raw body, or a multipart upload."""
        return self.request(HttpMethod.POST, headers, data, files)

    def send_response(
        self,
        headers: Optional[HeaderBlock],
        body: RequestBody = None,
        method: Union[str, HttpMethod] = HttpMethod.GET,
    ) -> Optional[str]:
        """Send a prepared header block and body with the given verb."""
        return self.request(method, headers, body)

    def request(
        self,
        method: Union[str, HttpMethod],
        headers: Optional[HeaderBlock] = None,
        body: RequestBody = None,
        files: Optional[Mapping[str, FileSpec]] = None,
    ) -> Optional[str]:
        """Perform one exchange.

        Returns:
            Raw response text, or None on transport failure
        """
        method = HttpMethod.parse(method)

        if self._proxy_error is not None:
            self._record_error(self._proxy_error)
            return None

        if self._target is None:
            if not self.last_error:
                self._record_error(InvalidURIError(self._uri, "No target URI"))
            return None

        payload, content_type = encode_body(body, files)
        outgoing = self._prepare_headers(method, headers, payload, content_type)

        try:
            with Timer() as timer:
                raw = self._perform(method.value, outgoing, payload)
        except ConnectionError as e:
            self._record_error(e)
            logger.warning(
                "transport_failed",
                transport=self.name,
                method=method.value,
                uri=self._uri,
                error=str(e),
            )
            return None

        self.last_error = ""
        self.last_exception = None
        logger.debug(
            "exchange_complete",
            transport=self.name,
            method=method.value,
            uri=self._uri,
            response_size=len(raw),
            elapsed=round(timer.elapsed, 4),
        )
        return raw

    def _prepare_headers(
        self,
        method: HttpMethod,
        headers: Optional[HeaderBlock],
        payload: bytes,
        content_type: Optional[str],
    ) -> HeaderBlock:
        """Copy the caller's current header block and fill in defaults."""
        outgoing = HeaderBlock()
        if headers is not None:
            outgoing = headers.copy()
            outgoing.previous = None
        if HeaderBlock.STATUS in outgoing:
            del outgoing[HeaderBlock.STATUS]

        if "user-agent" not in outgoing and self.config.user_agent:
            outgoing["user-agent"] = self.config.user_agent
        if content_type and "content-type" not in outgoing:
            outgoing["content-type"] = content_type
        if payload or method in (HttpMethod.POST, HttpMethod.PUT):
            outgoing["content-length"] = str(len(payload))

        return outgoing

    def _record_error(self, error: HopperException) -> None:
        self.last_exception = error
        self.last_error = error.message

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def _perform(self, method: str, headers: HeaderBlock, payload: bytes) -> str:
        """Run one exchange and return the raw response text.

        Raises:
            ConnectionError: on any transport-level failure
        """

    def close(self) -> None:
        """Release the underlying connection handle."""

    def reset(self) -> None:
        """Tear down the handle and forget the last error."""
        self.close()
        self.last_error = ""
        self.last_exception = None

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def get_transport(
    uri: str,
    config: Optional[NetworkConfig] = None,
    **kwargs: Any,
) -> HttpTransport:
    """Create the transport selected by ``config.transport``.

    ``auto`` uses the native client library (httpx); ``socket`` speaks
    HTTP/1.1 over raw sockets.
    """
    config = config or NetworkConfig()

    if config.transport == TransportKind.SOCKET:
        from http_hopper.network.raw_socket import SocketTransport
        return SocketTransport(uri, config, **kwargs)

    from http_hopper.network.httpx_transport import HttpxTransport
    return HttpxTransport(uri, config, **kwargs)
