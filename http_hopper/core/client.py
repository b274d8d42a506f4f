"""Redirect-following HTTP client.

Performs the logical request a caller wants:
1. Merge caller headers with the accumulated cookie header
2. Run one exchange through the transport
3. Parse the raw response into a HeaderBlock
4. Follow Location headers up to the hop bound, carrying cookies along
5. Return the final body together with the whole hop chain
"""

import time
from typing import Optional, Dict, Tuple, Union, Mapping

from http_hopper.core.config import ClientConfig
from http_hopper.core.exceptions import ConfigurationError, RedirectLimitExceededError
from http_hopper.core.models import (
    HttpMethod,
    RequestBody,
    RequestSpec,
    ResponseResult,
)
from http_hopper.headers.block import HeaderBlock
from http_hopper.headers.cookies import Cookie
from http_hopper.network.transport import HttpTransport, get_transport
from http_hopper.utils.helpers import FileSpec, Timer, resolve_url
from http_hopper.utils.logging import get_logger, RequestLogger


logger = get_logger(__name__)

# Statuses that turn the request into a GET when followed
SEE_OTHER = 303
POST_TO_GET = (301, 302)


class RedirectingClient:
    """Follows redirects over a single-exchange transport."""

    def __init__(
        self,
        uri: str,
        config: Optional[ClientConfig] = None,
        transport: Optional[HttpTransport] = None,
        request_logger: Optional[RequestLogger] = None,
    ):
        """Initialize the client.

        Args:
            uri: Initial target URI
            config: Client configuration
            transport: Transport to use instead of the configured one
            request_logger: Optional console output for each hop
        """
        self.config = config or ClientConfig()

        errors = self.config.validate()
        if errors:
            raise ConfigurationError(errors)

        self.follow_redirects = self.config.follow_redirects
        self.max_hops = self.config.max_hops
        self.request_logger = request_logger

        if transport is None:
            transport = get_transport(uri, self.config.network)
        elif transport.uri != uri:
            transport.set_uri(uri)
        self.transport = transport

        self._uri = uri
        self._jar: Dict[str, Cookie] = {}

        self.last_headers: Optional[HeaderBlock] = None
        self.last_result: Optional[ResponseResult] = None
        self.last_error = ""

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def uri(self) -> str:
        return self._uri

    def set_uri(self, uri: str) -> bool:
        """Retarget the client; the transport reopens its connection."""
        self._uri = uri
        return self.transport.set_uri(uri)

    def get_headers(self) -> Optional[HeaderBlock]:
        """Header chain of the last request, or None if it never connected."""
        return self.last_headers

    def get_error(self) -> str:
        return self.last_error

    @property
    def cookies(self) -> HeaderBlock:
        """Accumulated cookies as a request-shaped header block."""
        self._drop_expired_cookies()
        block = HeaderBlock()
        if self._jar:
            block["cookie"] = "; ".join(c.to_pair() for c in self._jar.values())
        return block

    def set_cookie(self, name: str, value: str, expires: Optional[float] = None) -> None:
        self._jar[name] = Cookie(name=name, value=value, expires=expires)

    def clear_cookies(self) -> None:
        self._jar.clear()

    def _drop_expired_cookies(self, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        for name in [n for n, c in self._jar.items() if c.is_expired(now)]:
            del self._jar[name]

    def _store_cookies(self, block: HeaderBlock) -> None:
        """Fold a response's Set-Cookie headers into the jar."""
        now = time.time()
        for cookie in block.get_set_cookies(now):
            if cookie.is_expired(now):
                self._jar.pop(cookie.name, None)
            else:
                self._jar[cookie.name] = cookie

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_document(
        self,
        method: Union[str, HttpMethod] = HttpMethod.GET,
        body: RequestBody = None,
        headers: Optional[HeaderBlock] = None,
        files: Optional[Mapping[str, FileSpec]] = None,
    ) -> Tuple[str, bool]:
        """Fetch the current URI, following redirects.

        Returns:
            Tuple of (final body, whether the final response is ok)
        """
        result = self.execute(RequestSpec(
            uri=self._uri,
            method=HttpMethod.parse(method),
            headers=headers,
            body=body,
            files=dict(files or {}),
        ))
        return result.body, result.response_ok

    def get_document(self, headers: Optional[HeaderBlock] = None) -> Tuple[str, bool]:
        return self.request_document(HttpMethod.GET, headers=headers)

    def read_headers(self, headers: Optional[HeaderBlock] = None) -> Optional[HeaderBlock]:
        """HEAD the current URI and return the header chain."""
        self.request_document(HttpMethod.HEAD, headers=headers)
        return self.last_headers

    def execute(self, spec: RequestSpec) -> ResponseResult:
        """Run one logical request described by a RequestSpec."""
        if spec.uri != self._uri:
            self.set_uri(spec.uri)

        method = spec.method
        body = spec.body
        files = spec.files
        drop_body_headers = False

        result = ResponseResult(uri=self._uri)
        chain: Optional[HeaderBlock] = None
        prefix = ""

        self.last_headers = None
        self.last_error = ""

        if self.request_logger:
            self.request_logger.request_start(method.value, self._uri)

        with Timer() as total:
            for hop in range(1, self.max_hops + 1):
                outgoing = self._build_request_headers(spec.headers, drop_body_headers)

                with Timer() as timer:
                    raw = self.transport.request(method, outgoing, body, files)

                if raw is None:
                    return self._fail_transport(result, hop)

                block, document = HeaderBlock.parse_document(raw)
                hop_text = block.to_string()
                self._store_cookies(block)

                block.attach_previous(chain)
                chain = block
                result.hops.append(self._uri)
                result.headers = chain
                result.body = document
                result.raw = prefix + raw

                logger.debug(
                    "hop_complete",
                    hop=hop,
                    method=method.value,
                    uri=self._uri,
                    status=block.status_code,
                )
                if self.request_logger:
                    self.request_logger.hop(hop, self._uri, block.status_code, timer.elapsed)

                if not (self.follow_redirects and block.is_redirect()):
                    break

                location = block.get("location")
                if isinstance(location, list):
                    location = location[-1]
                if not location:
                    break

                if hop == self.max_hops:
                    error = RedirectLimitExceededError(self._uri, self.max_hops)
                    result.redirect_limit_exceeded = True
                    result.error = self.last_error = error.message
                    logger.warning("redirect_limit_exceeded", uri=self._uri, max_hops=self.max_hops)
                    if self.request_logger:
                        self.request_logger.error(error.message)
                    break

                source = self._uri
                target = resolve_url(source, location)
                if not self.set_uri(target):
                    result.error = self.last_error = self.transport.get_error()
                    self.set_uri(source)
                    logger.warning("redirect_target_invalid", uri=source, location=location)
                    if self.request_logger:
                        self.request_logger.error(result.error)
                    break

                logger.debug("redirect_followed", source=source, target=target, status=block.status_code)
                if self.request_logger:
                    self.request_logger.redirect(source, target)

                next_method = self._redirect_method(block.status_code, method)
                if next_method != method:
                    method = next_method
                    body = None
                    files = {}
                    drop_body_headers = True

                prefix += hop_text + "\r\n"

        result.uri = self._uri
        self.last_headers = chain
        self.last_result = result

        if self.request_logger:
            self.request_logger.request_complete(result.status_code, result.response_ok, total.elapsed)

        return result

    def _fail_transport(self, result: ResponseResult, hop: int) -> ResponseResult:
        """Abort the logical request after a transport failure."""
        self.last_error = self.transport.get_error()
        self.last_headers = None

        result.uri = self._uri
        result.headers = None
        result.body = ""
        result.error = self.last_error
        self.last_result = result

        logger.warning("request_failed", hop=hop, uri=self._uri, error=self.last_error)
        if self.request_logger:
            self.request_logger.error(self.last_error, self.transport.last_exception)
        return result

    def _build_request_headers(
        self,
        headers: Optional[HeaderBlock],
        drop_body_headers: bool = False,
    ) -> HeaderBlock:
        """Defaults, then jar cookies, then the caller's own headers."""
        outgoing = HeaderBlock()
        for name, value in self.config.default_headers.items():
            outgoing[name] = value

        jar = self.cookies.get("cookie")
        if jar:
            outgoing["cookie"] = jar

        if headers is not None:
            for key, value in headers.items():
                if key == HeaderBlock.STATUS:
                    continue
                if key == "cookie" and "cookie" in outgoing:
                    for item in (value if isinstance(value, list) else [value]):
                        outgoing.add("cookie", item)
                else:
                    outgoing[key] = list(value) if isinstance(value, list) else value

        if drop_body_headers:
            outgoing.erase("content-type")
            outgoing.erase("content-length")

        return outgoing

    @staticmethod
    def _redirect_method(status: Optional[int], method: HttpMethod) -> HttpMethod:
        if status == SEE_OTHER and method != HttpMethod.HEAD:
            return HttpMethod.GET
        if status in POST_TO_GET and method == HttpMethod.POST:
            return HttpMethod.GET
        return method

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "RedirectingClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
