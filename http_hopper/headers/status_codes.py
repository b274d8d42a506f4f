"""HTTP status codes and reason phrases."""

from types import MappingProxyType
from typing import Mapping


STATUS_CODES: Mapping[int, str] = MappingProxyType({
    100: "Continue",
    101: "Switching Protocols",  # 'Upgrade' names the new protocol
    200: "OK",
    201: "Created",  # 'Location' gives URI of new resource
    202: "Accepted",
    203: "Non-Authoritative Information",
    204: "No Content",
    205: "Reset Content",
    206: "Partial Content",
    300: "Multiple Choices",
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    305: "Use Proxy",  # 'Location' is a proxy, not a redirect target
    307: "Temporary Redirect",
    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    407: "Proxy Authentication Required",
    408: "Request Timeout",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    412: "Precondition Failed",
    413: "Request Entity Too Large",
    414: "Request-URI Too Long",
    415: "Unsupported Media Type",
    416: "Requested Range Not Satisfiable",
    417: "Expectation Failed",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
    505: "HTTP Version Not Supported",
})

USE_PROXY = 305


def reason_phrase(code: int) -> str:
    """Get the reason phrase for a status code, or an empty string."""
    return STATUS_CODES.get(code, "")


def status_line(code: int, version: str = "HTTP/1.1") -> str:
    """Build the full status line for a code."""
    reason = reason_phrase(code)
    if reason:
        return f"{version} {code} {reason}"
    return f"{version} {code}"


def is_ok(code: int) -> bool:
    return 200 <= code < 400 and code != USE_PROXY


def is_redirect(code: int) -> bool:
    return 300 <= code < 400 and code != USE_PROXY
