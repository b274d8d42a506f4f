"""Helper utilities for HTTP Hopper.

Common utilities for URL parsing and resolution, request body encoding,
and timing.
"""

import base64
import mimetypes
import posixpath
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, List, Any, Mapping, Union
from urllib.parse import urlparse, urlsplit, urlunsplit, urlencode


# ============================================================================
# URL Utilities
# ============================================================================


@dataclass
class ParsedURL:
    """Parsed URL components."""
    scheme: str
    host: str
    port: int
    path: str
    query: str
    fragment: str
    use_ssl: bool
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def origin(self) -> str:
        """Get origin (scheme + host + port)."""
        default_port = 443 if self.use_ssl else 80
        if self.port == default_port:
            return f"{self.scheme}://{self.host}"
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def full_path(self) -> str:
        """Get full path including query string."""
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path

    @property
    def url(self) -> str:
        """Reconstruct full URL."""
        return f"{self.origin}{self.full_path}"

    @property
    def host_header(self) -> str:
        """Get Host header value."""
        default_port = 443 if self.use_ssl else 80
        if self.port == default_port:
            return self.host
        return f"{self.host}:{self.port}"


def parse_url(url: str) -> ParsedURL:
    """Parse URL into components.

    Args:
        url: Full URL string

    Returns:
        ParsedURL with all components; ``host`` is empty when the URL
        has no authority part
    """
    parsed = urlparse(url)

    scheme = (parsed.scheme or "http").lower()
    host = parsed.hostname or ""

    try:
        explicit_port = parsed.port
    except ValueError:
        explicit_port = None

    if explicit_port:
        port = explicit_port
    elif scheme == "https":
        port = 443
    else:
        port = 80

    return ParsedURL(
        scheme=scheme,
        host=host,
        port=port,
        path=parsed.path or "/",
        query=parsed.query or "",
        fragment=parsed.fragment or "",
        use_ssl=scheme == "https",
        username=parsed.username,
        password=parsed.password,
    )


def collapse_dot_segments(path: str) -> str:
    """Remove '.' and '..' segments from an absolute path.

    '..' never climbs above the root.
    """
    segments = path.split("/")
    output: List[str] = []

    for segment in segments[1:]:
        if segment == "..":
            if output:
                output.pop()
        elif segment != ".":
            output.append(segment)

    result = "/" + "/".join(output)
    if segments[-1] in (".", "..") and not result.endswith("/"):
        result += "/"
    return result


def resolve_url(base: str, location: str) -> str:
    """Resolve a Location value against the URI that returned it.

    Handles absolute, scheme-relative (//host/path), server-relative
    (/path), query-only (?q=1) and file-relative (../path) targets.
    File-relative targets are resolved against the parent of the base
    path's last segment, where a trailing slash does not count as a
    segment of its own: ``../sibling`` from ``http://host/a/b/`` gives
    ``http://host/sibling``.
    """
    location = location.strip()
    if not location:
        return base

    target = urlsplit(location)
    if target.scheme:
        return location

    source = urlsplit(base)
    scheme = source.scheme or "http"

    if location.startswith("//"):
        return f"{scheme}:{location}"

    if not target.path:
        path = source.path or "/"
        query = target.query if "?" in location else source.query
    elif target.path.startswith("/"):
        path = collapse_dot_segments(target.path)
        query = target.query
    else:
        directory = posixpath.dirname(source.path.rstrip("/")).rstrip("/")
        path = collapse_dot_segments(f"{directory}/{target.path}")
        query = target.query

    return urlunsplit((scheme, source.netloc, path, query, ""))


def request_target(url: ParsedURL, absolute: bool = False) -> str:
    """Request-line target: origin-form, or absolute-form for proxies."""
    if absolute:
        return url.url
    return url.full_path


def basic_auth(user: str, password: Optional[str]) -> str:
    """Build a Basic authorization value."""
    token = base64.b64encode(f"{user}:{password or ''}".encode("utf-8"))
    return "Basic " + token.decode("ascii")


# ============================================================================
# Request Body Utilities
# ============================================================================


FileSpec = Union[bytes, str, Path, Tuple[str, bytes], Tuple[str, bytes, str]]


def _flatten_fields(data: Any, prefix: Optional[str] = None) -> List[Tuple[str, str]]:
    """Flatten nested form data into bracketed key/value pairs."""
    pairs: List[Tuple[str, str]] = []

    if isinstance(data, Mapping):
        items = list(data.items())
    elif isinstance(data, (list, tuple)):
        items = list(enumerate(data))
    else:
        if prefix is not None and data is not None:
            if isinstance(data, bool):
                data = "1" if data else "0"
            pairs.append((prefix, str(data)))
        return pairs

    for key, value in items:
        name = str(key) if prefix is None else f"{prefix}[{key}]"
        pairs.extend(_flatten_fields(value, name))

    return pairs


def build_query_string(data: Mapping[str, Any]) -> str:
    """Form-encode a mapping.

    Nested mappings and sequences use bracket notation:
    ``{"a": [1, 2]}`` becomes ``a%5B0%5D=1&a%5B1%5D=2``.
    """
    return urlencode(_flatten_fields(data))


def generate_boundary() -> str:
    """Generate a random multipart boundary."""
    return f"----HopperFormBoundary{secrets.token_hex(8)}"


def _load_file(name: str, spec: FileSpec) -> Tuple[str, bytes, str]:
    if isinstance(spec, (str, Path)):
        path = Path(spec)
        filename, content = path.name, path.read_bytes()
        content_type = None
    elif isinstance(spec, bytes):
        filename, content, content_type = name, spec, None
    elif len(spec) == 2:
        filename, content = spec  # type: ignore[misc]
        content_type = None
    else:
        filename, content, content_type = spec  # type: ignore[misc]

    if content_type is None:
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return filename, content, content_type


def build_multipart_body(
    fields: Optional[Mapping[str, Any]],
    files: Mapping[str, FileSpec],
    boundary: Optional[str] = None,
) -> Tuple[bytes, str]:
    """Encode form fields and file attachments as multipart/form-data.

    Returns:
        Tuple of (body, content_type)
    """
    boundary = boundary or generate_boundary()
    delimiter = f"--{boundary}\r\n".encode("ascii")
    parts: List[bytes] = []

    for name, value in _flatten_fields(fields or {}):
        parts.append(delimiter)
        parts.append(
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode("utf-8")
        )
        parts.append(value.encode("utf-8") + b"\r\n")

    for name, spec in files.items():
        filename, content, content_type = _load_file(name, spec)
        parts.append(delimiter)
        parts.append(
            (
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f"Content-Type: {content_type}\r\n\r\n"
            ).encode("utf-8")
        )
        parts.append(content + b"\r\n")

    parts.append(f"--{boundary}--\r\n".encode("ascii"))
    return b"".join(parts), f"multipart/form-data; boundary={boundary}"


def encode_body(
    body: Union[bytes, str, Mapping[str, Any], None],
    files: Optional[Mapping[str, FileSpec]] = None,
) -> Tuple[bytes, Optional[str]]:
    """Encode a request body.

    Returns:
        Tuple of (body_bytes, content_type). ``content_type`` is None for
        raw bodies, which are sent verbatim.
    """
    if files:
        if body is not None and not isinstance(body, Mapping):
            raise TypeError("File uploads need form fields as a mapping")
        return build_multipart_body(body, files)

    if body is None:
        return b"", None

    if isinstance(body, Mapping):
        return build_query_string(body).encode("ascii"), "application/x-www-form-urlencoded"

    if isinstance(body, str):
        return body.encode("utf-8"), None

    return bytes(body), None


# ============================================================================
# Timing Utilities
# ============================================================================


class Timer:
    """Context manager for timing operations."""

    def __init__(self):
        self.start_time: float = 0.0
        self.end_time: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.monotonic()
        return self

    def __exit__(self, *args) -> None:
        self.end_time = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        if self.end_time:
            return self.end_time - self.start_time
        return time.monotonic() - self.start_time


# ============================================================================
# String Utilities
# ============================================================================


def safe_decode(data: bytes, encoding: str = "utf-8") -> str:
    """Safely decode bytes to string."""
    return data.decode(encoding, errors="replace")


def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to maximum length."""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
