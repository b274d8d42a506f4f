"""Utility modules for HTTP Hopper."""

from .logging import (
    setup_logging,
    get_logger,
    RequestLogger,
    console,
    LogLevel,
)
from .helpers import (
    parse_url,
    ParsedURL,
    resolve_url,
    collapse_dot_segments,
    build_query_string,
    build_multipart_body,
    encode_body,
    basic_auth,
    Timer,
    safe_decode,
    truncate,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLogger",
    "console",
    "LogLevel",
    # URL utilities
    "parse_url",
    "ParsedURL",
    "resolve_url",
    "collapse_dot_segments",
    # Request building
    "build_query_string",
    "build_multipart_body",
    "encode_body",
    "basic_auth",
    # Misc
    "Timer",
    "safe_decode",
    "truncate",
]
