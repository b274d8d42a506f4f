"""Header block, cookie and status code modules."""

from .status_codes import (
    STATUS_CODES,
    reason_phrase,
    status_line,
    is_ok,
    is_redirect,
)
from .cookies import (
    Cookie,
    parse_set_cookie,
    parse_cookie_header,
    merge_cookie_values,
)
from .block import HeaderBlock, display_name

__all__ = [
    # Status codes
    "STATUS_CODES",
    "reason_phrase",
    "status_line",
    "is_ok",
    "is_redirect",
    # Cookies
    "Cookie",
    "parse_set_cookie",
    "parse_cookie_header",
    "merge_cookie_values",
    # Header blocks
    "HeaderBlock",
    "display_name",
]
