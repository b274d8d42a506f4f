"""Cookie records and the Set-Cookie / Cookie header grammar.

Server-to-client:  Set-Cookie: name=value; attr=val; flag
Client-to-server:  Cookie: name1=value1; name2=value2
"""

import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, List


RECOGNIZED_ATTRIBUTES = frozenset({
    "domain",
    "expires",
    "max-age",
    "path",
    "port",
    "secure",
    "version",
    "comment",
    "commenturl",
    "discard",
    "httponly",
    "samesite",
})

# Upper bound on Max-Age, in seconds (400 days)
MAX_AGE_LIMIT = 400 * 24 * 60 * 60


@dataclass
class Cookie:
    """A single cookie as sent by a server or client."""

    name: str
    value: str
    domain: Optional[str] = None
    path: Optional[str] = None
    expires: Optional[float] = None  # Absolute epoch seconds
    secure: bool = False
    http_only: bool = False
    attributes: Dict[str, str] = field(default_factory=dict)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Session cookies (no expiry) never expire here."""
        if self.expires is None:
            return False
        now = time.time() if now is None else now
        return self.expires <= now

    def to_pair(self) -> str:
        return f"{self.name}={self.value}"


def _split_pair(part: str):
    name, sep, value = part.partition("=")
    return name.strip(), value.strip() if sep else None


def _parse_expires(value: str) -> Optional[float]:
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def parse_set_cookie(header_value: str, now: Optional[float] = None) -> Optional[Cookie]:
    """Parse one Set-Cookie header value.

    Max-Age is normalized to an absolute ``expires`` timestamp
    (``now + max_age``) and wins over an Expires attribute.
    Max-Age is clamped to the range 0 to ``MAX_AGE_LIMIT``.

    Returns:
        Cookie, or None when the value carries no cookie name
    """
    parts = header_value.split(";")
    name, value = _split_pair(parts[0])
    if not name:
        return None

    cookie = Cookie(name=name, value=value or "")
    now = time.time() if now is None else now
    max_age: Optional[float] = None

    for part in parts[1:]:
        attr, attr_value = _split_pair(part)
        attr = attr.lower()
        if attr not in RECOGNIZED_ATTRIBUTES:
            continue

        if attr == "domain":
            cookie.domain = attr_value
        elif attr == "path":
            cookie.path = attr_value
        elif attr == "secure":
            cookie.secure = True
        elif attr == "httponly":
            cookie.http_only = True
        elif attr == "expires":
            if attr_value and max_age is None:
                cookie.expires = _parse_expires(attr_value)
        elif attr == "max-age":
            try:
                max_age = float(max(min(int(attr_value or ""), MAX_AGE_LIMIT), 0))
            except ValueError:
                continue
            cookie.expires = now + max_age
        else:
            cookie.attributes[attr] = attr_value or ""

    return cookie


def parse_cookie_header(header_value: str) -> List[Cookie]:
    """Parse a client Cookie header into records."""
    cookies = []
    for part in header_value.split(";"):
        name, value = _split_pair(part)
        if name:
            cookies.append(Cookie(name=name, value=value or ""))
    return cookies


def merge_cookie_values(existing: str, new: str) -> str:
    """Union two Cookie header values keyed on cookie name.

    Later values replace earlier ones with the same name; first-seen
    order is kept.
    """
    merged: Dict[str, str] = {}
    for header_value in (existing, new):
        for cookie in parse_cookie_header(header_value):
            merged[cookie.name] = cookie.value
    return "; ".join(f"{k}={v}" for k, v in merged.items())
