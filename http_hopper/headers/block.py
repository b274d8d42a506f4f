"""Stacked HTTP header blocks.

A HeaderBlock holds one set of header fields plus an optional status code
(responses) or request line (requests) in the reserved slot
``HeaderBlock.STATUS``. Header names are stored lowercased; a name that
occurs more than once maps to a list of values.

Blocks produced by earlier hops of a redirected request hang off the
``previous`` attribute, so the outermost block is always the newest hop:

    >>> block, body = HeaderBlock.parse_document(
    ...     "HTTP/1.1 302 Found\\r\\nLocation: /next\\r\\n\\r\\n"
    ...     "HTTP/1.1 200 OK\\r\\nContent-Type: text/plain\\r\\n\\r\\nhello"
    ... )
    >>> block.status_code, block.previous.status_code, body
    (200, 302, 'hello')
"""

import re
import time
from types import MappingProxyType
from typing import (
    Optional, Union, List, Dict, Tuple, Iterator, Iterable, Mapping, Callable,
)

from http_hopper.headers import status_codes
from http_hopper.headers.cookies import (
    Cookie,
    parse_set_cookie,
    parse_cookie_header,
    merge_cookie_values,
)
from http_hopper.utils.logging import get_logger


logger = get_logger(__name__)

HeaderKey = Union[int, str]
HeaderValue = Union[int, str, List[str]]

LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
STATUS_LINE_RE = re.compile(r"^HTTP/(\d+(?:\.\d+)?)\s+(\d{3})(?:\s+(.*))?$", re.IGNORECASE)
REQUEST_LINE_RE = re.compile(r"^([A-Za-z]+)\s+(\S+)\s+(HTTP/\d+(?:\.\d+)?)$", re.IGNORECASE)

# Headers whose repeats are folded into one value instead of a list
MERGE_STRATEGIES: Mapping[str, Callable[[str, str], str]] = MappingProxyType({
    "cookie": merge_cookie_values,
})


def is_start_line(line: str) -> bool:
    """Check whether a line is a status line or a request line."""
    line = line.strip()
    return bool(STATUS_LINE_RE.match(line) or REQUEST_LINE_RE.match(line))


def display_name(name: str) -> str:
    """Capitalize a lowercased header name: content-type -> Content-Type."""
    return "-".join(part[:1].upper() + part[1:] for part in name.split("-"))


def _iter_lines(text: str) -> Iterator[Tuple[str, int]]:
    """Yield (line, offset of the following line) pairs."""
    pos = 0
    for match in LINE_BREAK_RE.finditer(text):
        yield text[pos:match.start()], match.end()
        pos = match.end()
    yield text[pos:], len(text)


class HeaderBlock:
    """One hop's header fields, chained to the blocks of earlier hops."""

    STATUS = 0

    def __init__(
        self,
        source: Union[str, bytes, Iterable[str], Mapping[str, object], None] = None,
    ):
        self._fields: Dict[HeaderKey, HeaderValue] = {}
        self.previous: Optional["HeaderBlock"] = None

        if source is None:
            return

        if isinstance(source, Mapping):
            for key, value in source.items():
                if isinstance(value, (list, tuple)):
                    for item in value:
                        self.add(key, item)
                else:
                    self.add(key, value)
        else:
            self.parse(source)

    @staticmethod
    def _key(key: Union[HeaderKey, None]) -> HeaderKey:
        if not key or key == "0":
            return HeaderBlock.STATUS
        if isinstance(key, str):
            normalized = key.strip().lower()
            return normalized or HeaderBlock.STATUS
        raise TypeError(f"Header key must be a string or 0, got {key!r}")

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def parse_document(cls, text: Union[str, bytes]) -> Tuple["HeaderBlock", str]:
        """Parse a full response or request into (headers, body)."""
        block = cls()
        _, body = block.parse(text, return_body=True)
        return block, body

    def parse(
        self,
        source: Union[str, bytes, Iterable[str]],
        return_body: bool = False,
    ) -> Tuple[bool, str]:
        """Parse header text into this block.

        A blank line ends the current header block. When the next
        non-blank line is a status or request line, parsing continues and
        the block read so far is stacked onto ``previous``; otherwise the
        rest of the input is body.

        Args:
            source: Header text, or a sequence of individual header lines
            return_body: Also return the text following the headers

        Returns:
            Tuple of (consumed_all, body). ``consumed_all`` is False when
            body text followed the headers; ``body`` is only filled in
            when ``return_body`` is set.
        """
        if isinstance(source, bytes):
            source = source.decode("utf-8", errors="replace")

        if isinstance(source, str):
            text: Optional[str] = source
            entries = list(_iter_lines(source))
        else:
            text = None
            entries = [(line, 0) for line in source]

        body = ""
        count = len(entries)
        i = 0
        while i < count:
            line = entries[i][0]

            if not line.strip():
                # There may be another header block coming
                j = i + 1
                while j < count and not entries[j][0].strip():
                    j += 1
                if j < count and is_start_line(entries[j][0]):
                    i = j
                    continue

                if text is not None:
                    body = text[entries[i][1]:]
                else:
                    body = "\n".join(line for line, _ in entries[i + 1:])
                break

            self._parse_line(line, block_start=i == 0 or not entries[i - 1][0].strip())
            i += 1

        return (not body, body if return_body else "")

    def _parse_line(self, line: str, block_start: bool = True) -> None:
        """Parse one line; request lines only count at the start of a block."""
        stripped = line.strip()

        status = STATUS_LINE_RE.match(stripped)
        if status:
            self.add(self.STATUS, int(status.group(2)))
            return

        if block_start and REQUEST_LINE_RE.match(stripped):
            self.add(self.STATUS, stripped)
            return

        name, sep, value = line.partition(":")
        name = name.strip()
        if sep and name:
            self.add(name, value.strip())
            return

        logger.debug("header_line_malformed", line=stripped)
        self._add_field(stripped.lower(), "")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, key: Union[HeaderKey, None], value: object) -> None:
        """Add a header value, keeping any values already present.

        A falsy key starts a new header block: when this block already
        has content, that content is pushed onto ``previous`` first.
        """
        key = self._key(key)

        if key == self.STATUS:
            if self._fields:
                stacked = HeaderBlock()
                stacked._fields = self._fields
                stacked.previous = self.previous
                self.previous = stacked
                self._fields = {}
            if isinstance(value, str) and value.strip().isdigit():
                value = int(value)
            self._fields[self.STATUS] = value if isinstance(value, int) else str(value)
            return

        self._add_field(key, str(value))

    def _add_field(self, key: str, value: str) -> None:
        if key not in self._fields:
            self._fields[key] = value
            return

        existing = self._fields[key]
        strategy = MERGE_STRATEGIES.get(key)
        if strategy and isinstance(existing, str):
            self._fields[key] = strategy(existing, value)
        elif isinstance(existing, list):
            existing.append(value)
        else:
            self._fields[key] = [str(existing), value]

    def override(self, key: Union[HeaderKey, None], value: HeaderValue) -> None:
        """Set a header in this block and in every earlier block."""
        key = self._key(key)
        for block in self._walk():
            block._fields[key] = value

    def erase(self, key: Union[HeaderKey, None]) -> None:
        """Remove a header from this block and every earlier block."""
        key = self._key(key)
        for block in self._walk():
            block._fields.pop(key, None)

    def attach_previous(self, block: Optional["HeaderBlock"]) -> None:
        """Link an earlier hop's chain beneath the oldest block of this one."""
        if block is None:
            return
        if any(b is self for b in block._walk()) or any(b is block for b in self._walk()):
            raise ValueError("Attaching this block would create a cycle")
        self.oldest().previous = block

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, key: Union[HeaderKey, None], default=None):
        return self._fields.get(self._key(key), default)

    def get_all(self, key: Union[HeaderKey, None]) -> List[str]:
        """Get every value of a header as a list."""
        value = self._fields.get(self._key(key))
        if value is None:
            return []
        if isinstance(value, list):
            return list(value)
        return [value]

    def names(self) -> List[str]:
        """Header names in this block, without the status slot."""
        return [k for k in self._fields if k != self.STATUS]

    def items(self) -> List[Tuple[HeaderKey, HeaderValue]]:
        return list(self._fields.items())

    def header_lines(self) -> List[Tuple[str, str]]:
        """(Display-Name, value) pairs, one per value."""
        lines = []
        for key, value in self._fields.items():
            if key == self.STATUS:
                continue
            for item in (value if isinstance(value, list) else [value]):
                lines.append((display_name(key), str(item)))
        return lines

    def __getitem__(self, key: Union[HeaderKey, None]) -> HeaderValue:
        return self._fields[self._key(key)]

    def __setitem__(self, key: Union[HeaderKey, None], value: HeaderValue) -> None:
        self._fields[self._key(key)] = value

    def __delitem__(self, key: Union[HeaderKey, None]) -> None:
        del self._fields[self._key(key)]

    def __contains__(self, key: object) -> bool:
        try:
            return self._key(key) in self._fields  # type: ignore[arg-type]
        except TypeError:
            return False

    def __iter__(self) -> Iterator[HeaderKey]:
        return iter(list(self._fields))

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderBlock):
            return NotImplemented
        return self._fields == other._fields and self.previous == other.previous

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"HeaderBlock(start={self._fields.get(self.STATUS)!r}, "
            f"headers={len(self.names())}, depth={self.depth})"
        )

    def __str__(self) -> str:
        return self.to_string()

    def copy(self) -> "HeaderBlock":
        """Deep copy of this block and its whole chain."""
        clone = HeaderBlock()
        clone._fields = {
            k: list(v) if isinstance(v, list) else v for k, v in self._fields.items()
        }
        if self.previous is not None:
            clone.previous = self.previous.copy()
        return clone

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    def _walk(self) -> Iterator["HeaderBlock"]:
        block: Optional[HeaderBlock] = self
        while block is not None:
            yield block
            block = block.previous

    def chain(self) -> List["HeaderBlock"]:
        """All blocks of the chain, oldest first."""
        return list(reversed(list(self._walk())))

    def oldest(self) -> "HeaderBlock":
        block = self
        while block.previous is not None:
            block = block.previous
        return block

    @property
    def depth(self) -> int:
        return sum(1 for _ in self._walk())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def start_line(self) -> Optional[str]:
        """Status line or request line of this block, if any."""
        start = self._fields.get(self.STATUS)
        if isinstance(start, int):
            return status_codes.status_line(start)
        if start:
            return str(start)
        return None

    def to_string(self, include_previous: bool = True, line_ending: str = "\r\n") -> str:
        """Render as HTTP header text.

        With ``include_previous`` the earlier blocks come first, oldest
        first, each followed by a blank line.
        """
        lines = []
        start = self.start_line()
        if start:
            lines.append(start)
        for name, value in self.header_lines():
            lines.append(f"{name}: {value}")

        text = line_ending.join(lines) + line_ending if lines else ""

        if include_previous and self.previous is not None:
            earlier = self.previous.to_string(True, line_ending)
            if earlier:
                text = earlier + line_ending + text

        return text

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status_code(self) -> Optional[int]:
        start = self._fields.get(self.STATUS)
        return start if isinstance(start, int) else None

    @status_code.setter
    def status_code(self, code: int) -> None:
        self._fields[self.STATUS] = int(code)

    def get_status_code(self) -> Optional[int]:
        return self.status_code

    def set_status_code(self, code: int) -> None:
        self.status_code = code

    def ok(self) -> bool:
        code = self.status_code
        return code is not None and status_codes.is_ok(code)

    def is_redirect(self) -> bool:
        code = self.status_code
        return code is not None and status_codes.is_redirect(code)

    # ------------------------------------------------------------------
    # Request line
    # ------------------------------------------------------------------

    def set_request_line(self, method: str, target: str, version: str = "HTTP/1.1") -> None:
        """Turn this into a request-shaped block."""
        self._fields[self.STATUS] = f"{method.upper()} {target} {version}"

    def _request_match(self):
        start = self._fields.get(self.STATUS)
        if isinstance(start, str):
            return REQUEST_LINE_RE.match(start)
        return None

    @property
    def method(self) -> Optional[str]:
        match = self._request_match()
        return match.group(1).upper() if match else None

    @property
    def request_target(self) -> Optional[str]:
        match = self._request_match()
        return match.group(2) if match else None

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    def get_set_cookies(self, now: Optional[float] = None) -> List[Cookie]:
        """Cookies set by this (response) block."""
        cookies = []
        for value in self.get_all("set-cookie"):
            cookie = parse_set_cookie(value, now)
            if cookie is not None:
                cookies.append(cookie)
        return cookies

    def get_cookies(self) -> List[Cookie]:
        """Cookies sent by this (request) block."""
        cookies = []
        for value in self.get_all("cookie"):
            cookies.extend(parse_cookie_header(value))
        return cookies

    def create_cookie_response_headers(self, now: Optional[float] = None) -> "HeaderBlock":
        """Build request headers carrying this response's live cookies."""
        now = time.time() if now is None else now
        pairs: Dict[str, str] = {}
        for cookie in self.get_set_cookies(now):
            if not cookie.is_expired(now):
                pairs[cookie.name] = cookie.value

        block = HeaderBlock()
        if pairs:
            block.add("cookie", "; ".join(f"{k}={v}" for k, v in pairs.items()))
        return block
