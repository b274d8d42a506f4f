from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Mapping, Union
from enum import Enum

from http_hopper.headers.block import HeaderBlock
from http_hopper.utils.helpers import FileSpec


class HttpMethod(Enum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: Union[str, "HttpMethod"]) -> "HttpMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: {value}")


RequestBody = Union[bytes, str, Mapping[str, Any], None]


@dataclass
class RequestSpec:
    uri: str
    method: HttpMethod = HttpMethod.GET
    headers: Optional[HeaderBlock] = None
    body: RequestBody = None
    files: Dict[str, FileSpec] = field(default_factory=dict)


@dataclass
class ResponseResult:
    """Outcome of one logical (possibly redirected) request."""

    uri: str
    headers: Optional[HeaderBlock] = None
    body: str = ""
    raw: str = ""
    hops: List[str] = field(default_factory=list)
    error: Optional[str] = None
    redirect_limit_exceeded: bool = False

    @property
    def connection_ok(self) -> bool:
        return self.headers is not None

    @property
    def response_ok(self) -> bool:
        return (
            self.headers is not None
            and self.error is None
            and self.headers.ok()
        )

    @property
    def status_code(self) -> Optional[int]:
        return self.headers.status_code if self.headers is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "status": self.status_code,
            "connection_ok": self.connection_ok,
            "response_ok": self.response_ok,
            "redirect_limit_exceeded": self.redirect_limit_exceeded,
            "error": self.error,
            "hops": [
                {
                    "uri": uri,
                    "status": block.status_code,
                    "headers": {
                        k: v for k, v in block.items() if k != HeaderBlock.STATUS
                    },
                }
                for uri, block in zip(self.hops, self._hop_blocks())
            ],
            "body_length": len(self.body),
        }

    def _hop_blocks(self) -> List[HeaderBlock]:
        if self.headers is None:
            return []
        # Interim 1xx blocks are not hops of their own
        blocks = [
            b for b in self.headers.chain()
            if b.status_code is None or b.status_code >= 200
        ]
        return blocks[-len(self.hops):] if self.hops else []
