"""HTTP Hopper: a redirect-following HTTP client built on header chains.

Fetches documents over pluggable single-exchange transports, follows
Location headers up to a hop bound, carries cookies between hops and
keeps every hop's headers as a linked chain of header blocks.
"""

__version__ = "1.0.0"
__author__ = "HTTP Hopper Contributors"

from http_hopper.core.config import ClientConfig, NetworkConfig, TransportKind
from http_hopper.core.client import RedirectingClient
from http_hopper.core.models import HttpMethod, RequestSpec, ResponseResult
from http_hopper.headers.block import HeaderBlock

__all__ = [
    "__version__",
    "ClientConfig",
    "NetworkConfig",
    "TransportKind",
    "RedirectingClient",
    "HttpMethod",
    "RequestSpec",
    "ResponseResult",
    "HeaderBlock",
]
