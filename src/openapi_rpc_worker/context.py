"""Per-request context handed to operation handlers."""

from __future__ import annotations

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import Response

from .json_types import StringMap


def flatten_headers(headers: Headers) -> StringMap:
    """Collapse repeated headers to their first value."""
    flattened: StringMap = {}
    for key, value in headers.items():
        flattened.setdefault(key, value)
    return flattened


class Context:
    """Request metadata plus access to the raw Starlette primitives.

    ``metadata`` holds the request headers with lower-cased names. Headers
    the handler sets on :meth:`raw_response` are copied onto the answer the
    dispatcher sends.
    """

    def __init__(self, request: Request, response: Response) -> None:
        self._request = request
        self._response = response
        self.metadata: StringMap = flatten_headers(request.headers)

    def raw_request(self) -> Request:
        """Return the underlying request (hostname, cookies, client, ...)."""
        return self._request

    def raw_response(self) -> Response:
        """Return the response stub whose headers and cookies are forwarded."""
        return self._response
