import typing as t

import chardet
from python_multipart.multipart import parse_options_header
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse

from . import status_codes
from .statics import DEFAULT_ENCODING, FRAMING_HEADERS

#: An ordered header collection, as ASGI delivers it: ``[(name, value), ...]``.
HeaderList = t.List[t.Tuple[bytes, bytes]]


class InboundRequest:
    """A parsed HTTP request, as handed to :func:`echoserver.echo.respond`.

    :param method: The HTTP method, e.g. ``"POST"``.
    :param path: The request path, without the query string.
    :param query_string: The raw query string, forwarded untouched.
    :param headers: An iterable of ``(name, value)`` byte pairs. Order and
                    duplicates are kept.
    :param body: The raw request body.
    """

    __slots__ = ["method", "path", "query_string", "headers", "body"]

    def __init__(self, method="GET", path="/", *, query_string="", headers=(), body=b""):
        self.method = method
        self.path = path
        self.query_string = query_string
        self.headers: HeaderList = list(headers)
        self.body: bytes = body

    def __repr__(self):
        return f"<InboundRequest {self.method} {self.target!r}>"

    @property
    def target(self):
        """The path, plus the query string when there is one."""
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path


class OutboundResponse:
    """The response the echo core produced for a single request."""

    __slots__ = ["status_code", "headers", "body"]

    def __init__(self, status_code, headers, body):
        self.status_code: int = status_code
        self.headers: HeaderList = list(headers)
        self.body: bytes = body

    def __repr__(self):
        return f"<OutboundResponse [{self.status_code}]>"

    def __eq__(self, other):
        if not isinstance(other, OutboundResponse):
            return NotImplemented
        return (
            self.status_code == other.status_code
            and self.headers == other.headers
            and self.body == other.body
        )

    __hash__ = None  # type: ignore[assignment]


class Request:
    __slots__ = ["_starlette", "_content"]

    def __init__(self, scope, receive):
        self._starlette = StarletteRequest(scope, receive)
        self._content = None

    @property
    def method(self):
        """The incoming HTTP method, as sent by the client."""
        return self._starlette.method

    @property
    def path(self):
        return self._starlette.url.path

    @property
    def query_string(self):
        return self._starlette.scope.get("query_string", b"").decode("latin-1")

    @property
    def full_url(self):
        """The full URL of the Request, query parameters and all."""
        return str(self._starlette.url)

    @property
    def headers(self):
        """A case-insensitive, multi-valued view of the request headers."""
        return self._starlette.headers

    @property
    def raw_headers(self) -> HeaderList:
        """The request headers in the order they were received."""
        return list(self._starlette.scope.get("headers", []))

    @property
    async def content(self):
        """The Request body, as bytes. Must be awaited."""
        if self._content is None:
            self._content = await self._starlette.body()
        return self._content

    @property
    def declared_encoding(self):
        """The charset declared in the ``Content-Type`` header, if any."""
        _, options = parse_options_header(self.headers.get("Content-Type", ""))
        charset = options.get(b"charset")
        if charset:
            return charset.decode("latin-1")
        return None

    @property
    async def apparent_encoding(self):
        """The declared encoding, or the one chardet detects. Must be awaited."""
        declared_encoding = self.declared_encoding

        if declared_encoding:
            return declared_encoding

        return chardet.detect(await self.content)["encoding"] or DEFAULT_ENCODING

    @property
    async def text(self):
        """The Request body, as unicode. Must be awaited."""
        return decode_body(await self.content, await self.apparent_encoding)

    async def inbound(self) -> InboundRequest:
        """Reads the body and returns the request as an :class:`InboundRequest`."""
        return InboundRequest(
            self.method,
            self.path,
            query_string=self.query_string,
            headers=self.raw_headers,
            body=await self.content,
        )


class Response:
    """Transmits an :class:`OutboundResponse` over ASGI.

    Framing headers are computed by the transport for the body being sent,
    so they are never copied over from the echoed collection. Statuses that
    cannot carry a body (1xx, 204, 304) are sent without one.
    """

    __slots__ = ["outbound"]

    def __init__(self, outbound: OutboundResponse):
        self.outbound = outbound

    @property
    def headers(self) -> HeaderList:
        """The echoed headers that go on the wire."""
        return [
            (name, value)
            for name, value in self.outbound.headers
            if name.lower() not in FRAMING_HEADERS
        ]

    @property
    def body(self) -> bytes:
        """The body that goes on the wire."""
        if not status_codes.allows_body(self.outbound.status_code):
            return b""
        return self.outbound.body

    async def __call__(self, scope, receive, send):
        response = StarletteResponse(self.body, status_code=self.outbound.status_code)
        response.raw_headers.extend(self.headers)

        await response(scope, receive, send)


def decode_body(content: bytes, encoding: str = DEFAULT_ENCODING) -> str:
    """Decodes a body for display, replacing anything undecodable."""
    try:
        return content.decode(encoding, errors="replace")
    except LookupError:
        return content.decode(DEFAULT_ENCODING, errors="replace")
