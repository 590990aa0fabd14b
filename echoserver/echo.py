"""
The echo core.

Turns an :class:`~echoserver.models.InboundRequest` into an
:class:`~echoserver.models.OutboundResponse` that mirrors the request's
headers and body. Two reserved request headers override the defaults:

- ``internal.status-code`` sets the response status code.
- ``internal.response-body`` replaces the response body.

Reserved headers, and ``Host``, are never echoed back. The functions here
are pure: they do no I/O, hold no state, and never raise for malformed
override values, which resolve to the defaults instead.
"""

import re
import typing as t

from . import status_codes
from .models import HeaderList, InboundRequest, OutboundResponse
from .statics import (
    INTERNAL_RESPONSE_BODY_HEADER,
    INTERNAL_STATUS_CODE_HEADER,
    RESERVED_HEADERS,
)

__all__ = [
    "filter_headers",
    "first_header",
    "resolve_body",
    "resolve_status_code",
    "respond",
]

DEFAULT_STATUS_CODE = status_codes.HTTP_200  # type: ignore[attr-defined]

_DIGITS_RE = re.compile(rb"[0-9]+")


def _header_name(name: t.Union[str, bytes]) -> bytes:
    if isinstance(name, str):
        name = name.encode("latin-1")
    return name.lower()


def first_header(headers: HeaderList, name: t.Union[str, bytes]) -> t.Optional[bytes]:
    """Returns the value of the first header called ``name``, or ``None``."""
    wanted = _header_name(name)
    for key, value in headers:
        if key.lower() == wanted:
            return value
    return None


def filter_headers(headers: HeaderList) -> HeaderList:
    """Drops reserved headers, keeping everything else as-is and in order."""
    return [(name, value) for name, value in headers if name.lower() not in RESERVED_HEADERS]


def resolve_status_code(headers: HeaderList) -> int:
    value = first_header(headers, INTERNAL_STATUS_CODE_HEADER)
    if value is None or not _DIGITS_RE.fullmatch(value):
        return DEFAULT_STATUS_CODE

    try:
        status_code = int(value)
    except ValueError:
        # More digits than int() is willing to convert.
        return DEFAULT_STATUS_CODE

    if not status_codes.is_valid(status_code):
        return DEFAULT_STATUS_CODE
    return status_code


def resolve_body(headers: HeaderList, body: bytes) -> bytes:
    value = first_header(headers, INTERNAL_RESPONSE_BODY_HEADER)
    if value is None:
        return body
    return value


def respond(request: InboundRequest) -> OutboundResponse:
    """Builds the echo response for a single request.

    Usage::

        >>> request = InboundRequest("POST", "/", headers=[(b"x-test", b"v")], body=b"hi")
        >>> response = respond(request)
        >>> response.status_code, response.headers, response.body
        (200, [(b'x-test', b'v')], b'hi')
    """
    return OutboundResponse(
        status_code=resolve_status_code(request.headers),
        headers=filter_headers(request.headers),
        body=resolve_body(request.headers, request.body),
    )
