"""
Echo Server - mirrors HTTP requests back as responses.

This module exports the echo core, its request and response types,
and the API class that serves them over ASGI.
"""

from .api import API
from .echo import respond
from .models import InboundRequest, OutboundResponse

__all__ = [
    "API",
    "InboundRequest",
    "OutboundResponse",
    "respond",
]
