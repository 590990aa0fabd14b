import asyncio
import logging
import traceback
from collections import defaultdict

from starlette.websockets import WebSocketClose

from .echo import respond
from .models import Request, Response, decode_body

logger = logging.getLogger(__name__)

EVENT_TYPES = ("startup", "shutdown")


def _format_headers(headers):
    if not headers:
        return ["   No headers"]
    lines = ["   Headers:"]
    for name, value in headers:
        lines.append(f"     {name.decode('latin-1')}: {value.decode('latin-1')}")
    return lines


class EchoRoute:
    """Answers every HTTP request with an echo of itself.

    :param verbose: If ``True``, log the incoming request and the outgoing response.
    """

    def __init__(self, *, verbose=False):
        self.verbose = verbose

    def __repr__(self):
        return f"<EchoRoute verbose={self.verbose!r}>"

    async def __call__(self, scope, receive, send):
        request = Request(scope, receive)
        inbound = await request.inbound()

        outbound = respond(inbound)

        if self.verbose:
            await self.log_request(request, inbound)
            self.log_response(outbound)

        await Response(outbound)(scope, receive, send)

    async def log_request(self, request, inbound):
        lines = ["INCOMING REQUEST:", f"   {inbound.method} {inbound.target}"]
        lines.extend(_format_headers(inbound.headers))
        if inbound.body:
            lines.append(f"   Body: {await request.text}")
        logger.info("\n".join(lines))

    def log_response(self, outbound):
        lines = ["OUTGOING RESPONSE:", f"   Status: {outbound.status_code}"]
        lines.extend(_format_headers(outbound.headers))
        lines.append(f"   Body: {decode_body(outbound.body)}")
        logger.info("\n".join(lines))


class Router:
    def __init__(self, endpoint=None):
        self.endpoint = EchoRoute() if endpoint is None else endpoint
        self.events = defaultdict(list)

    def add_event_handler(self, event_type, handler):
        if event_type not in EVENT_TYPES:
            raise ValueError(
                f"Only 'startup' and 'shutdown' events are supported, not {event_type}."
            )
        self.events[event_type].append(handler)

    async def trigger_event(self, event_type):
        for handler in self.events.get(event_type, []):
            if asyncio.iscoroutinefunction(handler):
                await handler()
            else:
                handler()

    async def lifespan(self, scope, receive, send):
        message = await receive()
        assert message["type"] == "lifespan.startup"

        try:
            await self.trigger_event("startup")
        except BaseException:
            msg = traceback.format_exc()
            await send({"type": "lifespan.startup.failed", "message": msg})
            raise

        await send({"type": "lifespan.startup.complete"})
        message = await receive()
        assert message["type"] == "lifespan.shutdown"
        await self.trigger_event("shutdown")
        await send({"type": "lifespan.shutdown.complete"})

    async def __call__(self, scope, receive, send):
        assert scope["type"] in ("http", "websocket", "lifespan")

        if scope["type"] == "lifespan":
            await self.lifespan(scope, receive, send)
            return

        if scope["type"] == "websocket":
            websocket_close = WebSocketClose()
            await websocket_close(scope, receive, send)
            return

        await self.endpoint(scope, receive, send)
