import logging
import multiprocessing
import os

import uvicorn
from starlette.middleware.errors import ServerErrorMiddleware
from starlette.middleware.exceptions import ExceptionMiddleware
from starlette.testclient import TestClient

from . import status_codes
from .routes import EchoRoute, Router
from .statics import DEFAULT_HOST, DEFAULT_PORT, VERBOSE_ENV

logger = logging.getLogger(__name__)

#: Import string of the application factory, used when running several workers.
APP_FACTORY = "echoserver.api:create_app"

_TRUTHY = ("1", "true", "yes", "on")


class API:
    """The echo web-service.

    Every HTTP request, whatever its method or path, is answered with a
    response mirroring its headers and body.

    :param verbose: If ``True``, log every request and response.
    :param debug: If ``True``, unhandled errors render a traceback.
    """

    status_codes = status_codes

    def __init__(self, *, verbose=False, debug=False):
        self.verbose = verbose
        self.debug = debug

        self.router = Router(EchoRoute(verbose=verbose))

        # Cached testing session.
        self._session = None

        self.app = ExceptionMiddleware(self.router, debug=debug)
        self.add_middleware(ServerErrorMiddleware, debug=debug)

    def add_middleware(self, middleware_cls, **middleware_config):
        self.app = middleware_cls(self.app, **middleware_config)

    def on_event(self, event_type: str):
        """Decorator for registering functions or coroutines to run at certain events
        Supported events: startup, shutdown

        Usage::

            @api.on_event('startup')
            def announce():
                ...

        """

        def decorator(func):
            self.add_event_handler(event_type, func)
            return func

        return decorator

    def add_event_handler(self, event_type, handler):
        """Adds an event handler to the API.

        :param event_type: A string in ("startup", "shutdown")
        :param handler: The function to run. Can be either a function or a coroutine.
        """

        self.router.add_event_handler(event_type, handler)

    def session(self, base_url="http://;"):
        """Testing HTTP client, able to send HTTP requests to the application.

        :param base_url: The URL to mount the connection adaptor to.
        """

        if self._session is None:
            self._session = TestClient(self, base_url=base_url)
        return self._session

    @property
    def requests(self):
        """A testing session that is connected to the ASGI app."""
        return self.session()

    def serve(self, *, address=None, port=None, workers=None, **options):
        """Runs the application with uvicorn. If the ``PORT`` environment
        variable is set, requests will be served on that port automatically to all
        known hosts.

        :param address: The address to bind to.
        :param port: The port to bind to.
        :param workers: The number of worker processes. Defaults to the number of CPUs.
        :param options: Additional keyword arguments to send to ``uvicorn.run()``.
                        The HTTP protocol defaults to ``httptools``: h11 refuses to send
                        a 1xx status as the final response.
        """

        if port is None and "PORT" in os.environ:
            if address is None:
                address = "0.0.0.0"  # noqa: S104
            port = int(os.environ["PORT"])

        if address is None:
            address = DEFAULT_HOST
        if port is None:
            port = DEFAULT_PORT
        if workers is None:
            workers = multiprocessing.cpu_count()
        options.setdefault("http", "httptools")

        logger.debug(f"Running uvicorn on {address}:{port} with {workers} worker(s)")
        if workers == 1:
            uvicorn.run(self, host=address, port=port, **options)
            return

        # Worker processes build their own application from the environment.
        os.environ[VERBOSE_ENV] = "1" if self.verbose else "0"
        uvicorn.run(
            APP_FACTORY, factory=True, host=address, port=port, workers=workers, **options
        )

    def run(self, **kwargs):
        self.serve(**kwargs)

    async def __call__(self, scope, receive, send):
        await self.app(scope, receive, send)


def create_app():
    """Application factory, for ``uvicorn --factory echoserver.api:create_app``."""
    from .cli import setup_logging

    verbose = os.environ.get(VERBOSE_ENV, "").lower() in _TRUTHY
    setup_logging(verbose)
    return API(verbose=verbose)
