"""
Echo Server.

A high-performance echo server that mirrors requests back as responses.

Usage:
  echo-server [--hostname=<host>] [--port=<port>] [--workers=<n>] [--settings=<file>] [--limit-max-requests=<n>] [--verbose]
  echo-server --version

Options:
  -h --help                 Show this screen.
  --version                 Show version.
  -n --hostname=<host>      The IP address to bind to (default: 127.0.0.1).
  -p --port=<port>          The port number to bind to (default: 3000).
  -w --workers=<n>          Number of worker processes (default: number of CPUs).
  --settings=<file>         Settings file to load [default: Settings.toml].
  --limit-max-requests=<n>  Maximum number of requests to handle before shutting down.
  -v --verbose              Enable verbose logging of requests and responses.

Environment:
  ECHO_SERVER_HOST, ECHO_SERVER_PORT, ECHO_SERVER_WORKERS and ECHO_SERVER_VERBOSE
  override the settings file. Command line options override both.

Examples:
  echo-server                               # Listen on 127.0.0.1:3000
  echo-server --hostname=0.0.0.0 -p 8080    # Listen on all interfaces, port 8080
  curl -H "internal.status-code: 418" http://127.0.0.1:3000/
"""  # noqa: E501

import logging
import sys
import typing as t
from ipaddress import ip_address

import docopt

from echoserver.__version__ import __version__
from echoserver.api import API
from echoserver.config import SettingsError, load_settings
from echoserver.statics import INTERNAL_RESPONSE_BODY_HEADER, INTERNAL_STATUS_CODE_HEADER

logger = logging.getLogger(__name__)


def validate_hostname(hostname: str) -> str:
    """
    Check that ``hostname`` is an IPv4 or IPv6 address.

    Raises:
        ValueError: If it is not.
    """
    try:
        return str(ip_address(hostname))
    except ValueError as ex:
        raise ValueError(
            f"Invalid hostname '{hostname}'. Must be a valid IP address."
        ) from ex


def validate_port(port: str) -> int:
    """
    Parse ``port`` as a TCP port number between 1 and 65535.

    Raises:
        ValueError: If it is not one.
    """
    message = f"Invalid port '{port}'. Must be a number between 1 and 65535."
    if not port.isdecimal() or not port.isascii():
        raise ValueError(message)

    value = int(port)
    if value == 0:
        raise ValueError("Port cannot be 0. Must be between 1 and 65535.")
    if value > 65535:
        raise ValueError(message)
    return value


def validate_positive(name: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise ValueError(f"{name} must be a valid integer") from None
    if number <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return number


def cli() -> None:
    """
    Main entry point for the echo server CLI.

    Parses command line arguments, resolves settings and runs the server.
    """
    args = docopt.docopt(__doc__, argv=None, version=__version__, options_first=False)
    verbose: bool = args["--verbose"]
    setup_logging(verbose)

    hostname: t.Optional[str] = args["--hostname"]
    port: t.Optional[str] = args["--port"]
    workers: t.Optional[str] = args["--workers"]
    limit_max_requests: t.Optional[str] = args["--limit-max-requests"]

    try:
        settings = load_settings(args["--settings"])
        settings = settings.merge(
            host=validate_hostname(hostname) if hostname is not None else None,
            port=validate_port(port) if port is not None else None,
            workers=validate_positive("workers", workers) if workers is not None else None,
            verbose=verbose or None,
        )
        if limit_max_requests is not None:
            limit_max_requests = validate_positive("limit-max-requests", limit_max_requests)
    except (SettingsError, ValueError) as ex:
        logger.error(f"Error: {ex}")
        sys.exit(1)

    if settings.verbose and not verbose:
        setup_logging(True)

    logger.info(f"Starting Echo Server on http://{settings.bind_address}")
    logger.info(
        "Headers that are relevant for the request only, like 'host', won't be echoed."
    )
    logger.info(f"Use '{INTERNAL_STATUS_CODE_HEADER}' header to override response status code")
    logger.info(f"Use '{INTERNAL_RESPONSE_BODY_HEADER}' header to override response body")
    if settings.verbose:
        logger.info("Verbose mode enabled - requests and responses will be logged")

    api = API(verbose=settings.verbose)
    api.run(
        address=str(settings.host),
        port=settings.port,
        workers=settings.workers,
        limit_max_requests=limit_max_requests,
    )


def setup_logging(verbose: bool) -> None:
    """
    Configure logging based on verbosity.

    Args:
        verbose: When True, sets logging level to DEBUG; otherwise, sets to INFO
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
