"""
Utility functions for testing server components.

This module provides functions for managing test server instances,
including port allocation and server readiness checking.
"""

import errno
import logging
import socket
import time
import typing as t
from copy import copy
from functools import lru_cache

logger = logging.getLogger(__name__)


def random_port() -> int:
    """
    Return a random available port by binding to port 0.

    Returns:
        int: An available port number that can be used for testing.
    """
    sock = socket.socket()
    try:
        sock.bind(("", 0))
        return sock.getsockname()[1]
    finally:
        sock.close()


@lru_cache(maxsize=None)
def transient_socket_error_numbers() -> t.List[int]:
    """
    A list of TCP socket error numbers to ignore in `wait_server_tcp`.

    On Windows, Winsock error codes are the Unix error code + 10000.
    """
    error_numbers = [
        errno.EAGAIN,
        errno.ECONNABORTED,
        errno.ECONNREFUSED,
        errno.ETIMEDOUT,
        errno.EWOULDBLOCK,
    ]
    error_numbers_effective = copy(error_numbers)
    error_numbers_effective.extend(error_number + 10000 for error_number in error_numbers)
    return error_numbers_effective


def wait_server_tcp(
    port: int,
    host: str = "127.0.0.1",
    timeout: int = 10,
    delay: float = 0.1,
) -> None:
    """
    Wait for server to be ready by attempting TCP connections.

    Raises:
        RuntimeError: If server is not ready within timeout period
    """
    endpoint = f"tcp://{host}:{port}/"
    logger.debug(f"Waiting for endpoint: {endpoint}")
    start_time = time.time()
    while time.time() - start_time < timeout:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(delay / 2)
            error_number = sock.connect_ex((host, port))
            if error_number == 0:
                break

            # Unexpected error.
            if error_number not in transient_socket_error_numbers():
                raise RuntimeError(
                    f"Unexpected error while connecting to {endpoint}: {error_number}"
                )
        time.sleep(delay)
    else:
        raise RuntimeError(
            f"Server at {endpoint} failed to start within {timeout} seconds"
        )
