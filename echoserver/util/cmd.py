# ruff: noqa: S603  # Subprocess call - output not captured
# ruff: noqa: S607  # Starting a process with a partial executable path
import logging
import os
import shutil
import signal
import socket
import subprocess
import sys
import threading
import time
import typing as t

logger = logging.getLogger(__name__)


class EchoServerProgram:
    """
    Provide full path to the `echo-server` program.
    """

    @staticmethod
    def path():
        name = "echo-server"
        if sys.platform == "win32":
            name = "echo-server.exe"
        program = shutil.which(name)
        if program is None:
            paths = os.environ.get("PATH", "").split(os.pathsep)
            raise RuntimeError(
                f"Could not find '{name}' executable in PATH. "
                f"Please install it with 'pip install --upgrade echo-server'. "
                f"Searched in: {', '.join(paths)}"
            )
        logger.debug(f"Found echo-server program: {program}")
        return program

    @classmethod
    def call(cls, *args: str, env: t.Optional[t.Mapping[str, str]] = None) -> int:
        """
        Invoke `echo-server` with the given arguments and wait for it to exit.

        Returns:
            int: The return code of the process
        """
        command = [cls.path(), *args]
        return subprocess.call(command, env=None if env is None else {**os.environ, **env})


class EchoServer(threading.Thread):
    """
    A threaded wrapper around the `echo-server` command for testing purposes.

    Args:
        port (int): The port to run the server on.
        limit_max_requests (int, optional): Maximum number of requests to handle
            before shutting down.
        args: Additional command line arguments.

    Example:
        >>> server = EchoServer(port=8000)
        >>> server.start()
        >>> # Run tests
        >>> server.stop()
    """

    def __init__(self, port: int, limit_max_requests: int = None, args: t.Sequence[str] = ()):
        super().__init__()
        self._stopping = False

        if not isinstance(port, int) or port < 1:
            raise ValueError("Port must be a positive integer")
        if limit_max_requests is not None and (
            not isinstance(limit_max_requests, int) or limit_max_requests < 1
        ):
            raise ValueError("limit_max_requests must be a positive integer if specified")

        self.port = port
        self.limit_max_requests = limit_max_requests
        self.args = list(args)
        self.shutdown_timeout = 5  # seconds

        # Allow the thread to be terminated when the main program exits.
        self.process: t.Optional[subprocess.Popen] = None
        self.daemon = True

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def run(self):
        command = [
            EchoServerProgram.path(),
            f"--port={self.port}",
            "--workers=1",
            *self.args,
        ]
        if self.limit_max_requests is not None:
            command += [f"--limit-max-requests={self.limit_max_requests}"]

        self.process = subprocess.Popen(
            command,
            env=os.environ.copy(),
            universal_newlines=True,
        )
        self.process.wait()

    def stop(self):
        """
        Gracefully stop the process.
        """
        if self._stopping:
            return
        self._stopping = True
        if self.process and self.process.poll() is None:
            logger.info("Attempting to terminate server process...")
            self.process.terminate()
            try:
                self.process.wait(timeout=self.shutdown_timeout)
                logger.info("Server process terminated gracefully")
            except subprocess.TimeoutExpired:
                logger.warning(
                    "Server process did not terminate gracefully, forcing kill"
                )
                self.process.kill()

    def _signal_handler(self, signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        self.stop()

    def wait_until_ready(self, timeout=30, request_timeout=1, delay=0.1) -> bool:
        """
        Wait until the server is ready to accept connections.

        Returns:
            bool: True if server is ready and accepting connections, False otherwise.
        """
        start_time = time.time()
        while time.time() - start_time < timeout:
            if self.process is not None and not self.is_running():
                logger.error("Server process exited with code: %d", self.process.poll())
                return False
            try:
                with socket.create_connection(
                    ("127.0.0.1", self.port), timeout=request_timeout
                ):
                    return True
            except OSError as ex:
                logger.debug(f"Server not ready yet: {ex}")
                time.sleep(delay)
        return False

    def is_running(self):
        """
        Check if the server process is still running.
        """
        return self.process is not None and self.process.poll() is None
