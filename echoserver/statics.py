DEFAULT_ENCODING = "utf-8"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_SETTINGS_FILE = "Settings.toml"

INTERNAL_STATUS_CODE_HEADER = "internal.status-code"
INTERNAL_RESPONSE_BODY_HEADER = "internal.response-body"

RESERVED_HEADERS = frozenset(
    {
        INTERNAL_STATUS_CODE_HEADER.encode("latin-1"),
        INTERNAL_RESPONSE_BODY_HEADER.encode("latin-1"),
        b"host",
    }
)

# Recomputed by the transport for the body that is actually sent.
FRAMING_HEADERS = frozenset(
    {b"content-length", b"transfer-encoding", b"connection", b"keep-alive"}
)

VERBOSE_ENV = "ECHO_SERVER_VERBOSE"
