"""HTTP status codes, by number, and helpers for classifying them.

Every ``starlette.status.HTTP_<code>_<PHRASE>`` constant is also available
here by number alone, e.g. ``HTTP_200``.
"""

from starlette import status as _status

for _name in _status.__all__:
    if _name.startswith("HTTP_"):
        _code = getattr(_status, _name)
        globals()[f"HTTP_{_code}"] = _code

del _name, _code

MIN_STATUS_CODE = 100
MAX_STATUS_CODE = 599


def is_valid(status_code: int) -> bool:
    """Returns ``True`` if the status code falls within 100-599."""
    return MIN_STATUS_CODE <= status_code <= MAX_STATUS_CODE


def allows_body(status_code: int) -> bool:
    """Returns ``False`` for statuses whose responses never carry a body."""
    return not (is_100(status_code) or status_code in (204, 304))


def is_100(status_code: int) -> bool:
    return 100 <= status_code <= 199


def is_200(status_code: int) -> bool:
    return 200 <= status_code <= 299


def is_300(status_code: int) -> bool:
    return 300 <= status_code <= 399


def is_400(status_code: int) -> bool:
    return 400 <= status_code <= 499


def is_500(status_code: int) -> bool:
    return 500 <= status_code <= 599
