"""Request correlation ids for booking-core log lines.

Each public ``BookingManager`` operation runs inside a request scope, so
every line it logs (validation, conflict check, activity write) carries
the same ``REQ-xxxxxxxx`` id. Nested operations such as
``confirm_booking`` -> ``update_booking`` share the outer id.

Usage:
    from booking_core.logging_context import get_request_logger, request_scope

    logger = get_request_logger(__name__)
    with request_scope():
        logger.info("Creating booking")  # 12:00:00 [REQ-1a2b3c4d] [...] INFO: Creating booking
"""

import functools
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

NO_REQUEST_ID = "-"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)

T = TypeVar("T")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def new_request_id() -> str:
    """Generate and set a fresh correlation ID, returning it."""
    request_id = f"REQ-{uuid.uuid4().hex[:8]}"
    _request_id.set(request_id)
    return request_id


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation id for the duration of the block.

    An explicit ``request_id`` always wins. Otherwise an id already bound
    by an enclosing scope is reused, and a new one is generated only at
    the outermost level. The previous value is restored on exit.
    """
    current = _request_id.get()
    if request_id is None:
        request_id = current if current != NO_REQUEST_ID else f"REQ-{uuid.uuid4().hex[:8]}"
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


def traced_request(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Run an async operation inside its own ``request_scope``."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> T:
        with request_scope():
            return await func(*args, **kwargs)

    return wrapper


class RequestIdFilter(logging.Filter):
    """Stamps ``record.request_id`` so formats can use ``%(request_id)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def request_id_handler(stream=None) -> logging.Handler:
    """Stream handler that stamps every record it emits with the request id."""
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    return handler


def get_request_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
