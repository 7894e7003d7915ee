"""
Logging setup with request-scoped context.

Every record carries the request's correlation id and the JSON:API resource
type being served, taken from context variables bound per request.
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Union

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | resource=%(resource_type)s | "
    "%(message)s"
)

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
resource_type_var: ContextVar[Optional[str]] = ContextVar("resource_type", default=None)


class LoggingContextFilter(logging.Filter):
    """Copy the bound correlation id and resource type onto each record ("-" when unbound)."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        record.resource_type = resource_type_var.get() or "-"
        return True


@contextmanager
def bound(var: ContextVar[Optional[str]], value: Optional[str]) -> Iterator[Optional[str]]:
    """Bind ``value`` to a logging context variable for the duration of the block."""
    token = var.set(value)
    try:
        yield value
    finally:
        var.reset(token)


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Route root logging to stdout with LOG_FORMAT and the context filter.

    A handler installed by an earlier call is replaced, so calling this
    again only changes the level. Other root handlers are left alone.
    """
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if any(isinstance(f, LoggingContextFilter) for f in existing.filters):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
