"""
Record filters: per-fetch correlation id and static fields.

The correlation id lives in thread-local storage because a fetch runs
entirely on the calling thread.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

_local = threading.local()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    _local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    return getattr(_local, 'correlation_id', None)


def clear_correlation_id() -> None:
    _local.correlation_id = None


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """
    Tag records of the current thread with ``correlation_id`` inside the block.

    The previous id (if any) is restored on exit, so scopes nest.

    Example:
        >>> with correlation_scope("fetch-42"):
        ...     logger.info("Request started")
    """
    previous = get_correlation_id()
    set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        set_correlation_id(previous)


class CorrelationIdFilter(logging.Filter):
    """Copies the current correlation id onto records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = get_correlation_id()
        if correlation_id is not None:
            record.__dict__.setdefault('correlation_id', correlation_id)
        return True


class StaticFieldsFilter(logging.Filter):
    """Adds fixed fields to every record; fields already on the record win."""

    def __init__(self, fields: Mapping[str, Any]):
        super().__init__()
        self.fields = dict(fields)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.fields.items():
            record.__dict__.setdefault(key, value)
        return True
