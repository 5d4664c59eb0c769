"""
Logger used by the executor when a LoggingConfig is supplied.
"""

import itertools
import logging
from typing import Any, List, Optional

from .config import LoggingConfig
from .filters import CorrelationIdFilter, StaticFieldsFilter
from .formatters import get_formatter
from .handlers import create_console_handler, create_file_handler
from ...utils.sanitizer import mask_sensitive_data

_instances = itertools.count(1)


class HTTPFetchLogger:
    """
    Structured logger owning its handlers.

    Keyword arguments become record fields and pass through
    ``mask_sensitive_data`` first, so credentials never reach a handler.
    Each instance logs through its own child of ``name`` (``http_fetch.transfer.1``,
    ``.2``, ...) that does not propagate, so closing one logger never touches
    the handlers of another.

    Example:
        >>> logger = HTTPFetchLogger(LoggingConfig(format="json"))
        >>> logger.info("Request completed", url="https://api.example.com", status=200)
    """

    def __init__(self, config: Optional[LoggingConfig] = None, name: str = "http_fetch.transfer"):
        self.config = config or LoggingConfig()
        self.name = name
        self._closed = False

        self._logger = logging.getLogger(f"{name}.{next(_instances)}")
        self._logger.setLevel(self.config.level.numeric)
        self._logger.propagate = False
        self._handlers = self._build_handlers()
        for handler in self._handlers:
            self._logger.addHandler(handler)

    def _build_handlers(self) -> List[logging.Handler]:
        config = self.config
        level = config.level.numeric
        formatter = get_formatter(config.format)

        filters: List[logging.Filter] = []
        if config.correlation_ids:
            filters.append(CorrelationIdFilter())
        if config.static_fields:
            filters.append(StaticFieldsFilter(config.static_fields))

        handlers: List[logging.Handler] = []
        if config.console:
            handlers.append(create_console_handler(level, formatter, filters))
        if config.file_enabled:
            handlers.append(create_file_handler(
                config.file_path,
                level,
                formatter,
                max_bytes=config.max_bytes,
                backup_count=config.backup_count,
                filters=filters,
            ))
        return handlers

    def log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        if self._closed:
            return
        self._logger.log(level, message, exc_info=exc_info, extra=mask_sensitive_data(fields))

    def debug(self, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self.log(logging.ERROR, message, exc_info=exc_info, **fields)

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self._handlers)

    def close(self) -> None:
        """Flush and close the handlers. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        handlers, self._handlers = self._handlers, []
        for handler in handlers:
            self._logger.removeHandler(handler)
            try:
                handler.flush()
            finally:
                handler.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def get_logger(config: Optional[LoggingConfig] = None, name: str = "http_fetch.transfer") -> HTTPFetchLogger:
    return HTTPFetchLogger(config, name)
