"""
Structured logging for transfers.
"""

from .config import LogFormat, LoggingConfig, LogLevel
from .filters import (
    CorrelationIdFilter,
    StaticFieldsFilter,
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)
from .formatters import JSONFormatter, TextFormatter, get_formatter
from .handlers import create_console_handler, create_file_handler
from .logger import HTTPFetchLogger, get_logger

__all__ = [
    "LoggingConfig",
    "LogLevel",
    "LogFormat",
    "HTTPFetchLogger",
    "get_logger",
    "JSONFormatter",
    "TextFormatter",
    "get_formatter",
    "CorrelationIdFilter",
    "StaticFieldsFilter",
    "correlation_scope",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "create_console_handler",
    "create_file_handler",
]
