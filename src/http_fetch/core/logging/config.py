"""
Logging configuration for transfer logging.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        return getattr(logging, self.value)


class LogFormat(str, Enum):
    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True)
class LoggingConfig:
    """
    Where and how ``HTTPFetchLogger`` writes transfer records.

    Attributes:
        level: Minimum level (LogLevel or its name, any case)
        format: json or text (LogFormat or its value, any case)
        console: Write to stderr
        file_path: Also write to this rotating file when set
        max_bytes: Rotate the file after this many bytes
        backup_count: Rotated files to keep
        correlation_ids: Tag the records of one fetch with a shared id
        static_fields: Fields added to every record (service name, ...)

    Example:
        >>> LoggingConfig(level="debug", format="json", console=False,
        ...               file_path="/var/log/fetch.log")
    """

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    console: bool = True
    file_path: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    correlation_ids: bool = True
    static_fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        object.__setattr__(self, 'level', _coerce(LogLevel, self.level, str.upper))
        object.__setattr__(self, 'format', _coerce(LogFormat, self.format, str.lower))
        if not isinstance(self.static_fields, MappingProxyType):
            object.__setattr__(self, 'static_fields', MappingProxyType(dict(self.static_fields)))
        if self.max_bytes <= 0:
            raise ValueError("max_bytes must be positive")
        if self.backup_count < 0:
            raise ValueError("backup_count must be non-negative")

    @property
    def file_enabled(self) -> bool:
        return bool(self.file_path)

    @property
    def has_outputs(self) -> bool:
        return self.console or self.file_enabled

    @classmethod
    def create(
        cls,
        level: Union[LogLevel, str] = LogLevel.INFO,
        format: Union[LogFormat, str] = LogFormat.TEXT,
        **kwargs: Any,
    ) -> "LoggingConfig":
        """Keyword-friendly constructor; see the class attributes."""
        return cls(level=level, format=format, **kwargs)


def _coerce(enum_cls, value, normalize):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        return enum_cls(normalize(value))
    raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}")
