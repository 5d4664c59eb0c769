"""HTTP Fetch - immutable request specs, a retrying executor and immutable responses."""

import logging
from importlib.metadata import version, PackageNotFoundError

from .client import HTTPFetchClient
from .core.certs import CertificateStore, set_certificate_directory
from .core.config import ExecutorConfig, TimeoutConfig
from .core.env_config import FetchSettings, load_from_env
from .core.exceptions import (
    ConfigurationError,
    HTTPFetchException,
    MetadataError,
    NetworkError,
    RequestError,
    StreamError,
    TransportException,
    ValidationError,
)
from .core.executor import TransportExecutor
from .core.logging import LoggingConfig
from .core.options import Info, Opt, TransportErrno
from .core.request import RequestSpec
from .core.response import ResponseEnvelope
from .core.transport import RequestsTransport, TransportHandle

# Library logging is silent unless the application configures 'http_fetch'
logging.getLogger('http_fetch').addHandler(logging.NullHandler())

try:
    __version__ = version("http-fetch-core")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "HTTPFetchClient",
    "RequestSpec",
    "TransportExecutor",
    "ResponseEnvelope",
    "TransportHandle",
    "RequestsTransport",
    "CertificateStore",
    "set_certificate_directory",
    "ExecutorConfig",
    "TimeoutConfig",
    "LoggingConfig",
    "FetchSettings",
    "load_from_env",
    "Opt",
    "Info",
    "TransportErrno",
    "HTTPFetchException",
    "ValidationError",
    "ConfigurationError",
    "TransportException",
    "NetworkError",
    "RequestError",
    "StreamError",
    "MetadataError",
]
