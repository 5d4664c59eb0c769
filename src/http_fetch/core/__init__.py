"""Core HTTP Fetch модули."""

from .certs import CertificateStore, default_store, set_certificate_directory
from .config import ExecutorConfig, TimeoutConfig
from .exceptions import (
    ConfigurationError,
    HTTPFetchException,
    MetadataError,
    NetworkError,
    RequestError,
    StreamError,
    TransportException,
    ValidationError,
    classify_transport_error,
)
from .executor import TransportExecutor
from .headers import HeaderAccumulator, parse_header_text, parse_status_line
from .options import Info, Opt, TransportErrno
from .request import RequestSpec
from .response import ResponseEnvelope
from .status_codes import get_reason_phrase
from .transport import RequestsTransport, TransportHandle

__all__ = [
    "RequestSpec",
    "TransportExecutor",
    "ResponseEnvelope",
    "TransportHandle",
    "RequestsTransport",
    "CertificateStore",
    "default_store",
    "set_certificate_directory",
    "ExecutorConfig",
    "TimeoutConfig",
    "Opt",
    "Info",
    "TransportErrno",
    "HeaderAccumulator",
    "parse_header_text",
    "parse_status_line",
    "get_reason_phrase",
    "HTTPFetchException",
    "ValidationError",
    "ConfigurationError",
    "TransportException",
    "NetworkError",
    "RequestError",
    "StreamError",
    "MetadataError",
    "classify_transport_error",
]
