"""
Transport vocabulary: option ids, introspection ids and error numbers.

The option map handed to a transport stays an open mapping keyed by ``Opt``;
anything a transport does not understand is rejected when the option is set.
"""

import re
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Mapping

from .exceptions import ValidationError


class Opt(str, Enum):
    """Transport option identifiers."""

    URL = "url"
    CUSTOM_REQUEST = "custom_request"
    POST_FIELDS = "post_fields"
    HTTP_HEADER = "http_header"
    FOLLOW_LOCATION = "follow_location"
    MAX_REDIRS = "max_redirs"
    AUTO_REFERER = "auto_referer"
    POST_REDIR = "post_redir"
    ENCODING = "encoding"
    RETURN_TRANSFER = "return_transfer"
    COOKIE_FILE = "cookie_file"
    COOKIE_JAR = "cookie_jar"
    CA_INFO = "ca_info"
    SSL_VERIFY_PEER = "ssl_verify_peer"
    PROXY = "proxy"
    HTTP_PROXY_TUNNEL = "http_proxy_tunnel"
    CONNECT_TIMEOUT = "connect_timeout"
    TIMEOUT = "timeout"
    USER_AGENT = "user_agent"
    REFERER = "referer"
    HEADER_FUNCTION = "header_function"
    WRITE_STREAM = "write_stream"
    HEADER_OUT = "header_out"

    @classmethod
    def coerce(cls, key: Any) -> "Opt":
        """
        Resolve an option key given as member or as its string value.

        Raises:
            ValidationError: unknown option
        """
        if isinstance(key, cls):
            return key
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Invalid transport option {key!r}") from None


class Info(str, Enum):
    """Transport introspection identifiers (read after perform)."""

    EFFECTIVE_URL = "effective_url"
    RESPONSE_CODE = "response_code"
    CONTENT_TYPE = "content_type"
    REDIRECT_COUNT = "redirect_count"
    REDIRECT_URL = "redirect_url"
    HEADER_SIZE = "header_size"
    HEADER_OUT = "header_out"
    SIZE_DOWNLOAD = "size_download"
    TOTAL_TIME = "total_time"


class TransportErrno(IntEnum):
    """Transfer error numbers, numbered like libcurl's CURLcode."""

    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_PROXY = 5
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WRITE_ERROR = 23
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    TOO_MANY_REDIRECTS = 47
    RECV_ERROR = 56
    BAD_CONTENT_ENCODING = 61


# Failures of the connection itself; everything else is a request failure
NETWORK_ERRNOS = frozenset({
    TransportErrno.COULDNT_RESOLVE_PROXY,
    TransportErrno.COULDNT_RESOLVE_HOST,
    TransportErrno.COULDNT_CONNECT,
    TransportErrno.OPERATION_TIMEDOUT,
    TransportErrno.SSL_CONNECT_ERROR,
})

RETRYABLE_ERRNOS = frozenset({TransportErrno.OPERATION_TIMEDOUT})

VALID_METHODS = (
    "GET", "HEAD", "POST", "PUT", "DELETE",
    "CONNECT", "OPTIONS", "TRACE", "PATCH",
)

PROXY_PROTOCOLS = ("http", "https", "socks4", "socks5")

# Keep POST on 301, 302 and 303 redirects
REDIR_POST_301 = 1
REDIR_POST_302 = 2
REDIR_POST_303 = 4
REDIR_POST_ALL = REDIR_POST_301 | REDIR_POST_302 | REDIR_POST_303

# Mozilla Firefox ESR
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:115.0) "
    "Gecko/20100101 Firefox/115.0"
)

TRANSPORT_DEFAULTS: Mapping[Opt, Any] = MappingProxyType({
    Opt.RETURN_TRANSFER: True,
    Opt.ENCODING: "gzip,deflate",
    Opt.FOLLOW_LOCATION: False,
    Opt.AUTO_REFERER: True,
    # Empty cookie file enables the cookie engine without touching disk
    Opt.COOKIE_FILE: "",
})

# scheme://[userinfo@]host[:port][/path][?query][#fragment]
VALID_URL_PATTERN = re.compile(
    r"^[a-z][a-z0-9+.\-]*://"
    r"(?:[^\s:@/?#]+(?::[^\s@/?#]*)?@)?"
    r"(?:\[[0-9a-f:.]+\]|[^\s:@/?#\[\]]+)"
    r"(?::\d{1,5})?"
    r"(?:[/?#]\S*)?$",
    re.IGNORECASE,
)
