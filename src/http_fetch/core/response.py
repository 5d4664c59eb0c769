# src/http_fetch/core/response.py
"""
Read-only snapshot of one completed HTTP exchange.

The envelope owns two resources: the seekable body stream the transport wrote
into and the transport handle itself. Each is released exactly once,
either explicitly or when the envelope is garbage collected, whichever comes
first; releasing again is a no-op.
"""

import json
import weakref
from types import MappingProxyType
from typing import IO, TYPE_CHECKING, Any, Mapping, Optional, Tuple

from .exceptions import MetadataError, StreamError
from .headers import HeaderMap, freeze_headers

if TYPE_CHECKING:
    from .request import RequestSpec
    from .transport import TransportHandle

REQUIRED_FIELDS: Tuple[str, ...] = (
    "url",
    "status",
    "status_text",
    "http_version",
    "content_type",
    "redirect_count",
    "redirect_url",
    "headers",
    "header_size",
    "request_headers",
    "exec_succeeded",
    "transport_error",
    "transport_errno",
    "body",
    "request",
)


def _charset(content_type: str) -> Optional[str]:
    for param in content_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip('"\'')
    return None


class ResponseEnvelope:
    """
    Immutable result of ``TransportExecutor.fetch``.

    Features:
        - Typed read-only accessors for every transfer field
        - Lazy, repeatable body access (seek to start, read all)
        - Exactly-once release of body stream and transport handle
        - Context manager support

    Example:
        >>> with executor.fetch(spec) as response:
        ...     print(response.status, response.status_text)
        ...     data = response.contents()
    """

    def __init__(self, metadata: Mapping[str, Any], handle: Optional['TransportHandle'] = None):
        """
        Args:
            metadata: All fields listed in ``REQUIRED_FIELDS``
            handle: Transport handle to release with the envelope

        Raises:
            MetadataError: a required field is missing
        """
        missing = [key for key in REQUIRED_FIELDS if key not in metadata]
        if missing:
            raise MetadataError("Invalid metadata provided", missing=missing)

        fields = dict(metadata)
        fields["headers"] = freeze_headers(fields["headers"])
        fields["request_headers"] = freeze_headers(fields["request_headers"])
        body = fields["body"]

        object.__setattr__(self, '_fields', MappingProxyType(fields))
        object.__setattr__(self, '_body_finalizer', weakref.finalize(self, body.close))
        object.__setattr__(
            self,
            '_handle_finalizer',
            weakref.finalize(self, handle.close) if handle is not None else None,
        )
        object.__setattr__(self, '_initialized', True)

    @classmethod
    def create(
        cls,
        metadata: Mapping[str, Any],
        handle: Optional['TransportHandle'] = None
    ) -> 'ResponseEnvelope':
        """Build an envelope from transfer metadata (see ``__init__``)."""
        return cls(metadata, handle=handle)

    def __setattr__(self, name, value):
        """Запретить изменение после init (immutability)."""
        if hasattr(self, '_initialized'):
            raise AttributeError(f"Cannot modify '{name}' - ResponseEnvelope is immutable.")
        object.__setattr__(self, name, value)

    def __delattr__(self, name):
        raise AttributeError(f"Cannot delete '{name}' - ResponseEnvelope is immutable.")

    # ==================== Поля ====================

    @property
    def url(self) -> str:
        """Last effective URL."""
        return self._fields["url"]

    @property
    def status(self) -> int:
        return self._fields["status"]

    @property
    def status_text(self) -> str:
        return self._fields["status_text"]

    @property
    def http_version(self) -> str:
        """Protocol version as "major.minor"."""
        return self._fields["http_version"]

    @property
    def content_type(self) -> str:
        return self._fields["content_type"]

    @property
    def redirect_count(self) -> int:
        return self._fields["redirect_count"]

    @property
    def redirect_url(self) -> str:
        """Next URL to go to when a redirect was not followed, else ""."""
        return self._fields["redirect_url"]

    @property
    def headers(self) -> HeaderMap:
        return self._fields["headers"]

    @property
    def header_size(self) -> int:
        return self._fields["header_size"]

    @property
    def request_headers(self) -> HeaderMap:
        """Headers actually sent, as recorded by the transport."""
        return self._fields["request_headers"]

    @property
    def exec_succeeded(self) -> bool:
        return self._fields["exec_succeeded"]

    @property
    def transport_error(self) -> str:
        return self._fields["transport_error"]

    @property
    def transport_errno(self) -> int:
        return self._fields["transport_errno"]

    @property
    def body(self) -> IO[bytes]:
        """Owned body stream; prefer ``contents()``."""
        return self._fields["body"]

    @property
    def request(self) -> 'RequestSpec':
        """The RequestSpec that produced this response (traceability only)."""
        return self._fields["request"]

    @property
    def closed(self) -> bool:
        return not self._body_finalizer.alive

    @property
    def transport_released(self) -> bool:
        return self._handle_finalizer is None or not self._handle_finalizer.alive

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a response header, name matched case-insensitively."""
        lowered = name.lower()
        for key, values in self.headers.items():
            if key.lower() == lowered and values:
                return values[0]
        return default

    # ==================== Содержимое ====================

    def contents(self) -> bytes:
        """
        Full body, read from the start of the stream.

        Raises:
            StreamError: stream is closed or not seekable
        """
        try:
            self.body.seek(0)
            return self.body.read()
        except (ValueError, OSError) as e:
            raise StreamError("Cannot seek stream.", envelope=self) from e

    def text(self, encoding: Optional[str] = None) -> str:
        """Body decoded with ``encoding``, the Content-Type charset or UTF-8."""
        encoding = encoding or _charset(self.content_type) or "utf-8"
        try:
            return self.contents().decode(encoding, errors="replace")
        except LookupError:
            return self.contents().decode("utf-8", errors="replace")

    def json(self) -> Any:
        """
        Raises:
            json.JSONDecodeError: body is not JSON
        """
        return json.loads(self.text())

    def __str__(self) -> str:
        try:
            return self.text()
        except StreamError:
            return ""

    def __bytes__(self) -> bytes:
        try:
            return self.contents()
        except StreamError:
            return b""

    def __repr__(self) -> str:
        return f"<ResponseEnvelope [{self.status} {self.status_text}] {self.url}>"

    # ==================== Управление ресурсами ====================

    def release_transport(self) -> None:
        """Close the transport handle; later calls do nothing."""
        if self._handle_finalizer is not None:
            self._handle_finalizer()

    def close(self) -> None:
        """Close body stream and transport handle; later calls do nothing."""
        self.release_transport()
        self._body_finalizer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
