# src/http_fetch/client.py
"""
Convenience client: default transport options layered under every request.
"""

from typing import Any, Callable, Mapping, Optional, Union

from .core.certs import CertificateStore
from .core.config import ExecutorConfig
from .core.executor import TransportExecutor
from .core.headers import HeaderInput
from .core.request import RequestSpec
from .core.response import ResponseEnvelope
from .core.transport import RequestsTransport, TransportHandle

Data = Union[str, Mapping[str, Any], None]


class HTTPFetchClient:
    """
    Thin facade over TransportExecutor.

    Options from ``config`` (user agent, timeouts, redirects, raw defaults)
    apply to every request unless the request sets the same option itself.
    ``config.retry`` applies to requests that do not set their own retry.

    Example:
        >>> config = ExecutorConfig.create(user_agent="bot/1.0", timeout=10)
        >>> with HTTPFetchClient(config) as client:
        ...     response = client.get("https://api.example.com/ok")
        ...     print(response.status, response.text())
    """

    def __init__(
        self,
        config: Optional[ExecutorConfig] = None,
        handle_factory: Callable[[], TransportHandle] = RequestsTransport,
        certificates: Optional[CertificateStore] = None,
    ):
        self.config = config or ExecutorConfig()
        self._executor = TransportExecutor(
            handle_factory=handle_factory,
            certificates=certificates,
            config=self.config,
        )
        self._closed = False

    @property
    def executor(self) -> TransportExecutor:
        return self._executor

    def prepare(self, spec: RequestSpec) -> RequestSpec:
        """``spec`` with client defaults filled in."""
        defaults = self.config.transport_options()
        if defaults:
            spec = spec.with_opts({**defaults, **spec.options})
        if spec.retry == 0 and self.config.retry:
            spec = spec.with_retry(self.config.retry)
        return spec

    def send(
        self,
        spec: RequestSpec,
        url: Optional[str] = None,
        method: Optional[str] = None,
        data: Data = None,
    ) -> ResponseEnvelope:
        """Execute ``spec`` (see ``TransportExecutor.fetch``)."""
        if self._closed:
            raise RuntimeError("Client is closed")
        return self._executor.fetch(self.prepare(spec), url=url, method=method, data=data)

    def request(
        self,
        method: str,
        url: str,
        data: Data = None,
        headers: Optional[HeaderInput] = None,
    ) -> ResponseEnvelope:
        spec = RequestSpec.create().with_method(method).with_url(url)
        if headers:
            spec = spec.with_headers(headers)
        if data is not None:
            spec = spec.with_data(data)
        return self.send(spec)

    def get(self, url: str, headers: Optional[HeaderInput] = None) -> ResponseEnvelope:
        return self.request("GET", url, headers=headers)

    def post(self, url: str, data: Data = None, headers: Optional[HeaderInput] = None) -> ResponseEnvelope:
        return self.request("POST", url, data=data, headers=headers)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
