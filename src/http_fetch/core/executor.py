# src/http_fetch/core/executor.py
"""
Выполнение одного HTTP обмена по RequestSpec.

Слои опций, последующие перекрывают предыдущие:
    умолчания транспорта -> cookie jar -> TLS -> spec.options -> URL/метод/тело

Повторяются только таймауты, не больше ``spec.retry`` дополнительных раз.
"""

import logging
import tempfile
import time
import uuid
from typing import IO, Any, Callable, Dict, Mapping, Optional, Union

from .certs import CertificateStore, default_store
from .config import ExecutorConfig
from .exceptions import ValidationError, classify_transport_error
from .headers import HeaderAccumulator, parse_header_text
from .logging import HTTPFetchLogger, correlation_scope
from .options import RETRYABLE_ERRNOS, TRANSPORT_DEFAULTS, Info, Opt, TransportErrno
from .request import RequestSpec
from .response import ResponseEnvelope
from .status_codes import get_reason_phrase
from .transport import RequestsTransport, TransportHandle
from .utils import encode_data, normalize_method, validate_url
from ..utils.sanitizer import mask_headers, mask_url

logger = logging.getLogger(__name__)

# Небольшие тела держим в памяти, крупные уходят на диск
BODY_SPOOL_SIZE = 2 * 1024 * 1024


class TransportExecutor:
    """
    Выполняет RequestSpec и возвращает ResponseEnvelope.

    Executor не хранит состояния между вызовами: один экземпляр можно использовать
    из любого числа потоков, каждый fetch открывает свой transport handle.

    Args:
        handle_factory: Фабрика нового TransportHandle на каждый fetch
        certificates: Хранилище CA bundle (по умолчанию общее для процесса)
        config: Конфиг executor; здесь читаются только ``logging`` и ``cert_directory``

    Example:
        >>> executor = TransportExecutor()
        >>> spec = RequestSpec.create().with_url("https://api.example.com/ok")
        >>> with executor.fetch(spec) as response:
        ...     print(response.status, response.contents())
    """

    def __init__(
        self,
        handle_factory: Callable[[], TransportHandle] = RequestsTransport,
        certificates: Optional[CertificateStore] = None,
        config: Optional[ExecutorConfig] = None,
    ):
        self._handle_factory = handle_factory
        self.config = config or ExecutorConfig()

        if certificates is None:
            if self.config.cert_directory:
                certificates = CertificateStore(self.config.cert_directory)
            else:
                certificates = default_store
        self._certificates = certificates

        self._logger = None
        if self.config.logging is not None:
            self._logger = HTTPFetchLogger(self.config.logging)

    @property
    def certificates(self) -> CertificateStore:
        return self._certificates

    def close(self) -> None:
        """Закрывает log handlers этого executor."""
        if self._logger is not None:
            self._logger.close()

    # ==================== Fetch ====================

    def fetch(
        self,
        spec: RequestSpec,
        url: Optional[str] = None,
        method: Optional[str] = None,
        data: Union[str, Mapping[str, Any], None] = None,
    ) -> ResponseEnvelope:
        """
        Выполняет обмен, описанный ``spec``.

        Args:
            spec: Описание запроса
            url: Переопределяет ``spec.url``
            method: Переопределяет ``spec.method``
            data: Переопределяет тело запроса (строка как есть, словарь в form-encoding)

        Returns:
            ResponseEnvelope, владеющий потоком тела

        Raises:
            ValidationError: нет URL, неверный URL, метод или тип данных
            NetworkError: ошибка DNS/соединения/TLS или таймаут после всех попыток
            RequestError: любая другая ошибка транспорта
        """
        target = url if url is not None else spec.url
        if not target:
            raise ValidationError("No URL defined")
        target = validate_url(target)
        if method is not None:
            method = normalize_method(method)
        body = encode_data(data) if data is not None else None

        handle = self._handle_factory()
        try:
            stream = self._configure(handle, spec, target, method, body)
        except BaseException:
            handle.close()
            raise
        with correlation_scope(str(uuid.uuid4())):
            return self._execute(spec, handle, stream, target)

    def _execute(self, spec: RequestSpec, handle: TransportHandle, stream: IO[bytes], target: str) -> ResponseEnvelope:
        accumulator = handle.getopt(Opt.HEADER_FUNCTION)
        self._log_started(spec, target, handle)

        started = time.monotonic()
        attempts = spec.retry + 1
        attempt = 0
        try:
            while attempts > 0:
                attempt += 1
                attempts -= 1
                if attempt > 1:
                    stream.seek(0)
                    stream.truncate()
                succeeded = handle.perform()
                if succeeded or handle.errno not in RETRYABLE_ERRNOS or attempts == 0:
                    break
                self._log_retry(target, handle, attempt, attempts)
        except BaseException:
            stream.close()
            handle.close()
            raise

        envelope = self._build_envelope(spec, handle, accumulator, stream, succeeded)
        duration_ms = (time.monotonic() - started) * 1000

        if handle.errno != TransportErrno.OK:
            errno, error = int(handle.errno), handle.error
            envelope.close()
            self._log_failed(target, errno, error, attempt, duration_ms)
            raise classify_transport_error(errno, error, spec)

        envelope.release_transport()
        self._log_completed(envelope, attempt, duration_ms)
        return envelope

    # ==================== Внутреннее ====================

    def _configure(
        self,
        handle: TransportHandle,
        spec: RequestSpec,
        url: str,
        method: Optional[str],
        body: Optional[str],
    ) -> IO[bytes]:
        handle.setopt(Opt.HTTP_HEADER, spec.header_lines())
        handle.setopts(dict(TRANSPORT_DEFAULTS))

        if spec.cookie_jar_path:
            handle.setopts({
                Opt.COOKIE_FILE: spec.cookie_jar_path,
                Opt.COOKIE_JAR: spec.cookie_jar_path,
            })

        handle.setopts(self._tls_options())
        handle.setopts(dict(spec.options))

        resolved: Dict[Opt, Any] = {Opt.URL: url}
        if method is not None or spec.method is not None:
            resolved[Opt.CUSTOM_REQUEST] = method or spec.method
        if body is not None:
            resolved[Opt.POST_FIELDS] = body
        handle.setopts(resolved)

        stream = handle.getopt(Opt.WRITE_STREAM)
        if stream is None:
            stream = tempfile.SpooledTemporaryFile(max_size=BODY_SPOOL_SIZE)
        handle.setopts({
            Opt.HEADER_OUT: True,
            Opt.WRITE_STREAM: stream,
            Opt.HEADER_FUNCTION: HeaderAccumulator(),
        })
        return stream

    def _tls_options(self) -> Dict[Opt, Any]:
        bundle = self._certificates.resolve() if self._certificates is not None else None
        if bundle:
            return {Opt.CA_INFO: bundle, Opt.SSL_VERIFY_PEER: True}
        return {Opt.SSL_VERIFY_PEER: False}

    @staticmethod
    def _build_envelope(
        spec: RequestSpec,
        handle: TransportHandle,
        accumulator: HeaderAccumulator,
        stream: IO[bytes],
        succeeded: bool,
    ) -> ResponseEnvelope:
        status = handle.getinfo(Info.RESPONSE_CODE) or accumulator.status
        metadata = {
            "url": handle.getinfo(Info.EFFECTIVE_URL) or "",
            "status": status,
            "status_text": get_reason_phrase(status),
            "http_version": accumulator.http_version,
            "content_type": handle.getinfo(Info.CONTENT_TYPE) or "",
            "redirect_count": handle.getinfo(Info.REDIRECT_COUNT) or 0,
            "redirect_url": handle.getinfo(Info.REDIRECT_URL) or "",
            "headers": accumulator.headers,
            "header_size": handle.getinfo(Info.HEADER_SIZE) or 0,
            "request_headers": parse_header_text(handle.getinfo(Info.HEADER_OUT) or ""),
            "exec_succeeded": bool(succeeded),
            "transport_error": handle.error,
            "transport_errno": int(handle.errno),
            "body": stream,
            "request": spec,
        }
        return ResponseEnvelope.create(metadata, handle)

    # ==================== Логирование ====================

    def _log_started(self, spec: RequestSpec, url: str, handle: TransportHandle) -> None:
        method = handle.getopt(Opt.CUSTOM_REQUEST) or ("POST" if handle.getopt(Opt.POST_FIELDS) is not None else "GET")
        if self._logger is None:
            logger.debug("%s %s (retry=%d)", method, mask_url(url), spec.retry)
            return
        self._logger.debug(
            "Request started",
            method=method,
            url=mask_url(url),
            headers=mask_headers(spec.headers),
            retry=spec.retry,
        )

    def _log_retry(self, url: str, handle: TransportHandle, attempt: int, remaining: int) -> None:
        if self._logger is None:
            logger.debug("Timed out on attempt %d, %d left: %s", attempt, remaining, mask_url(url))
            return
        self._logger.warning(
            "Request timed out (will retry)",
            url=mask_url(url),
            attempt=attempt,
            remaining=remaining,
            errno=int(handle.errno),
            error=handle.error,
        )

    def _log_completed(self, envelope: ResponseEnvelope, attempt: int, duration_ms: float) -> None:
        if self._logger is None:
            logger.debug("%d %s %s in %.1fms", envelope.status, envelope.status_text,
                         mask_url(envelope.url), duration_ms)
            return
        self._logger.info(
            "Request completed",
            url=mask_url(envelope.url),
            status=envelope.status,
            redirect_count=envelope.redirect_count,
            attempt=attempt,
            duration_ms=round(duration_ms, 2),
        )

    def _log_failed(self, url: str, errno: int, error: str, attempt: int, duration_ms: float) -> None:
        if self._logger is None:
            logger.debug("Transfer of %s failed after %d attempt(s): [%d] %s",
                         mask_url(url), attempt, errno, error)
            return
        self._logger.error(
            "Request failed",
            url=mask_url(url),
            errno=errno,
            error=error,
            attempt=attempt,
            duration_ms=round(duration_ms, 2),
        )

