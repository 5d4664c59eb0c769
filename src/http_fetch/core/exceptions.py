"""
Иерархия исключений HTTP Fetch.

Классификация:
- ValidationError / ConfigurationError - ошибки входных данных, до сети
- NetworkError (retryable=True) - соединение не установлено или потеряно
- RequestError (fatal=True) - транспорт дошёл до сервера, но запрос упал
- StreamError - тело ответа нельзя перечитать
- MetadataError (fatal=True) - нарушен инвариант конверта ответа
"""

from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from .request import RequestSpec
    from .response import ResponseEnvelope

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BASE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class HTTPFetchException(Exception):
    """Базовое исключение HTTP Fetch."""

    retryable: bool = False
    fatal: bool = False

    def __init__(self, message: str, **kwargs: Any):
        self.message = message
        super().__init__(message)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ВАЛИДАЦИЯ
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ValidationError(HTTPFetchException, ValueError):
    """
    Невалидный вход: URL, метод, протокол прокси, тип данных, cookie-директория.

    Всегда выбрасывается до любой сетевой активности и никогда не ретраится.
    """
    fatal = True


class ConfigurationError(HTTPFetchException):
    """Ошибка конфигурации (например, недоступная директория сертификатов)."""
    fatal = True

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ОШИБКИ ТРАНСПОРТА
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TransportException(HTTPFetchException):
    """
    Транспорт вернул ненулевой errno.

    Args:
        message: Текст ошибки транспорта
        request: RequestSpec, который выполнялся
        errno: Код ошибки транспорта
    """

    def __init__(
        self,
        message: str,
        request: Optional["RequestSpec"] = None,
        errno: int = 0
    ):
        self.request = request
        self.errno = errno
        super().__init__(message)

    @property
    def url(self) -> Optional[str]:
        """URL из исходного запроса (если был задан)."""
        return self.request.url if self.request is not None else None


class NetworkError(TransportException):
    """
    Сетевая ошибка: DNS, подключение, TLS handshake, таймаут.

    Вызывающий код может повторить запрос на своём уровне.
    """
    retryable = True


class RequestError(TransportException):
    """Запрос дошёл до стека сервера, но упал по другой причине."""
    fatal = True

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ОШИБКИ КОНВЕРТА ОТВЕТА
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class StreamError(HTTPFetchException):
    """
    Поток тела ответа нельзя спозиционировать (не seekable или уже закрыт).

    Не инвалидирует остальные поля конверта.
    """

    def __init__(self, message: str, envelope: Optional["ResponseEnvelope"] = None):
        self.envelope = envelope
        super().__init__(message)


class MetadataError(HTTPFetchException):
    """
    Конверт ответа собран без обязательного поля.

    Означает баг реализации, никогда не ожидается на валидном входе.
    """
    fatal = True

    def __init__(self, message: str, missing: Iterable[str] = ()):
        self.missing = tuple(missing)
        msg = message
        if self.missing:
            msg += f" (missing: {', '.join(self.missing)})"
        super().__init__(msg)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# УТИЛИТЫ
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def classify_transport_error(
    errno: int,
    message: str,
    request: Optional["RequestSpec"] = None
) -> TransportException:
    """
    Конвертировать errno транспорта в наше исключение.

    Args:
        errno: Ненулевой код ошибки транспорта
        message: Текст ошибки транспорта
        request: Исходный RequestSpec

    Returns:
        NetworkError для ошибок соединения, иначе RequestError

    Examples:
        >>> exc = classify_transport_error(28, "Operation timed out")
        >>> assert isinstance(exc, NetworkError)
        >>> assert exc.retryable == True
    """
    from .options import NETWORK_ERRNOS

    if errno in NETWORK_ERRNOS:
        return NetworkError(message, request=request, errno=errno)
    return RequestError(message, request=request, errno=errno)
