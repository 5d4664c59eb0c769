"""
Конфигурация исполнителя HTTP Fetch.

Все конфиги immutable (frozen dataclasses) для потокобезопасности.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .exceptions import ConfigurationError
from .options import Opt

if TYPE_CHECKING:
    from .logging import LoggingConfig

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TIMEOUT CONFIG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class TimeoutConfig:
    """
    Таймауты транспорта.

    Args:
        connect: Таймаут подключения (сек), None = без ограничения
        total: Общий лимит времени на передачу (сек), None = без ограничения

    Examples:
        >>> TimeoutConfig(connect=5, total=30)
    """
    connect: Optional[float] = None
    total: Optional[float] = None

    def __post_init__(self):
        if self.connect is not None and self.connect <= 0:
            raise ConfigurationError("connect timeout must be positive")
        if self.total is not None and self.total <= 0:
            raise ConfigurationError("total timeout must be positive")

    def as_options(self) -> Dict[Opt, float]:
        """Опции транспорта для заданных таймаутов."""
        options = {}
        if self.connect is not None:
            options[Opt.CONNECT_TIMEOUT] = self.connect
        if self.total is not None:
            options[Opt.TIMEOUT] = self.total
        return options

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# EXECUTOR CONFIG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class ExecutorConfig:
    """
    Значения по умолчанию для клиента и исполнителя.

    Args:
        default_options: Опции транспорта под опциями каждого запроса
        user_agent: User-Agent по умолчанию
        retry: Дополнительные попытки при таймауте, если запрос не задал свои
        timeout: Таймауты по умолчанию
        follow_redirects: Следовать редиректам (None = как решит запрос)
        cert_directory: Каталог для CA bundle (None = проверка сертификатов выключена)
        logging: Конфиг структурного логирования (None = только module logger)

    Examples:
        >>> config = ExecutorConfig.create(user_agent="bot/1.0", retry=2, timeout=10)
        >>> config = config.with_options({Opt.MAX_REDIRS: 5})
    """
    default_options: Mapping[Opt, Any] = field(default_factory=lambda: MappingProxyType({}))
    user_agent: Optional[str] = None
    retry: int = 0
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    follow_redirects: Optional[bool] = None
    cert_directory: Optional[str] = None
    logging: Optional['LoggingConfig'] = None

    def __post_init__(self):
        """Валидация и заморозка."""
        if self.retry < 0:
            raise ConfigurationError("retry must be non-negative")
        if not isinstance(self.default_options, MappingProxyType):
            try:
                frozen = {Opt.coerce(k): v for k, v in self.default_options.items()}
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            object.__setattr__(self, 'default_options', MappingProxyType(frozen))

    @classmethod
    def create(
        cls,
        default_options: Optional[Mapping[Any, Any]] = None,
        user_agent: Optional[str] = None,
        retry: int = 0,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        follow_redirects: Optional[bool] = None,
        cert_directory: Optional[str] = None,
        logging: Optional['LoggingConfig'] = None,
    ) -> 'ExecutorConfig':
        """
        Удобный конструктор.

        ``timeout`` задаёт общий лимит и, если ``connect_timeout`` не указан,
        таймаут подключения.
        """
        return cls(
            default_options=dict(default_options or {}),
            user_agent=user_agent,
            retry=retry,
            timeout=TimeoutConfig(
                connect=connect_timeout if connect_timeout is not None else timeout,
                total=timeout,
            ),
            follow_redirects=follow_redirects,
            cert_directory=cert_directory,
            logging=logging,
        )

    def transport_options(self) -> Dict[Opt, Any]:
        """
        Все опции по умолчанию одной картой.

        Явные ``default_options`` перекрывают производные от полей.
        """
        options: Dict[Opt, Any] = {}
        if self.user_agent:
            options[Opt.USER_AGENT] = self.user_agent
        options.update(self.timeout.as_options())
        if self.follow_redirects is not None:
            options[Opt.FOLLOW_LOCATION] = self.follow_redirects
        options.update(self.default_options)
        return options

    def with_options(self, options: Mapping[Any, Any]) -> 'ExecutorConfig':
        merged = dict(self.default_options)
        merged.update((Opt.coerce(k), v) for k, v in options.items())
        return replace(self, default_options=MappingProxyType(merged))

    def with_timeout(self, total: Optional[float], connect: Optional[float] = None) -> 'ExecutorConfig':
        return replace(self, timeout=TimeoutConfig(
            connect=connect if connect is not None else total,
            total=total,
        ))

    def with_retry(self, retry: int) -> 'ExecutorConfig':
        return replace(self, retry=retry)

    def with_user_agent(self, user_agent: Optional[str]) -> 'ExecutorConfig':
        return replace(self, user_agent=user_agent)

    def with_cert_directory(self, cert_directory: Optional[str]) -> 'ExecutorConfig':
        return replace(self, cert_directory=cert_directory)

    def with_logging(self, logging: Optional['LoggingConfig']) -> 'ExecutorConfig':
        return replace(self, logging=logging)
