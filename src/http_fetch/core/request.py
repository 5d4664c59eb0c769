"""
Неизменяемое описание запроса.

Каждый вызов ``with_*`` возвращает новый RequestSpec, исходный объект не меняется,
поэтому цепочку builder-ов можно свободно делить между потоками.
"""

import base64
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Union

from .exceptions import ValidationError
from .headers import (
    EMPTY_HEADERS,
    HeaderInput,
    HeaderMap,
    freeze_headers,
    merge_headers,
    parse_header_text,
    serialize_headers,
)
from .options import (
    DEFAULT_USER_AGENT,
    PROXY_PROTOCOLS,
    REDIR_POST_ALL,
    Opt,
)
from .utils import (
    build_query,
    encode_data,
    ensure_writable_directory,
    normalize_method,
    validate_url,
)


def _freeze_options(options: Optional[Mapping[Any, Any]]) -> Mapping[Opt, Any]:
    if not options:
        return MappingProxyType({})
    return MappingProxyType({Opt.coerce(k): v for k, v in options.items()})


@dataclass(frozen=True)
class RequestSpec:
    """
    Описание HTTP вызова: URL, метод, заголовки, опции транспорта, ретраи, cookie jar.

    Args:
        url: Абсолютный URL (опционально, можно передать в fetch)
        method: HTTP метод в верхнем регистре (None = GET или POST по телу)
        headers: Упорядоченный multimap заголовков
        options: Открытая карта опций транспорта
        retry: Дополнительные попытки при таймауте
        cookie_jar_path: Файл cookie jar

    Examples:
        >>> spec = RequestSpec.create().with_url("https://api.example.com/ok")
        >>> spec = spec.with_header("Accept", "application/json").with_retry(2)
    """
    url: Optional[str] = None
    method: Optional[str] = None
    headers: HeaderMap = field(default_factory=lambda: EMPTY_HEADERS)
    options: Mapping[Opt, Any] = field(default_factory=lambda: MappingProxyType({}))
    retry: int = 0
    cookie_jar_path: Optional[str] = None

    def __post_init__(self):
        """Замораживает изменяемые словари."""
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, 'headers', freeze_headers(self.headers))
        if not isinstance(self.options, MappingProxyType):
            object.__setattr__(self, 'options', _freeze_options(self.options))
        if self.retry < 0:
            raise ValidationError("retry must be non-negative")

    @classmethod
    def create(cls) -> 'RequestSpec':
        """Пустой builder: без URL, заголовков, опций и ретраев."""
        return cls()

    # ==================== Внутреннее ====================

    def _with_options(self, options: Mapping[Any, Any]) -> 'RequestSpec':
        merged = dict(self.options)
        for key, value in options.items():
            merged[Opt.coerce(key)] = value
        return replace(self, options=MappingProxyType(merged))

    def _set_header(self, name: str, value: str) -> 'RequestSpec':
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = (value,)
        return replace(self, headers=freeze_headers(headers))

    # ==================== Базовый builder ====================

    def with_opt(self, option: Union[Opt, str], value: Any) -> 'RequestSpec':
        """Устанавливает одну опцию транспорта (перезаписывает)."""
        return self._with_options({option: value})

    def with_opts(self, options: Mapping[Any, Any]) -> 'RequestSpec':
        """Добавляет опции транспорта (перезапись по ключу)."""
        if not options:
            return self
        return self._with_options(options)

    def with_header(self, name: str, value: str) -> 'RequestSpec':
        """Добавляет ``value`` к значениям заголовка ``name``."""
        return replace(self, headers=merge_headers(self.headers, {name: value}))

    def with_headers(self, headers: HeaderInput) -> 'RequestSpec':
        """Заменяет весь набор заголовков."""
        return replace(self, headers=freeze_headers(headers))

    def with_added_headers(self, headers: HeaderInput) -> 'RequestSpec':
        """Дополняет текущий набор заголовков."""
        return replace(self, headers=merge_headers(self.headers, headers))

    def with_added_header_text(self, header_text: str) -> 'RequestSpec':
        """Разбирает блок ``"Name: value\\n..."`` и добавляет заголовки."""
        return self.with_added_headers(parse_header_text(header_text))

    def with_header_text(self, header_text: str) -> 'RequestSpec':
        """Разбирает блок ``"Name: value\\n..."`` и заменяет им заголовки."""
        return self.with_headers(parse_header_text(header_text))

    # ==================== Расширенный builder ====================

    def with_auth(self, user: str, password: str) -> 'RequestSpec':
        """Basic авторизация."""
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        return self.with_header("Authorization", f"Basic {token}")

    def with_referer(self, referer: str) -> 'RequestSpec':
        return self.with_opt(Opt.REFERER, referer)

    def with_ajax(self) -> 'RequestSpec':
        return self.with_header("X-Requested-With", "XMLHttpRequest")

    def with_proxy(self, protocol: str, host: str, port: int) -> 'RequestSpec':
        """
        Отправляет запрос через прокси.

        Args:
            protocol: http|https|socks4|socks5
            host: Хост прокси
            port: Порт прокси

        Raises:
            ValidationError: неподдерживаемый протокол
        """
        if protocol not in PROXY_PROTOCOLS:
            raise ValidationError(f"Invalid protocol {protocol} for proxy")
        return self.with_opts({
            Opt.HTTP_PROXY_TUNNEL: False,
            Opt.PROXY: f"{protocol}://{host}:{int(port)}",
        })

    def post_json(self, json_text: str) -> 'RequestSpec':
        """POST JSON документа, переданного строкой."""
        spec = self._set_header("Content-Type", "application/json")
        spec = spec._set_header("Content-Length", str(len(json_text.encode("utf-8"))))
        return replace(spec, method="POST").with_opt(Opt.POST_FIELDS, json_text)

    def post_data(self, data: Mapping[str, Any]) -> 'RequestSpec':
        """POST полей формы; метод сохраняется при редиректах 301/302/303."""
        return self.with_opts({
            Opt.POST_REDIR: REDIR_POST_ALL,
            Opt.POST_FIELDS: build_query(data),
        })

    def with_cookie_file(self, cookie_file: str) -> 'RequestSpec':
        """
        Хранит cookies в ``cookie_file`` (читается до запроса, пишется после).

        Raises:
            ValidationError: директорию нельзя создать или в неё нельзя писать
        """
        dirname = os.path.dirname(os.path.abspath(cookie_file))
        try:
            ensure_writable_directory(dirname)
        except OSError as e:
            raise ValidationError(
                f"{dirname} for cookie file does not exist or is not writable."
            ) from e
        return replace(self, cookie_jar_path=cookie_file)

    def with_user_agent(self, user_agent: str = DEFAULT_USER_AGENT) -> 'RequestSpec':
        return self.with_opt(Opt.USER_AGENT, user_agent)

    def with_retry(self, retry: int) -> 'RequestSpec':
        """Количество дополнительных попыток после таймаута."""
        if retry < 0:
            raise ValidationError(f"Invalid retry count {retry}")
        return replace(self, retry=retry)

    def with_timeout(self, timeout: float) -> 'RequestSpec':
        """Таймаут соединения и общий таймаут запроса, в секундах."""
        return self.with_opts({
            Opt.CONNECT_TIMEOUT: timeout,
            Opt.TIMEOUT: timeout,
        })

    def with_auto_redirect(self, redirect: bool = True) -> 'RequestSpec':
        """Следовать редиректам 3xx."""
        return self.with_opt(Opt.FOLLOW_LOCATION, bool(redirect))

    def with_method(self, method: str) -> 'RequestSpec':
        """
        Raises:
            ValidationError: метод не из девяти известных
        """
        return replace(self, method=normalize_method(method))

    def with_url(self, url: str) -> 'RequestSpec':
        """
        Raises:
            ValidationError: URL не абсолютный
        """
        return replace(self, url=validate_url(url))

    def with_data(self, data: Union[str, Mapping[str, Any], None]) -> 'RequestSpec':
        """
        Тело запроса: строка как есть, словарь в form-encoding, None убирает тело.

        Raises:
            ValidationError: любой другой тип
        """
        encoded = encode_data(data)
        if encoded is None:
            options = {k: v for k, v in self.options.items() if k is not Opt.POST_FIELDS}
            return replace(self, options=MappingProxyType(options))
        return self.with_opt(Opt.POST_FIELDS, encoded)

    # ==================== Чтение ====================

    @property
    def body(self) -> Optional[str]:
        """Текущее тело запроса (POST поля), если есть."""
        return self.options.get(Opt.POST_FIELDS)

    def header_lines(self) -> List[str]:
        """Заголовки строками ``Name: value``."""
        return serialize_headers(self.headers)
