# src/http_fetch/core/transport.py
"""
Transport handles.

A handle is a single-use transfer session: options are set one by one,
``perform()`` runs the exchange and ``getinfo()`` exposes what happened.
Response headers are only ever delivered as raw lines through the
``Opt.HEADER_FUNCTION`` callback; the body is only ever written to the
``Opt.WRITE_STREAM`` sink.

``RequestsTransport`` is the default handle, driven by ``requests.Session``.
"""

import logging
import socket
import threading
import time
from abc import ABC, abstractmethod
from http.cookiejar import LoadError, MozillaCookieJar
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import requests
from requests.structures import CaseInsensitiveDict
from requests.utils import requote_uri

from .headers import parse_field_line
from .options import REDIR_POST_301, REDIR_POST_302, REDIR_POST_303, Info, Opt, TransportErrno

logger = logging.getLogger(__name__)

HeaderFunction = Callable[[Any, bytes], int]

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
DEFAULT_MAX_REDIRS = 30
CHUNK_SIZE = 8192

_HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2", 30: "HTTP/3"}


class TransportHandle(ABC):
    """
    Single transfer session.

    Subclasses must keep ``errno``/``error`` in sync with the last ``perform()``
    and make ``close()`` idempotent.
    """

    def __init__(self):
        self._options: Dict[Opt, Any] = {}
        self.errno = TransportErrno.OK
        self.error = ""
        self.closed = False

    def setopt(self, option: Any, value: Any) -> None:
        """
        Raises:
            ValidationError: unknown option id
        """
        self._options[Opt.coerce(option)] = value

    def setopts(self, options: Dict[Any, Any]) -> None:
        for option, value in options.items():
            self.setopt(option, value)

    def getopt(self, option: Opt, default: Any = None) -> Any:
        return self._options.get(option, default)

    @abstractmethod
    def perform(self) -> bool:
        """Run the transfer; returns True on success, otherwise sets errno/error."""

    @abstractmethod
    def getinfo(self, info: Info) -> Any:
        """Introspection value for the last transfer."""

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class _HeaderWriteAborted(Exception):
    """Header callback consumed a different byte count than it was given."""


class _TransferTimedOut(Exception):
    """The total transfer time set by ``Opt.TIMEOUT`` ran out."""


class RequestsTransport(TransportHandle):
    """
    Transport handle on top of ``requests.Session``.

    Features:
        - Redirects followed hop by hop (max redirects, POST preservation, auto referer)
        - One raw status line + field lines + blank line per hop to the header callback
        - Cookie engine on the session jar, Mozilla-format cookie file load/save
        - Body streamed (decoded) into the write stream
        - Sent header block recorded for ``Info.HEADER_OUT``
        - ``Opt.TIMEOUT`` caps the whole transfer, redirects and body included

    ``Opt.HTTP_PROXY_TUNNEL`` is accepted but not read: requests always
    tunnels https through CONNECT and sends plain http to the proxy as is.

    Example:
        >>> handle = RequestsTransport()
        >>> handle.setopt(Opt.URL, "https://example.com")
        >>> handle.setopt(Opt.WRITE_STREAM, io.BytesIO())
        >>> handle.perform()
        True
        >>> handle.getinfo(Info.RESPONSE_CODE)
        200
        >>> handle.close()
    """

    def __init__(self, session_factory: Callable[[], requests.Session] = requests.Session):
        super().__init__()
        self._session_factory = session_factory
        self._session: Optional[requests.Session] = None
        self._cookie_file_loaded: Optional[str] = None
        self._deadline: Optional[float] = None
        self._reset_info()

    def _reset_info(self) -> None:
        self._info: Dict[Info, Any] = {
            Info.EFFECTIVE_URL: self._options.get(Opt.URL, ""),
            Info.RESPONSE_CODE: 0,
            Info.CONTENT_TYPE: None,
            Info.REDIRECT_COUNT: 0,
            Info.REDIRECT_URL: None,
            Info.HEADER_SIZE: 0,
            Info.HEADER_OUT: None,
            Info.SIZE_DOWNLOAD: 0,
            Info.TOTAL_TIME: 0.0,
        }

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            session = self._session_factory()
            # Only what the options ask for goes on the wire
            session.headers = CaseInsensitiveDict({"Accept": "*/*"})
            session.trust_env = False
            self._session = session
        return self._session

    # ==================== Perform ====================

    def perform(self) -> bool:
        if self.closed:
            raise RuntimeError("Transport handle is closed")

        self._reset_info()
        self.errno = TransportErrno.OK
        self.error = ""
        started = time.monotonic()
        total = self._options.get(Opt.TIMEOUT)
        self._deadline = started + total if total else None

        try:
            self._load_cookie_file()
            self._transfer()
        except _TransferTimedOut:
            self.errno = TransportErrno.OPERATION_TIMEDOUT
            self.error = (
                f"Operation timed out after {int((time.monotonic() - started) * 1000)} milliseconds "
                f"with {self._info[Info.SIZE_DOWNLOAD]} bytes received"
            )
        except _HeaderWriteAborted:
            self.errno = TransportErrno.WRITE_ERROR
            self.error = "Failed writing header"
        except requests.exceptions.RequestException as e:
            self.errno, self.error = classify_requests_exception(e)
        except OSError as e:
            self.errno = TransportErrno.WRITE_ERROR
            self.error = f"Failed writing body: {e}"
        finally:
            self._info[Info.TOTAL_TIME] = time.monotonic() - started

        if self.errno:
            logger.debug("Transfer failed: errno=%d error=%s", int(self.errno), self.error)
        return self.errno == TransportErrno.OK

    def _transfer(self) -> None:
        url = self._options.get(Opt.URL)
        if not url:
            raise requests.exceptions.MissingSchema("No URL set")

        body = self._options.get(Opt.POST_FIELDS)
        if isinstance(body, str):
            body = body.encode("utf-8")
        method = (self._options.get(Opt.CUSTOM_REQUEST)
                  or ("POST" if body is not None else "GET")).upper()
        headers = self._build_headers()
        if body is not None and "Content-Type" not in headers:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        follow = bool(self._options.get(Opt.FOLLOW_LOCATION, False))
        max_redirs = self._options.get(Opt.MAX_REDIRS, DEFAULT_MAX_REDIRS)
        post_redir = int(self._options.get(Opt.POST_REDIR, 0) or 0)
        send_kwargs = self._send_kwargs()
        session = self.session
        redirects = 0

        while True:
            send_kwargs["timeout"] = self._hop_timeout()
            prepared = session.prepare_request(
                requests.Request(method=method, url=url, headers=headers, data=body)
            )
            response = session.send(prepared, stream=True, allow_redirects=False, **send_kwargs)
            try:
                self._info[Info.HEADER_OUT] = _format_sent_headers(prepared)
                self._info[Info.EFFECTIVE_URL] = response.url or url
                self._info[Info.RESPONSE_CODE] = response.status_code
                self._emit_headers(response)

                location = response.headers.get("Location")
                is_redirect = response.status_code in REDIRECT_STATUSES and location
                if is_redirect:
                    next_url = requote_uri(urljoin(response.url or url, location))
                    if not follow:
                        self._info[Info.REDIRECT_URL] = next_url
                    elif max_redirs is not None and 0 <= max_redirs <= redirects:
                        raise requests.exceptions.TooManyRedirects(
                            f"Maximum ({max_redirs}) redirects followed", response=response
                        )
                    else:
                        redirects += 1
                        self._info[Info.REDIRECT_COUNT] = redirects
                        method, body, headers = self._rebuild_for_redirect(
                            response.status_code, method, body, headers, url, next_url, post_redir
                        )
                        url = next_url
                        continue

                content_type = response.headers.get("Content-Type")
                self._info[Info.CONTENT_TYPE] = content_type
                if method != "HEAD":
                    self._write_body(response)
                return
            finally:
                response.close()

    def _rebuild_for_redirect(
        self,
        status: int,
        method: str,
        body: Optional[bytes],
        headers: CaseInsensitiveDict,
        current_url: str,
        next_url: str,
        post_redir: int,
    ) -> Tuple[str, Optional[bytes], CaseInsensitiveDict]:
        """Method/body/headers for the next hop, browser style unless POST is kept."""
        headers = CaseInsensitiveDict(headers)
        keep_post = (
            (status == 301 and post_redir & REDIR_POST_301)
            or (status == 302 and post_redir & REDIR_POST_302)
            or (status == 303 and post_redir & REDIR_POST_303)
        )
        if method == "POST" and status in (301, 302, 303) and not keep_post:
            method, body = "GET", None
        elif status == 303 and method not in ("GET", "HEAD") and not keep_post:
            method, body = "GET", None
        if body is None:
            for name in ("Content-Type", "Content-Length"):
                headers.pop(name, None)

        if urlsplit(current_url).netloc != urlsplit(next_url).netloc:
            headers.pop("Authorization", None)
        if self._options.get(Opt.AUTO_REFERER):
            headers["Referer"] = current_url
        return method, body, headers

    def _build_headers(self) -> CaseInsensitiveDict:
        headers: CaseInsensitiveDict = CaseInsensitiveDict()
        encoding = self._options.get(Opt.ENCODING)
        if encoding:
            headers["Accept-Encoding"] = ", ".join(p.strip() for p in str(encoding).split(","))
        user_agent = self._options.get(Opt.USER_AGENT)
        if user_agent:
            headers["User-Agent"] = user_agent
        referer = self._options.get(Opt.REFERER)
        if referer:
            headers["Referer"] = referer

        # Repeated names are folded into one comma separated field
        for line in self._options.get(Opt.HTTP_HEADER) or []:
            field = parse_field_line(line)
            if field is None:
                continue
            name, value = field
            if name in headers and name.lower() not in ("accept-encoding", "user-agent", "referer"):
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
        return headers

    def _remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None without one."""
        if self._deadline is None:
            return None
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise _TransferTimedOut()
        return remaining

    def _hop_timeout(self) -> Optional[Tuple[Optional[float], Optional[float]]]:
        connect = self._options.get(Opt.CONNECT_TIMEOUT) or None
        remaining = self._remaining()
        if remaining is None:
            return (connect, None) if connect else None
        return (min(connect, remaining) if connect else remaining), remaining

    def _send_kwargs(self) -> Dict[str, Any]:
        verify: Any = True
        if not self._options.get(Opt.SSL_VERIFY_PEER, True):
            verify = False
        elif self._options.get(Opt.CA_INFO):
            verify = self._options[Opt.CA_INFO]

        proxies = {}
        proxy = self._options.get(Opt.PROXY)
        if proxy:
            proxies = {"http": proxy, "https": proxy}

        return {"verify": verify, "proxies": proxies}

    def _emit_headers(self, response: requests.Response) -> None:
        callback: Optional[HeaderFunction] = self._options.get(Opt.HEADER_FUNCTION)
        raw = response.raw
        version = _HTTP_VERSIONS.get(getattr(raw, "version", 0), "HTTP/1.1")
        reason = response.reason or ""
        lines = [f"{version} {response.status_code} {reason}".rstrip() + "\r\n"]
        for name, value in _iter_raw_headers(response):
            lines.append(f"{name}: {value}\r\n")
        lines.append("\r\n")

        for line in lines:
            data = line.encode("latin-1", errors="replace")
            self._info[Info.HEADER_SIZE] += len(data)
            if callback is not None and callback(self, data) != len(data):
                raise _HeaderWriteAborted()

    def _write_body(self, response: requests.Response) -> None:
        stream = self._options.get(Opt.WRITE_STREAM)
        remaining = self._remaining()
        watchdog = None
        if remaining is not None:
            # A steady trickle never trips the socket timeout; cut the read off instead
            watchdog = threading.Timer(remaining, _abort_read, args=(response,))
            watchdog.daemon = True
            watchdog.start()
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                self._remaining()
                if not chunk:
                    continue
                if stream is not None:
                    stream.write(chunk)
                self._info[Info.SIZE_DOWNLOAD] += len(chunk)
            self._remaining()
        except (requests.exceptions.RequestException, OSError):
            if self._deadline is not None and time.monotonic() >= self._deadline:
                raise _TransferTimedOut() from None
            raise
        finally:
            if watchdog is not None:
                watchdog.cancel()

    # ==================== Cookies ====================

    def _load_cookie_file(self) -> None:
        path = self._options.get(Opt.COOKIE_FILE)
        if not path or path == self._cookie_file_loaded:
            return
        jar = MozillaCookieJar(path)
        try:
            jar.load(ignore_discard=True, ignore_expires=True)
        except FileNotFoundError:
            logger.debug("Cookie file %s does not exist yet", path)
        except LoadError as e:
            logger.warning("Ignoring unreadable cookie file %s: %s", path, e)
        else:
            for cookie in jar:
                # Session cookies are stored with expiry 0
                if cookie.expires == 0:
                    cookie.expires = None
                    cookie.discard = True
                self.session.cookies.set_cookie(cookie)
        self._cookie_file_loaded = path

    def _save_cookie_jar(self) -> None:
        path = self._options.get(Opt.COOKIE_JAR)
        if not path or self._session is None:
            return
        jar = MozillaCookieJar(path)
        for cookie in self._session.cookies:
            jar.set_cookie(cookie)
        jar.save(ignore_discard=True, ignore_expires=True)

    # ==================== Info / lifecycle ====================

    def getinfo(self, info: Info) -> Any:
        return self._info.get(Info(info))

    def close(self) -> None:
        """Write the cookie jar (if any) and close the session. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        try:
            self._save_cookie_jar()
        except OSError as e:
            logger.warning("Could not write cookie jar: %s", e)
        finally:
            if self._session is not None:
                self._session.close()
                self._session = None


def _abort_read(response: requests.Response) -> None:
    """Shut the connection socket down so a blocked body read returns."""
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        # Plain shutdown on the fd; SSLSocket.shutdown would drop the TLS object under the reader
        socket.socket.shutdown(sock, socket.SHUT_RDWR)
    except OSError as e:
        logger.debug("Socket already gone on timeout: %s", e)


def _iter_raw_headers(response: requests.Response) -> Iterator[Tuple[str, str]]:
    """Header fields as received, repeated names kept apart."""
    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is None:
        raw_headers = response.headers
    items = getattr(raw_headers, "iteritems", raw_headers.items)
    return iter(items())


def _format_sent_headers(prepared: requests.PreparedRequest) -> str:
    """Request line and header block as sent for ``prepared``."""
    parts = urlsplit(prepared.url)
    lines: List[str] = [f"{prepared.method} {prepared.path_url} HTTP/1.1"]
    if "Host" not in prepared.headers:
        lines.append(f"Host: {parts.netloc.rsplit('@', 1)[-1]}")
    for name, value in prepared.headers.items():
        lines.append(f"{name}: {value}")
    return "\r\n".join(lines) + "\r\n\r\n"


def _iter_causes(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    stack: List[Any] = [exc]
    while stack:
        current = stack.pop()
        if not isinstance(current, BaseException) or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend([getattr(current, "reason", None), current.__cause__, current.__context__])
        stack.extend(current.args)


def _name_resolution_failed(exc: BaseException) -> bool:
    return any(
        isinstance(cause, socket.gaierror) or type(cause).__name__ == "NameResolutionError"
        for cause in _iter_causes(exc)
    )


def _timed_out(exc: BaseException) -> bool:
    return any(
        isinstance(cause, socket.timeout) or type(cause).__name__ in ("ReadTimeoutError", "ConnectTimeoutError")
        for cause in _iter_causes(exc)
    )


def classify_requests_exception(exc: requests.exceptions.RequestException) -> Tuple[TransportErrno, str]:
    """
    Map a ``requests`` exception to a transport errno and message.

    Examples:
        >>> classify_requests_exception(requests.exceptions.ReadTimeout("slow"))
        (<TransportErrno.OPERATION_TIMEDOUT: 28>, 'Operation timed out: slow')
    """
    message = str(exc) or type(exc).__name__

    if isinstance(exc, requests.exceptions.Timeout):
        return TransportErrno.OPERATION_TIMEDOUT, f"Operation timed out: {message}"
    if isinstance(exc, requests.exceptions.ProxyError):
        if _name_resolution_failed(exc):
            return TransportErrno.COULDNT_RESOLVE_PROXY, f"Could not resolve proxy: {message}"
        return TransportErrno.COULDNT_CONNECT, f"Could not connect to proxy: {message}"
    if isinstance(exc, requests.exceptions.SSLError):
        return TransportErrno.SSL_CONNECT_ERROR, f"SSL connect error: {message}"
    if isinstance(exc, requests.exceptions.ConnectionError):
        # Read timeouts while streaming the body surface as ConnectionError
        if _timed_out(exc):
            return TransportErrno.OPERATION_TIMEDOUT, f"Operation timed out: {message}"
        if _name_resolution_failed(exc):
            return TransportErrno.COULDNT_RESOLVE_HOST, f"Could not resolve host: {message}"
        return TransportErrno.COULDNT_CONNECT, f"Could not connect: {message}"
    if isinstance(exc, requests.exceptions.TooManyRedirects):
        return TransportErrno.TOO_MANY_REDIRECTS, message
    if isinstance(exc, (requests.exceptions.MissingSchema, requests.exceptions.InvalidURL)):
        return TransportErrno.URL_MALFORMAT, f"URL using bad/illegal format: {message}"
    if isinstance(exc, requests.exceptions.InvalidSchema):
        return TransportErrno.UNSUPPORTED_PROTOCOL, f"Unsupported protocol: {message}"
    if isinstance(exc, requests.exceptions.ContentDecodingError):
        return TransportErrno.BAD_CONTENT_ENCODING, f"Unrecognized content encoding: {message}"
    return TransportErrno.RECV_ERROR, f"Failure when receiving data from the peer: {message}"
