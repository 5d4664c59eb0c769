"""
Header codec: raw header/status lines <-> ordered header multimaps.

Used three ways:
- building the outgoing header list from a RequestSpec
- parsing response header lines as the transport delivers them
- parsing the transport's record of the headers it actually sent
"""

import re
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

HeaderMap = Mapping[str, Tuple[str, ...]]
HeaderInput = Mapping[str, Union[str, Iterable[str]]]

STATUS_LINE_PATTERN = re.compile(r"^([A-Z]+)/(\d)(?:\.(\d))?[ \t]+(\d{3})\b", re.IGNORECASE)
FIELD_LINE_PATTERN = re.compile(r"^([^\s:]+):[ \t]*(.*)$")

EMPTY_HEADERS: HeaderMap = MappingProxyType({})


def parse_status_line(line: str) -> Optional[Tuple[str, int]]:
    """
    Parse ``PROTOCOL/VERSION STATUS ...``.

    Returns:
        (version, status) with version normalized to "major.minor", or None

    Examples:
        >>> parse_status_line("HTTP/1.1 200 OK")
        ('1.1', 200)
        >>> parse_status_line("HTTP/2 404")
        ('2.0', 404)
    """
    match = STATUS_LINE_PATTERN.match(line.strip())
    if match is None:
        return None
    _, major, minor, status = match.groups()
    return f"{major}.{minor or '0'}", int(status)


def parse_field_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Parse ``Name: value``; the value is trimmed, the name kept as received.
    """
    line = line.strip()
    if not line:
        return None
    match = FIELD_LINE_PATTERN.match(line)
    if match is None:
        return None
    name, value = match.groups()
    return name, value.strip()


def parse_header_text(text: str) -> Dict[str, List[str]]:
    """
    Parse a raw ``"Name: value\\n..."`` block; lines that are not field lines are skipped.

    Example:
        >>> parse_header_text("GET / HTTP/1.1\\r\\nAccept: a\\r\\nAccept: b\\r\\n")
        {'Accept': ['a', 'b']}
    """
    headers: Dict[str, List[str]] = {}
    for line in text.splitlines():
        field = parse_field_line(line)
        if field is not None:
            name, value = field
            headers.setdefault(name, []).append(value)
    return headers


def serialize_headers(headers: HeaderInput) -> List[str]:
    """One ``Name: value`` wire line per value, in insertion order."""
    lines = []
    for name, values in normalize_headers(headers).items():
        for value in values:
            lines.append(f"{name}: {value}")
    return lines


def normalize_headers(headers: HeaderInput) -> Dict[str, Tuple[str, ...]]:
    """Coerce ``name -> str | Iterable[str]`` into ``name -> tuple of str``."""
    result: Dict[str, Tuple[str, ...]] = {}
    for name, values in headers.items():
        if isinstance(values, (str, bytes)):
            values = [values]
        values = tuple(_as_text(v) for v in values)
        result[str(name)] = result.get(str(name), ()) + values
    return result


def freeze_headers(headers: Optional[HeaderInput]) -> HeaderMap:
    """Immutable copy of a header multimap."""
    if not headers:
        return EMPTY_HEADERS
    return MappingProxyType(normalize_headers(headers))


def merge_headers(base: HeaderInput, added: HeaderInput) -> HeaderMap:
    """Append ``added`` values after ``base`` values, per name."""
    merged = normalize_headers(base)
    for name, values in normalize_headers(added).items():
        merged[name] = merged.get(name, ()) + values
    return MappingProxyType(merged)


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


class HeaderAccumulator:
    """
    Byte-level header callback handed to the transport.

    Invoked once per received header line, including the blank terminator
    and one status line per redirect hop. Every call reports back the exact
    number of bytes it was given, matched or not.

    Example:
        >>> acc = HeaderAccumulator()
        >>> acc(None, b"HTTP/1.1 301 Moved\\r\\n")
        20
        >>> acc(None, b"Location: /next\\r\\n")
        17
        >>> acc.status, acc.headers["Location"]
        (301, ['/next'])
    """

    def __init__(self):
        self.status = 200
        self.http_version = "1.1"
        self.headers: Dict[str, List[str]] = {}
        self.raw = ""
        self.byte_count = 0
        self.status_lines = 0

    def __call__(self, handle: Any, data: bytes) -> int:
        length = len(data)
        line = data.decode("latin-1") if isinstance(data, bytes) else str(data)
        self.raw += line
        self.byte_count += length

        status_line = parse_status_line(line)
        if status_line is not None:
            self.http_version, self.status = status_line
            self.status_lines += 1
            return length

        field = parse_field_line(line)
        if field is not None:
            name, value = field
            self.headers.setdefault(name, []).append(value)

        return length

    def snapshot(self) -> HeaderMap:
        """Frozen copy of the headers accumulated so far."""
        return freeze_headers(self.headers)
