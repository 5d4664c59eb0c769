"""
Utility functions for request building.

Includes:
- URL and method validation
- Form encoding of nested maps
- Writable directory checks (cookie jars, certificate cache)
"""

import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import quote_plus

from .exceptions import ValidationError
from .options import VALID_METHODS, VALID_URL_PATTERN


def is_valid_url(url: Any) -> bool:
    """
    Check an absolute URL: scheme, optional userinfo, host, optional port and path.

    Examples:
        >>> is_valid_url("https://example.com/path?q=1")
        True
        >>> is_valid_url("not a url")
        False
    """
    return isinstance(url, str) and VALID_URL_PATTERN.match(url) is not None


def validate_url(url: Any) -> str:
    """Return ``url`` unchanged or raise ValidationError."""
    if not is_valid_url(url):
        raise ValidationError(f"Invalid URL {url}")
    return url


def normalize_method(method: Any) -> str:
    """
    Upper-case an HTTP verb and check it is one of the nine recognized ones.

    Raises:
        ValidationError: unknown verb
    """
    if not isinstance(method, str) or method.upper() not in VALID_METHODS:
        raise ValidationError(f"Invalid method {method}")
    return method.upper()


def build_query(data: Mapping[str, Any]) -> str:
    """
    Form-encode a map; nested maps and lists use bracket notation.

    Examples:
        >>> build_query({"a": 1, "b": "x y"})
        'a=1&b=x+y'
        >>> build_query({"user": {"name": "bob"}, "tags": ["x", "y"]})
        'user%5Bname%5D=bob&tags%5B0%5D=x&tags%5B1%5D=y'
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in data.items():
        _flatten(str(key), value, pairs)
    return "&".join(f"{quote_plus(k)}={quote_plus(v)}" for k, v in pairs)


def _flatten(prefix: str, value: Any, pairs: List[Tuple[str, str]]) -> None:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]", item, pairs)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten(f"{prefix}[{index}]", item, pairs)
    elif isinstance(value, bool):
        pairs.append((prefix, "1" if value else "0"))
    elif isinstance(value, bytes):
        pairs.append((prefix, value.decode("utf-8")))
    else:
        pairs.append((prefix, str(value)))


def encode_data(data: Any) -> Optional[str]:
    """
    Encode request body data: strings pass through, maps are form-encoded.

    Raises:
        ValidationError: any other type
    """
    if data is None:
        return None
    if isinstance(data, Mapping):
        return build_query(data)
    if isinstance(data, str):
        return data
    raise ValidationError(
        f"Invalid data supplied, str|Mapping requested but {type(data).__name__} given."
    )


def ensure_writable_directory(directory: str) -> Path:
    """
    Create ``directory`` if needed and check it is writable.

    Returns:
        Path to the directory

    Raises:
        OSError: directory cannot be created
        PermissionError: directory exists but is not writable
    """
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    if not path.is_dir() or not os.access(path, os.W_OK):
        raise PermissionError(f"{path} is not an existing directory or is not writable.")
    return path
