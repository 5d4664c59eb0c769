"""Tests for request-building helpers."""

import os

import pytest

from src.http_fetch.core.exceptions import ValidationError
from src.http_fetch.core.utils import (
    build_query,
    encode_data,
    ensure_writable_directory,
    is_valid_url,
    normalize_method,
    validate_url,
)


@pytest.mark.parametrize("url", [
    "https://example.com",
    "http://example.com:8080/path?q=1#frag",
    "https://user:pw@api.example.com/ok",
    "http://127.0.0.1/x",
])
def test_valid_urls(url):
    assert is_valid_url(url)
    assert validate_url(url) == url


@pytest.mark.parametrize("url", ["", "not a url", "example.com/path", "://missing", None, 42])
def test_invalid_urls(url):
    assert not is_valid_url(url)
    with pytest.raises(ValidationError):
        validate_url(url)


@pytest.mark.parametrize("method", ["get", "Post", "PUT", "delete", "patch", "head", "options", "trace", "connect"])
def test_normalize_method(method):
    assert normalize_method(method) == method.upper()


@pytest.mark.parametrize("method", ["FETCH", "", None])
def test_normalize_method_rejects(method):
    with pytest.raises(ValidationError):
        normalize_method(method)


def test_build_query_flat():
    assert build_query({"a": 1, "b": "x y", "c": "&="}) == "a=1&b=x+y&c=%26%3D"


def test_build_query_nested():
    data = {"user": {"name": "bob", "roles": ["admin", "dev"]}, "on": True, "skip": None}
    assert build_query(data) == (
        "user%5Bname%5D=bob"
        "&user%5Broles%5D%5B0%5D=admin"
        "&user%5Broles%5D%5B1%5D=dev"
        "&on=1"
    )


def test_encode_data():
    assert encode_data(None) is None
    assert encode_data("raw body") == "raw body"
    assert encode_data({"a": "b"}) == "a=b"


@pytest.mark.parametrize("data", [b"bytes", 42, ["a"]])
def test_encode_data_rejects(data):
    with pytest.raises(ValidationError, match="Invalid data supplied"):
        encode_data(data)


def test_ensure_writable_directory_creates(tmp_path):
    target = tmp_path / "a" / "b"
    assert ensure_writable_directory(str(target)) == target
    assert target.is_dir()


def test_ensure_writable_directory_existing(tmp_path):
    assert ensure_writable_directory(str(tmp_path)) == tmp_path


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores permissions")
def test_ensure_writable_directory_read_only(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        with pytest.raises(PermissionError):
            ensure_writable_directory(str(locked))
    finally:
        locked.chmod(0o700)
