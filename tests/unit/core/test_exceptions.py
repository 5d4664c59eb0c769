"""Тесты для иерархии исключений."""

import pytest

from src.http_fetch.core.exceptions import (
    ConfigurationError,
    HTTPFetchException,
    MetadataError,
    NetworkError,
    RequestError,
    StreamError,
    TransportException,
    ValidationError,
    classify_transport_error,
)
from src.http_fetch.core.request import RequestSpec


def test_hierarchy():
    assert issubclass(ValidationError, HTTPFetchException)
    assert issubclass(ValidationError, ValueError)
    assert issubclass(NetworkError, TransportException)
    assert issubclass(RequestError, TransportException)
    assert issubclass(StreamError, HTTPFetchException)
    assert issubclass(MetadataError, HTTPFetchException)
    assert issubclass(ConfigurationError, HTTPFetchException)


def test_flags():
    assert NetworkError.retryable is True
    assert NetworkError.fatal is False
    assert RequestError.fatal is True
    assert ValidationError.fatal is True
    assert MetadataError.fatal is True


def test_transport_exception_carries_request():
    spec = RequestSpec.create().with_url("https://api.example.com/x")
    exc = RequestError("Failure when receiving data", request=spec, errno=56)
    assert exc.request is spec
    assert exc.errno == 56
    assert exc.message == "Failure when receiving data"
    assert exc.url == "https://api.example.com/x"


def test_transport_exception_without_request():
    exc = NetworkError("timed out", errno=28)
    assert exc.request is None
    assert exc.url is None


def test_metadata_error_lists_missing():
    exc = MetadataError("Invalid metadata provided", missing=["url", "status"])
    assert exc.missing == ("url", "status")
    assert "url, status" in str(exc)


@pytest.mark.parametrize("errno", [5, 6, 7, 28, 35])
def test_classify_network(errno):
    exc = classify_transport_error(errno, "boom")
    assert isinstance(exc, NetworkError)
    assert exc.errno == errno


@pytest.mark.parametrize("errno", [1, 3, 23, 47, 56, 61, 999])
def test_classify_request(errno):
    spec = RequestSpec.create()
    exc = classify_transport_error(errno, "boom", spec)
    assert isinstance(exc, RequestError)
    assert exc.request is spec
    assert str(exc) == "boom"
