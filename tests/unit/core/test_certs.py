"""Тесты для CertificateStore."""

import pytest
import requests
import responses

from src.http_fetch.core.certs import CACERT_SOURCE, CertificateStore
from src.http_fetch.core.exceptions import ConfigurationError

PEM = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


def test_uninitialized_store_resolves_none():
    store = CertificateStore()
    assert not store.initialized
    assert store.resolve() is None


@responses.activate
def test_resolve_downloads_once(tmp_path):
    responses.add(responses.GET, CACERT_SOURCE, body=PEM)
    store = CertificateStore(str(tmp_path))

    path = store.resolve()
    assert path == str((tmp_path / "cacert.pem").resolve())
    assert (tmp_path / "cacert.pem").read_bytes() == PEM
    assert store.resolve() == path
    assert len(responses.calls) == 1


@responses.activate
def test_existing_bundle_is_reused(tmp_path):
    (tmp_path / "cacert.pem").write_bytes(PEM)
    store = CertificateStore(str(tmp_path))
    assert store.resolve() == str((tmp_path / "cacert.pem").resolve())
    assert len(responses.calls) == 0


@responses.activate
def test_failed_download_resolves_none(tmp_path):
    responses.add(responses.GET, CACERT_SOURCE, status=503)
    store = CertificateStore(str(tmp_path))
    assert store.resolve() is None
    assert not (tmp_path / "cacert.pem").exists()
    assert not (tmp_path / "cacert.pem.part").exists()


@responses.activate
def test_network_error_resolves_none(tmp_path):
    responses.add(responses.GET, CACERT_SOURCE, body=requests.exceptions.ConnectionError("down"))
    assert CertificateStore(str(tmp_path)).resolve() is None


@responses.activate
def test_empty_download_resolves_none(tmp_path):
    responses.add(responses.GET, CACERT_SOURCE, body=b"")
    assert CertificateStore(str(tmp_path)).resolve() is None


def test_initialize_creates_directory(tmp_path):
    target = tmp_path / "certs" / "nested"
    store = CertificateStore()
    store.initialize(str(target))
    assert target.is_dir()
    assert store.file == target / "cacert.pem"


def test_initialize_rejects_file_path(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(ConfigurationError):
        CertificateStore().initialize(str(blocker / "certs"))


@responses.activate
def test_custom_source(tmp_path):
    source = "https://certs.example.com/bundle.pem"
    responses.add(responses.GET, source, body=PEM)
    store = CertificateStore(str(tmp_path), source=source)
    assert store.resolve().endswith("bundle.pem")
