"""
Pytest configuration and fixtures for http-fetch-core tests.
"""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import responses as responses_lib

from src.http_fetch.core.certs import CertificateStore
from src.http_fetch.core.executor import TransportExecutor
from tests.stubs import StubHandle


@pytest.fixture
def stub_handle():
    """Factory building StubHandles; the latest one is kept in ``StubHandle.instances``."""
    StubHandle.instances = []

    def factory(**kwargs):
        return lambda: StubHandle(**kwargs)

    yield factory
    StubHandle.instances = []


@pytest.fixture
def no_certificates():
    """Certificate store that never resolves a bundle."""
    return CertificateStore()


@pytest.fixture
def executor_for(stub_handle, no_certificates):
    """Build an executor around a scripted StubHandle."""

    def factory(**kwargs):
        return TransportExecutor(handle_factory=stub_handle(**kwargs), certificates=no_certificates)

    return factory


@pytest.fixture
def base_url():
    return "https://api.example.com"


@pytest.fixture
def mock_responses():
    """Mock HTTP responses using responses library."""
    with responses_lib.RequestsMock() as rsps:
        yield rsps


class TrickleHandler(BaseHTTPRequestHandler):
    """Sends the headers at once, then the body one byte every half second."""

    body = b"abcdef"
    delay = 0.5

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        for i in range(len(self.body)):
            try:
                self.wfile.write(self.body[i:i + 1])
                self.wfile.flush()
            except OSError:
                return
            time.sleep(self.delay)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def trickle_server():
    """Local HTTP server in a background thread; yields its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), TrickleHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
