"""Shared fixtures: a stub GitHub upstream and an in-process relay server."""

import threading
import time
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn

import pytest

from script_relay.config import RelayConfig
from script_relay.server import make_server
from script_relay.handler import Exchange

SCRIPT = (
    "# SouliTEK All-In-One Scripts installer © 2025\n"
    "#Requires -Version 5.1\n"
    "Write-Host 'Installing SouliTEK via PowerShell...' -ForegroundColor Cyan\n"
).encode("utf-8")


class _StubServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True


class _StubHandler(BaseHTTPRequestHandler):

    def log_message(self, format, *args):
        pass

    def do_GET(self):
        stub = self.server.stub
        stub.requests.append(dict(self.headers))
        self.send_response(stub.status)
        self.send_header("Content-Type", stub.content_type)
        self.send_header("Content-Length", str(len(stub.body)))
        self.end_headers()
        if not stub.chunk_delay:
            self.wfile.write(stub.body)
            return
        # Trickle the body out in pieces
        size = max(1, len(stub.body) // stub.chunks + 1)
        try:
            for start in range(0, len(stub.body), size):
                self.wfile.write(stub.body[start:start + size])
                self.wfile.flush()
                time.sleep(stub.chunk_delay)
        except (BrokenPipeError, ConnectionResetError):
            pass


class UpstreamStub:
    """Plays raw.githubusercontent.com; status, body and send pacing are settable per test."""

    def __init__(self):
        self.status = 200
        self.body = SCRIPT
        self.content_type = "text/plain; charset=utf-8"
        self.chunks = 1
        self.chunk_delay = 0
        self.requests = []
        self._server = _StubServer(("127.0.0.1", 0), _StubHandler)
        self._server.stub = self
        self.url = f"http://127.0.0.1:{self._server.server_address[1]}/Install-SouliTEK.ps1"
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    def start(self):
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch):
    """Keep requests to 127.0.0.1 off any proxy configured in the environment."""
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")


@pytest.fixture
def upstream():
    stub = UpstreamStub()
    stub.start()
    yield stub
    stub.stop()


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "install-downloads.log"


@pytest.fixture
def config(upstream, log_file):
    return RelayConfig(upstream_url=upstream.url, timeout=5, log_file=log_file, port=0)


@pytest.fixture
def relay_url(config):
    """Base URL of a running self-hosted relay pointed at the stub upstream."""
    server = make_server(config, host="127.0.0.1")
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


class FakeExchange(Exchange):
    """In-memory Exchange for driving RelayHandler directly."""

    def __init__(self, headers=None, address="203.0.113.9"):
        self.headers = headers or {}
        self.address = address
        self.status = None
        self.response_headers = {}
        self.body = None

    def read_header(self, name):
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def client_address(self):
        return self.address

    def set_status(self, code):
        self.status = code

    def set_header(self, name, value):
        self.response_headers[name] = value

    def write_body(self, body):
        self.body = body
