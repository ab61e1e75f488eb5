"""Outbound fetch against a stub upstream."""

import socket

import pytest

from script_relay.config import RelayConfig
from script_relay.upstream import (
    ContentInvalid, FetchResult, UpstreamError, UpstreamUnreachable, fetch, fetch_script,
)

from conftest import SCRIPT


def test_fetch_script(config, upstream):
    assert fetch_script(config) == SCRIPT
    assert len(upstream.requests) == 1
    sent = {k.lower(): v for k, v in upstream.requests[0].items()}
    assert sent["user-agent"] == "SouliTEK-Relay/1.0"
    assert sent["accept"] == "text/plain"


def test_status_error(config, upstream):
    upstream.status = 404
    with pytest.raises(UpstreamError) as exc:
        fetch_script(config)
    assert exc.value.reason == "status 404: Not Found"
    assert exc.value.status_code == 502


def test_invalid_content(config, upstream):
    upstream.body = b"<html>rate limited</html>"
    with pytest.raises(ContentInvalid) as exc:
        fetch_script(config)
    assert exc.value.reason == "invalid script content received"
    assert exc.value.status_code == 500


def test_no_charset_is_utf8(config, upstream):
    upstream.content_type = "text/plain"
    upstream.body = "# SouliTEK – PowerShell".encode("utf-8")
    assert fetch_script(config) == upstream.body


def test_custom_markers(upstream):
    config = RelayConfig(upstream_url=upstream.url, timeout=5, markers=("#Requires",))
    assert fetch_script(config) == SCRIPT


def test_unreachable():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    config = RelayConfig(upstream_url=f"http://127.0.0.1:{port}/x.ps1", timeout=2)
    with pytest.raises(UpstreamUnreachable) as exc:
        fetch_script(config)
    assert exc.value.status_code == 502
    assert exc.value.reason


def test_fetch_result(config, upstream):
    result = fetch(config)
    assert result.ok
    assert result.body == SCRIPT
    assert result.length == len(SCRIPT)
    assert result.reason is None

    upstream.status = 500
    result = fetch(config)
    assert not result.ok
    assert result.error.kind == "UpstreamError"
    assert result.reason == "status 500: Internal Server Error"
    assert result.length == 0
    assert "UpstreamError" in repr(result)


def test_result_constructors():
    assert FetchResult.success(b"x").ok
    failure = FetchResult.failure(ContentInvalid())
    assert not failure.ok
    assert failure.error.kind == "ContentInvalid"


def test_timeout_covers_whole_body(upstream):
    upstream.chunks = 5
    upstream.chunk_delay = 0.8
    config = RelayConfig(upstream_url=upstream.url, timeout=1)
    with pytest.raises(UpstreamUnreachable) as exc:
        fetch_script(config)
    assert exc.value.reason == "read timed out after 1s"
