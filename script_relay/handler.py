"""The relay request handler shared by the self-hosted and serverless shells."""

import logging
from http.server import BaseHTTPRequestHandler
from typing import Dict, Optional

import requests

from .access_log import LogWriter, NullLogWriter, RequestLogEntry
from .config import RelayConfig, POWERED_BY
from .fallback import FallbackNotice, render_fallback
from .upstream import FetchError, FetchResult, fetch
from .utils import get_client_ip

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/plain; charset=utf-8"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class ResponseEnvelope:
    """Status, ordered headers and body for exactly one response."""

    def __init__(self, status_code: int, headers: Dict[str, str], body: bytes):
        self.status_code = status_code
        self.headers = headers
        self.body = body

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def __repr__(self):
        return f"ResponseEnvelope({self.status_code}, {len(self.body)} bytes)"


class Exchange:
    """Per-request view of the platform's request and response objects."""

    def read_header(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def client_address(self) -> Optional[str]:
        raise NotImplementedError

    def set_status(self, code: int) -> None:
        raise NotImplementedError

    def set_header(self, name: str, value: str) -> None:
        raise NotImplementedError

    def write_body(self, body: bytes) -> None:
        raise NotImplementedError

    def send(self, envelope: ResponseEnvelope) -> None:
        self.set_status(envelope.status_code)
        for name, value in envelope.headers.items():
            self.set_header(name, value)
        self.write_body(envelope.body)


class RequestHandlerExchange(Exchange):
    """Exchange over an http.server BaseHTTPRequestHandler.

    Status and headers are buffered and only go out together with the body.
    """

    def __init__(self, request: BaseHTTPRequestHandler):
        self.request = request
        self._status = 200
        self._headers = []

    def read_header(self, name):
        return self.request.headers.get(name)

    def client_address(self):
        address = getattr(self.request, "client_address", None)
        if not address:
            return None
        return address[0]

    def set_status(self, code):
        self._status = code

    def set_header(self, name, value):
        self._headers.append((name, value))

    def write_body(self, body):
        self.request.send_response(self._status)
        for name, value in self._headers:
            self.request.send_header(name, value)
        self.request.send_header("Content-Length", str(len(body)))
        self.request.end_headers()
        if self.request.command != "HEAD":
            self.request.wfile.write(body)


class RelayHandler:
    """Fetch, validate, serve, log; fall back to printable guidance on failure."""

    def __init__(self, config: RelayConfig, log_writer: Optional[LogWriter] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.log_writer = log_writer or NullLogWriter()
        self.session = session

    def _base_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": CONTENT_TYPE}
        headers.update(NO_CACHE_HEADERS)
        headers["X-Content-Type-Options"] = "nosniff"
        headers["Access-Control-Allow-Origin"] = "*"
        headers["X-Served-By"] = self.config.served_by
        headers["X-Powered-By"] = POWERED_BY
        return headers

    def success_response(self, body: bytes) -> ResponseEnvelope:
        return ResponseEnvelope(200, self._base_headers(), body)

    def failure_response(self, error: FetchError) -> ResponseEnvelope:
        notice = FallbackNotice(
            reason=error.reason,
            guidance_url=self.config.upstream_url,
            support_email=self.config.support_email,
        )
        return ResponseEnvelope(error.status_code, self._base_headers(),
                                render_fallback(notice).encode("utf-8"))

    def build_response(self) -> ResponseEnvelope:
        """Fetch the upstream once and turn the result into an envelope."""
        try:
            result = fetch(self.config, self.session)
        except Exception as e:
            logger.exception("Unexpected error while fetching installer")
            result = FetchResult.failure(FetchError(f"internal error: {e}"))

        if result.ok:
            return self.success_response(result.body)
        return self.failure_response(result.error)

    def handle(self, exchange: Exchange) -> ResponseEnvelope:
        """Answer one request. Never raises."""
        envelope = self.build_response()
        self._log_request(exchange)
        try:
            exchange.send(envelope)
        except (BrokenPipeError, ConnectionResetError, OSError) as e:
            logger.info(f"Client disconnected before response was sent: {e}")
        return envelope

    def _log_request(self, exchange: Exchange) -> None:
        try:
            entry = RequestLogEntry(
                client_ip=get_client_ip(exchange.read_header, exchange.client_address()),
                user_agent=exchange.read_header("User-Agent"),
                referer=exchange.read_header("Referer"),
            )
            self.log_writer.record(entry)
        except Exception as e:
            logger.warning(f"Request log failed: {e}")
