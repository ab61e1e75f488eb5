"""Single outbound fetch of the installer script, plus content validation."""

import logging
import threading
from typing import Optional

import requests

from .config import RelayConfig

logger = logging.getLogger(__name__)

INVALID_CONTENT_REASON = "invalid script content received"


class FetchError(Exception):
    """Base class for every way the upstream fetch can fail."""

    kind = "FetchError"
    status_code = 500

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UpstreamUnreachable(FetchError):
    """DNS failure, refused connection, timeout."""

    kind = "UpstreamUnreachable"
    status_code = 502


class UpstreamError(FetchError):
    """Upstream answered with a non-2xx status."""

    kind = "UpstreamError"
    status_code = 502

    def __init__(self, status: int, status_text: str):
        super().__init__(f"status {status}: {status_text}")


class ContentInvalid(FetchError):
    """2xx response whose body does not look like the installer."""

    kind = "ContentInvalid"
    status_code = 500

    def __init__(self, reason: str = INVALID_CONTENT_REASON):
        super().__init__(reason)


class FetchResult:
    """Outcome of one fetch: either a script body or a failure reason."""

    def __init__(self, body: Optional[bytes] = None, error: Optional[FetchError] = None):
        self.body = body
        self.error = error

    @classmethod
    def success(cls, body: bytes) -> "FetchResult":
        return cls(body=body)

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def length(self) -> int:
        return len(self.body) if self.body is not None else 0

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None

    def __repr__(self):
        if self.ok:
            return f"FetchResult.success(length={self.length})"
        return f"FetchResult.failure({self.error.kind}: {self.reason!r})"


def validate_script(text: str, markers) -> None:
    """Raise ContentInvalid unless every marker substring is present."""
    missing = [m for m in markers if m not in text]
    if missing:
        logger.warning(f"Upstream body missing markers: {', '.join(missing)}")
        raise ContentInvalid()


def _decode(response: requests.Response) -> str:
    # requests assumes ISO-8859-1 for text/* without a charset
    if "charset" not in response.headers.get("Content-Type", "").lower():
        response.encoding = "utf-8"
    return response.text


def _get_within(http, url: str, headers: dict, timeout: float) -> requests.Response:
    """GET on a worker thread and wait at most ``timeout`` for the whole response.

    requests only bounds connect and each socket read, not the total. A
    worker still running at the deadline is abandoned.
    """
    outcome = {}

    def worker():
        try:
            outcome["response"] = http.get(url, headers=headers, timeout=timeout)
        except Exception as e:
            outcome["error"] = e

    thread = threading.Thread(target=worker, name="upstream-fetch", daemon=True)
    thread.start()
    thread.join(timeout)

    if thread.is_alive():
        raise UpstreamUnreachable(f"read timed out after {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["response"]


def fetch_script(config: RelayConfig, session: Optional[requests.Session] = None) -> bytes:
    """GET the upstream script once and return its raw bytes.

    ``config.timeout`` bounds the whole fetch. Raises a FetchError subclass
    on any failure. No retries.
    """
    http = session or requests
    headers = {
        "User-Agent": config.user_agent,
        "Accept": "text/plain",
    }

    try:
        response = _get_within(http, config.upstream_url, headers, config.timeout)
    except requests.RequestException as e:
        raise UpstreamUnreachable(str(e)) from e

    if not 200 <= response.status_code <= 299:
        raise UpstreamError(response.status_code, response.reason or "")

    validate_script(_decode(response), config.markers)
    return response.content


def fetch(config: RelayConfig, session: Optional[requests.Session] = None) -> FetchResult:
    """Like fetch_script, but folds failures into a FetchResult."""
    logger.info(f"Fetching installer from {config.upstream_url}")
    try:
        body = fetch_script(config, session)
    except FetchError as e:
        logger.error(f"Error: {e.kind}: {e.reason}")
        return FetchResult.failure(e)
    logger.info(f"Successfully fetched {len(body)} bytes")
    return FetchResult.success(body)
