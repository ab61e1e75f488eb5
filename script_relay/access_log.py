"""Download log: one line per relayed request.

Line format:
    [YYYY-MM-DD HH:MM:SS] IP: <ip> | User-Agent: <ua> | Referer: <referer or Direct>
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .utils import append_line_locked, UNKNOWN_IP

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class RequestLogEntry:
    """Who asked for the installer, and when."""

    def __init__(self, client_ip: str = UNKNOWN_IP, user_agent: Optional[str] = None,
                 referer: Optional[str] = None, timestamp: Optional[datetime] = None):
        self.timestamp = timestamp or datetime.now()
        self.client_ip = client_ip
        self.user_agent = user_agent
        self.referer = referer

    def format(self) -> str:
        return "[{}] IP: {} | User-Agent: {} | Referer: {}".format(
            self.timestamp.strftime(TIMESTAMP_FORMAT),
            self.client_ip,
            _clean(self.user_agent) or "Unknown",
            _clean(self.referer) or "Direct",
        )


def _clean(value: Optional[str]) -> str:
    # Header values must not be able to forge extra log lines
    if not value:
        return ""
    return value.replace("\r", " ").replace("\n", " ").strip()


class LogWriter:
    """Sink for RequestLogEntry records. ``record`` never raises."""

    def record(self, entry: RequestLogEntry) -> None:
        raise NotImplementedError


class NullLogWriter(LogWriter):
    """Logging disabled."""

    def record(self, entry: RequestLogEntry) -> None:
        pass


class ConsoleLogWriter(LogWriter):
    """Serverless variant: the platform's console stream is the log."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def record(self, entry: RequestLogEntry) -> None:
        self.log.info(f"Served {entry.format()}")


class FileLogWriter(LogWriter):
    """Self-hosted variant: append to a file shared by all request threads."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def record(self, entry: RequestLogEntry) -> None:
        try:
            append_line_locked(self.path, entry.format())
        except OSError as e:
            logger.warning(f"Could not write download log {self.path}: {e}")


def make_log_writer(config, console: bool = False) -> LogWriter:
    """Pick the writer for a deployment from its config."""
    if not config.log_enabled:
        return NullLogWriter()
    if console:
        return ConsoleLogWriter()
    return FileLogWriter(config.log_file)
