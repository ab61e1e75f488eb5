"""Utility functions for the script relay."""

import fcntl
import ipaddress
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

UNKNOWN_IP = "Unknown"

# Checked in order, before the raw connection address
PROXY_IP_HEADERS = (
    "X-Forwarded-For",
    "CF-Connecting-IP",         # Cloudflare
    "X-Real-IP",                # nginx
    "X-Vercel-Forwarded-For",   # Vercel edge
)


def setup_logging(level=logging.INFO, log_path: Optional[Path] = None) -> None:
    """Configure root logging to stderr, plus a rotating file when log_path is set."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    if log_path is None:
        return
    handler = RotatingFileHandler(
        log_path, maxBytes=5 * 1024 * 1024, backupCount=3  # 5MB, keep 3 backups
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logging.getLogger().addHandler(handler)


def is_valid_ip(value: str) -> bool:
    """True for a syntactically valid IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_client_ip(read_header: Callable[[str], Optional[str]],
                  remote_addr: Optional[str] = None) -> str:
    """Resolve the client address from proxy headers, then the connection.

    The first non-empty candidate that parses as an IP wins. For
    comma-separated lists only the first element is considered.
    """
    candidates = [read_header(name) for name in PROXY_IP_HEADERS]
    candidates.append(remote_addr)

    for value in candidates:
        if not value:
            continue
        ip = value.split(",")[0].strip()
        if is_valid_ip(ip):
            return ip
    return UNKNOWN_IP


def append_line_locked(filepath: Path, line: str) -> None:
    """Append one newline-terminated line under an exclusive flock.

    The whole line goes out in a single write so concurrent writers never
    interleave within an entry.
    """
    if not line.endswith("\n"):
        line += "\n"
    with open(filepath, "a", encoding="utf-8") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            f.write(line)
            f.flush()
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
