"""Self-hosted HTTP server for the script relay."""

import sys
import argparse
import logging
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn
from pathlib import Path

from .config import RelayConfig, load_config
from .access_log import make_log_writer
from .handler import RelayHandler, RequestHandlerExchange
from .upstream import fetch
from .utils import setup_logging

logger = logging.getLogger(__name__)


class RelayHTTPServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True
    request_queue_size = 128

    def __init__(self, server_address, handler_class, relay: RelayHandler):
        self.relay = relay
        super().__init__(server_address, handler_class)


class ScriptRelayHandler(BaseHTTPRequestHandler):
    """Every method and path gets the installer (or the fallback)."""

    def log_message(self, format, *args):
        pass  # Downloads go to the access log instead

    def _relay(self):
        self.server.relay.handle(RequestHandlerExchange(self))

    def do_GET(self):
        self._relay()

    def do_HEAD(self):
        self._relay()

    def do_POST(self):
        self._relay()


def make_server(config: RelayConfig, host: str = "0.0.0.0", relay: RelayHandler = None):
    """Build (but do not start) a threading relay server."""
    if relay is None:
        relay = RelayHandler(config, make_log_writer(config))
    return RelayHTTPServer((host, config.port), ScriptRelayHandler, relay)


def run_server(config: RelayConfig, host: str = "0.0.0.0"):
    """Start the HTTP server and block."""
    server = make_server(config, host)
    if config.log_enabled:
        logger.info(f"Logging downloads to {config.log_file}")
    logger.info(f"Script relay at http://{host}:{server.server_address[1]} -> {config.upstream_url}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


def check_upstream(config: RelayConfig) -> bool:
    """Fetch once and report whether the relay would serve the script."""
    result = fetch(config)
    if result.ok:
        print(f"OK: {result.length} bytes from {config.upstream_url}")
        return True
    print(f"FAILED ({result.error.kind}): {result.reason}")
    return False


def main(argv=None):
    """Entry point for the server."""
    parser = argparse.ArgumentParser(description="SouliTEK installer relay")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    server_parser = subparsers.add_parser("server", help="Run the relay server")
    server_parser.add_argument("-p", "--port", type=int, default=None,
                               help="Port to run on (default: RELAY_PORT or 8080)")
    server_parser.add_argument("--host", default="0.0.0.0", help="Address to bind")
    server_parser.add_argument("--log-file", type=Path, default=None,
                               help="Download log path (default: RELAY_LOG_FILE)")
    server_parser.add_argument("--no-log", action="store_true", help="Disable the download log")
    server_parser.add_argument("--app-log", type=Path, default=None,
                               help="Also write server diagnostics to this rotating log file")

    subparsers.add_parser("check", help="Fetch the upstream once and report")

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO,
                  getattr(args, "app_log", None))

    if args.command == "server":
        overrides = {"served_by": "SouliTEK-Proxy"}
        if args.port is not None:
            overrides["port"] = args.port
        if args.log_file is not None:
            overrides["log_file"] = args.log_file
        if args.no_log:
            overrides["log_enabled"] = False
        run_server(load_config(**overrides), args.host)
    elif args.command == "check":
        sys.exit(0 if check_upstream(load_config()) else 1)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
