"""
SouliTEK installer - Vercel serverless function

Fetches the latest installer from GitHub and serves it directly (no
redirect), since PowerShell's `iwr | iex` will not follow a 308.

Usage: iwr -useb get.soulitek.co.il | iex
"""

import os
import sys
from http.server import BaseHTTPRequestHandler

# Add the repo root to the path so the script_relay package imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from script_relay.config import load_config
from script_relay.access_log import make_log_writer
from script_relay.handler import RelayHandler, RequestHandlerExchange
from script_relay.utils import setup_logging

setup_logging()

config = load_config(served_by="Vercel-Function")
relay = RelayHandler(config, make_log_writer(config, console=True))


class handler(BaseHTTPRequestHandler):

    def log_message(self, format, *args):
        pass  # Platform logs already record the invocation

    def do_GET(self):
        relay.handle(RequestHandlerExchange(self))

    def do_HEAD(self):
        relay.handle(RequestHandlerExchange(self))

    def do_POST(self):
        relay.handle(RequestHandlerExchange(self))
