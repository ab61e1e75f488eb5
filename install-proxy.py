#!/usr/bin/env python3
"""
SouliTEK installer proxy - self-hosted entry point

Serves the latest installer from GitHub under your own domain and logs
downloads. Users run:  iwr -useb soulitek.co.il/install | iex

The implementation lives in the script_relay/ package:
  - script_relay/config.py     - Defaults, environment and YAML settings
  - script_relay/upstream.py   - GitHub fetch and content validation
  - script_relay/handler.py    - Request handler shared with api/install.py
  - script_relay/fallback.py   - PowerShell-safe error body
  - script_relay/access_log.py - Download log
  - script_relay/server.py     - Threading HTTP server and CLI
"""

import sys
import os

# Add the relay package directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from script_relay.server import main

if __name__ == "__main__":
    main(sys.argv[1:] or ["server"])
