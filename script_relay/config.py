"""Configuration constants and paths for the script relay."""

import os
import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

# Base directories
RELAY_DIR = Path(__file__).parent.parent

# Upstream installer (raw GitHub, no redirects)
UPSTREAM_URL = "https://raw.githubusercontent.com/Soulitek/Soulitek-All-In-One-Scripts/main/Install-SouliTEK.ps1"
UPSTREAM_USER_AGENT = "SouliTEK-Relay/1.0"
FETCH_TIMEOUT_SECONDS = 30

# Both must appear in the body or it is treated as an error page
REQUIRED_MARKERS = ("SouliTEK", "PowerShell")

SUPPORT_EMAIL = "letstalk@soulitek.co.il"
POWERED_BY = "SouliTEK"

# Self-hosted download log
LOG_ENABLED = True
LOG_FILE = RELAY_DIR / "install-downloads.log"

# Server configuration
DEFAULT_PORT = 8080

# Optional YAML overrides, e.g.
#   upstream_url: https://...
#   timeout: 10
#   log_enabled: false
#   log_file: /var/log/install-downloads.log
CONFIG_FILE = RELAY_DIR / "relay.yaml"

_TRUE_VALUES = ("1", "true", "yes", "on")
_SETTING_NAMES = {
    "upstream_url", "timeout", "log_enabled", "log_file", "port",
    "served_by", "user_agent", "markers", "support_email",
}


def load_dotenv(env_file: Path = RELAY_DIR / ".env") -> None:
    """Load KEY=VALUE lines from a .env file without overriding the environment."""
    if not env_file.exists():
        return
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, _, value = line.partition("=")
            os.environ.setdefault(key.strip(), value.strip())


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def load_yaml_config(path: Path) -> dict:
    """Read a YAML mapping of overrides. Missing file means no overrides."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid relay config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Relay config {path} must be a mapping, got {type(data).__name__}")
    return data


class RelayConfig:
    """Settings for one deployment of the relay.

    Built once per process. ``served_by`` identifies the deployment in the
    ``X-Served-By`` response header.
    """

    def __init__(self, upstream_url: str = UPSTREAM_URL,
                 timeout: float = FETCH_TIMEOUT_SECONDS,
                 log_enabled: bool = LOG_ENABLED,
                 log_file: Path = LOG_FILE,
                 port: int = DEFAULT_PORT,
                 served_by: str = "SouliTEK-Relay",
                 user_agent: str = UPSTREAM_USER_AGENT,
                 markers=REQUIRED_MARKERS,
                 support_email: str = SUPPORT_EMAIL):
        self.upstream_url = upstream_url
        self.timeout = float(timeout)
        self.log_enabled = log_enabled
        self.log_file = Path(log_file)
        self.port = int(port)
        self.served_by = served_by
        self.user_agent = user_agent
        self.markers = tuple(markers)
        self.support_email = support_email


def load_config(environ=None, config_file=None, **overrides) -> RelayConfig:
    """Build a RelayConfig from defaults, the YAML file and the environment.

    Later sources win: defaults < YAML < environment < keyword overrides.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    if config_file is None:
        config_file = environ.get("RELAY_CONFIG") or CONFIG_FILE
    settings = load_yaml_config(Path(config_file))

    env_map = {
        "RELAY_UPSTREAM_URL": "upstream_url",
        "RELAY_TIMEOUT": "timeout",
        "RELAY_LOG_ENABLED": "log_enabled",
        "RELAY_LOG_FILE": "log_file",
        "RELAY_PORT": "port",
    }
    for env_key, name in env_map.items():
        if environ.get(env_key):
            settings[name] = environ[env_key]

    # Relative paths from the YAML file or environment are relative to the repo
    if "log_file" in settings and not Path(settings["log_file"]).is_absolute():
        settings["log_file"] = RELAY_DIR / settings["log_file"]

    settings.update(overrides)

    if "log_enabled" in settings:
        settings["log_enabled"] = _as_bool(settings["log_enabled"])

    unknown = set(settings) - _SETTING_NAMES
    if unknown:
        logger.warning(f"Ignoring unknown relay settings: {', '.join(sorted(unknown))}")
        for name in unknown:
            del settings[name]

    return RelayConfig(**settings)
