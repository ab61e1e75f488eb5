"""Fallback body served when the installer cannot be relayed.

The body is read by humans (comment block) and piped straight into
``iex`` by the client, so every non-comment line must be a valid
PowerShell statement.
"""

import re
from typing import Optional

# PowerShell closes a single-quoted string on any of these; doubling escapes them
QUOTE_CHARS = re.compile("['‘’‚‛]")


class FallbackNotice:
    """What went wrong and where the user can get the script directly."""

    def __init__(self, reason: str, guidance_url: str, support_email: Optional[str] = None):
        self.reason = reason
        self.guidance_url = guidance_url
        self.support_email = support_email


def _single_line(text: str) -> str:
    """Collapse newlines and control characters so text fits on one line."""
    return re.sub(r"[\x00-\x1f\x7f]+", " ", str(text)).strip()


def ps_quote(text: str) -> str:
    """Quote text as a PowerShell single-quoted (non-expanding) string."""
    return "'" + QUOTE_CHARS.sub(lambda m: m.group(0) * 2, _single_line(text)) + "'"


def _write_host(text: str, color: Optional[str] = None) -> str:
    line = f"Write-Host {ps_quote(text)}"
    if color:
        line += f" -ForegroundColor {color}"
    return line


def render_fallback(notice: FallbackNotice) -> str:
    """Render the comment block followed by Write-Host statements."""
    reason = _single_line(notice.reason)
    command = f"iwr -useb {_single_line(notice.guidance_url)} | iex"

    lines = [
        "# SouliTEK Installer - Error",
        "# Failed to fetch installer from GitHub",
        f"# Error: {reason}",
        "#",
        "# Please try again or use the direct GitHub URL:",
        f"# {command}",
        "#",
    ]
    if notice.support_email:
        lines.append(f"# For support: {_single_line(notice.support_email)}")
    lines += [
        "",
        _write_host("Error: Unable to fetch installer from server", "Red"),
        _write_host(f"Error details: {reason}", "Yellow"),
        _write_host(""),
        _write_host("Please try the direct GitHub URL instead:", "Cyan"),
        _write_host(command, "White"),
    ]
    return "\n".join(lines) + "\n"
