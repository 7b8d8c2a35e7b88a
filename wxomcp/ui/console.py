"""Shared Rich console for human-facing CLI output.

Everything goes to stderr so stdout stays free for JSON output and for the
MCP stdio transport.
"""

from __future__ import annotations

from rich.console import Console
from rich.theme import Theme

WXO_THEME = Theme(
    {
        "info": "cyan",
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "heading": "bold cyan",
        "muted": "dim",
    }
)

err_console = Console(stderr=True, theme=WXO_THEME)
