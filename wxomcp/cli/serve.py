"""MCP server command implementation."""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path

import click

from wxomcp.utils.config import load_settings

logger = logging.getLogger(__name__)


def _mcp_available() -> bool:
    try:
        return importlib.util.find_spec("mcp") is not None
    except (ImportError, ValueError):
        return False


def run_serve(env_file: Path | None) -> None:
    """Run the MCP server on stdio.

    Missing settings do not stop the server: each tool call reports them as
    a configuration error, so the client can surface the problem.
    """
    if not _mcp_available():
        click.echo("Error: mcp not installed. Install with: pip install wxomcp", err=True)
        sys.exit(1)

    settings = load_settings(env_file)
    missing = settings.missing_fields()
    if missing:
        logger.warning("Missing configuration: %s. Tool calls will fail.", ", ".join(missing))

    from wxomcp.mcp.server import run_mcp_server

    run_mcp_server(settings)
