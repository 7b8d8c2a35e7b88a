"""Configuration and credential check."""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path

from rich.markup import escape
from rich.table import Table

from wxomcp.core.auth.credentials import CachedToken, CredentialCache
from wxomcp.core.errors import OrchestrateError
from wxomcp.ui.console import err_console
from wxomcp.utils.config import ENV_VARS, OrchestrateSettings, load_settings


def _mask(secret: str) -> str:
    if not secret:
        return "[error]not set[/error]"
    return f"{secret[:4]}…" if len(secret) > 8 else "****"


def settings_table(settings: OrchestrateSettings) -> Table:
    table = Table(title="wxomcp settings", show_header=True, header_style="heading")
    table.add_column("Variable")
    table.add_column("Value")
    table.add_row(ENV_VARS["api_key"], _mask(settings.api_key))
    table.add_row(ENV_VARS["instance_url"], settings.instance_url or "[error]not set[/error]")
    table.add_row(ENV_VARS["iam_token_url"], settings.iam_token_url)
    table.add_row(ENV_VARS["request_timeout"], f"{settings.request_timeout:g}s")
    return table


async def _acquire(settings: OrchestrateSettings) -> CachedToken | None:
    credentials = CredentialCache(
        settings.api_key,
        settings.iam_token_url,
        timeout=settings.request_timeout,
    )
    try:
        await credentials.acquire_token()
        return credentials.cached_token
    finally:
        await credentials.aclose()


def run_check(env_file: Path | None) -> None:
    settings = load_settings(env_file)
    err_console.print(settings_table(settings))

    try:
        settings.require_complete()
        token = asyncio.run(_acquire(settings))
    except OrchestrateError as exc:
        err_console.print(f"[error]Error:[/error] {escape(str(exc))}", highlight=False)
        sys.exit(1)

    if token is not None:
        remaining = int(token.expires_at - time.time())
        err_console.print(f"[success]Token acquired[/success], expires in {remaining}s")
