"""Agent chat command implementation."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from wxomcp.core.errors import OrchestrateError, ResourceNotFound, RunTimeout
from wxomcp.core.services import OrchestrateServices
from wxomcp.models.run import PollPolicy
from wxomcp.utils.config import load_settings


async def _invoke(
    services: OrchestrateServices,
    agent: str,
    message: str,
    policy: PollPolicy,
) -> dict[str, Any]:
    try:
        try:
            agent_id = await services.agents.resolve_agent_id(agent_name=agent)
        except ResourceNotFound:
            agent_id = agent
        return await services.agents.invoke_agent(agent_id, None, message, policy=policy)
    finally:
        await services.aclose()


def run_invoke(
    env_file: Path | None,
    agent: str,
    message: str,
    interval: float,
    max_attempts: int,
) -> None:
    """Chat with an agent looked up by name, or used as an id when no name matches."""
    settings = load_settings(env_file)
    policy = PollPolicy(interval_seconds=interval, max_attempts=max_attempts)
    try:
        settings.require_complete()
        services = OrchestrateServices.from_settings(settings)
        result = asyncio.run(_invoke(services, agent, message, policy))
    except RunTimeout as exc:
        click.echo(
            f"Error: {exc} (thread {exc.handle.thread_id}, {exc.stats.attempts} polls)",
            err=True,
        )
        sys.exit(1)
    except (OrchestrateError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))
