"""Main CLI entry point for wxomcp."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from wxomcp import __version__

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int) -> None:
    """Send log records to stderr; stdout is reserved for output and MCP."""
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT, force=True)


@click.group()
@click.version_option(version=__version__, prog_name="wxomcp")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Load settings from this .env file before ./.env",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, env_file: Path | None) -> None:
    """Serve the watsonx Orchestrate API to MCP clients."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["env_file"] = env_file
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the MCP server on stdio."""
    from wxomcp.cli.serve import run_serve

    verbose = ctx.obj["verbose"]
    configure_logging(logging.DEBUG if verbose else logging.INFO)
    run_serve(env_file=ctx.obj["env_file"])


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate configuration and acquire an IAM token."""
    from wxomcp.cli.check import run_check

    run_check(env_file=ctx.obj["env_file"])


@cli.command(
    epilog="""\b
Examples:
  wxomcp invoke TimeWeatherAgent "What time is it in Amsterdam?"
  wxomcp invoke 3f2c9a1e-agent-id "Hello" --max-attempts 30
""",
)
@click.argument("agent")
@click.argument("message")
@click.option(
    "--interval",
    type=click.FloatRange(min=0),
    default=2.0,
    show_default=True,
    help="Seconds between message polls",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=15,
    show_default=True,
    help="Message polls before giving up",
)
@click.pass_context
def invoke(
    ctx: click.Context,
    agent: str,
    message: str,
    interval: float,
    max_attempts: int,
) -> None:
    """Send MESSAGE to AGENT (name or id) and print the reply as JSON."""
    from wxomcp.cli.invoke import run_invoke

    run_invoke(
        env_file=ctx.obj["env_file"],
        agent=agent,
        message=message,
        interval=interval,
        max_attempts=max_attempts,
    )


@cli.command(
    epilog="""\b
Examples:
  wxomcp config
  wxomcp config --format yaml
  wxomcp --env-file ~/.wxo.env config --name wxo-prod
""",
)
@click.option("--name", default="wxomcp", show_default=True, help="MCP server name")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "yaml"]),
    default="json",
    show_default=True,
    help="Output format for config snippet",
)
@click.pass_context
def config(ctx: click.Context, name: str, output_format: str) -> None:
    """Print a ready-to-paste MCP client config snippet."""
    from wxomcp.utils.config import build_mcp_config_payload, render_config_payload

    payload = build_mcp_config_payload(server_name=name, env_file=ctx.obj["env_file"])
    click.echo(render_config_payload(payload, output_format))


if __name__ == "__main__":
    cli()
