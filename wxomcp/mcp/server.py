"""MCP server exposing the Orchestrate API as tools over stdio."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import mcp.server.stdio as mcp_stdio
import mcp.types as types
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from wxomcp import __version__
from wxomcp.core.errors import (
    ConfigurationError,
    OrchestrateError,
    RemoteCallError,
    RunTimeout,
)
from wxomcp.core.services import OrchestrateServices
from wxomcp.mcp.tools import TOOL_REGISTRY
from wxomcp.utils.config import OrchestrateSettings

logger = logging.getLogger(__name__)

SERVER_NAME = "wxomcp"


def _text_result(payload: Any, *, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=json.dumps(payload, indent=2, default=str))],
        isError=is_error,
    )


def error_payload(tool: str, exc: BaseException) -> dict[str, Any]:
    """Structured error body returned for a failed tool call."""
    payload: dict[str, Any] = {
        "status": "error",
        "tool": tool,
        "error_type": type(exc).__name__,
        "error": str(exc),
    }
    if isinstance(exc, RunTimeout):
        payload["status"] = "timeout"
        payload["thread_id"] = exc.handle.thread_id
        payload["run_id"] = exc.handle.run_id
        payload["attempts"] = exc.stats.attempts
    if isinstance(exc, RemoteCallError):
        payload["status_code"] = exc.status
        payload["body"] = exc.body
    if isinstance(exc, ConfigurationError):
        payload["missing"] = exc.missing
    return payload


class OrchestrateMCPServer:
    """MCP server whose tools call one Orchestrate instance."""

    def __init__(
        self,
        settings: OrchestrateSettings,
        services: OrchestrateServices | None = None,
    ) -> None:
        self.settings = settings
        self.services = services or OrchestrateServices.from_settings(settings)
        self.server = Server(SERVER_NAME)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.server.list_tools()  # type: ignore[misc]
        async def handle_list_tools() -> list[types.Tool]:
            return self.list_tools()

        @self.server.call_tool()  # type: ignore[misc]
        async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
            return await self.dispatch(name, arguments)

    def list_tools(self) -> list[types.Tool]:
        return [
            types.Tool(
                name=definition.name,
                description=definition.description,
                inputSchema=definition.input_schema,
            )
            for definition in TOOL_REGISTRY.values()
        ]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        """Run one tool call and map failures to an error result."""
        definition = TOOL_REGISTRY.get(name)
        if definition is None:
            return _text_result(
                {"status": "error", "tool": name, "error": f"Unknown tool: {name}"},
                is_error=True,
            )

        arguments = arguments or {}
        try:
            self.settings.require_complete()
            for key in definition.input_schema.get("required", []):
                if key not in arguments:
                    raise ValueError(f"Missing required argument: {key}")
            result = await definition.handler(self.services, arguments)
        except (OrchestrateError, ValueError) as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return _text_result(error_payload(name, exc), is_error=True)
        except Exception as exc:
            logger.exception("Unexpected error in tool %s", name)
            return _text_result(error_payload(name, exc), is_error=True)

        return _text_result(result)

    async def run_stdio(self) -> None:
        async with mcp_stdio.stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )

    async def close(self) -> None:
        await self.services.aclose()


def run_mcp_server(settings: OrchestrateSettings) -> None:
    """Serve on stdio until the client disconnects."""
    server = OrchestrateMCPServer(settings)
    logger.info("wxomcp MCP server running on stdio (%d tools)", len(TOOL_REGISTRY))

    async def main() -> None:
        try:
            await server.run_stdio()
        finally:
            await server.close()

    asyncio.run(main())
