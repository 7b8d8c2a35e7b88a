"""Read access to the tool catalog shared by the agent and tool services."""

from __future__ import annotations

from typing import Any

from wxomcp.core.client import OrchestrateClient
from wxomcp.core.errors import ResourceNotFound
from wxomcp.core.resolve import extract_items, find_by_name

TOOLS_PATH = "/v1/orchestrate/tools"
TOOL_LIST_KEYS = ("items", "tools", "data")


async def list_tools(client: OrchestrateClient, limit: int = 100, offset: int = 0) -> Any:
    return await client.call(
        "GET",
        TOOLS_PATH,
        params={"limit": limit, "offset": offset},
        action="list tools",
    )


async def list_tool_items(client: OrchestrateClient, limit: int = 100) -> list[dict[str, Any]]:
    return extract_items(await list_tools(client, limit, 0), *TOOL_LIST_KEYS)


async def resolve_tool_id(
    client: OrchestrateClient,
    tool_id: str | None = None,
    tool_name: str | None = None,
) -> str:
    """Return ``tool_id`` or look ``tool_name`` up in the catalog."""
    if tool_id:
        return tool_id
    if not tool_name:
        raise ValueError("Provide tool_id or tool_name")
    match = find_by_name(await list_tool_items(client), tool_name)
    if match is None or not (match.get("id") or match.get("name")):
        raise ResourceNotFound(
            "Tool",
            tool_name,
            hint="Use list_tools_with_connections or list_skills to see available tools.",
        )
    return str(match.get("id") or match.get("name"))
