"""MCP tool registry: one declaration per tool, with its schema and handler."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wxomcp.core.services import OrchestrateServices

Handler = Callable[["OrchestrateServices", dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: Handler


TOOL_REGISTRY: dict[str, ToolDefinition] = {}


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


def _string(description: str = "", enum: list[str] | None = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string"}
    if description:
        prop["description"] = description
    if enum:
        prop["enum"] = enum
    return prop


def _number(description: str = "") -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "number"}
    if description:
        prop["description"] = description
    return prop


def _object(description: str = "") -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "object", "additionalProperties": True}
    if description:
        prop["description"] = description
    return prop


AGENT_REF = {
    "agent_id": _string("Agent ID"),
    "agent_name": _string('Agent name or display name, e.g. "TimeWeatherAgent"'),
}
PAGING = {"limit": _number("Maximum number of items"), "offset": _number("Items to skip")}


def register(
    name: str,
    description: str,
    properties: dict[str, Any] | None = None,
    required: list[str] | None = None,
) -> Callable[[Handler], Handler]:
    """Declare a tool; the decorated coroutine handles its calls."""

    def decorator(handler: Handler) -> Handler:
        if name in TOOL_REGISTRY:
            raise ValueError(f"Duplicate tool name: {name}")
        TOOL_REGISTRY[name] = ToolDefinition(name, description, _schema(properties, required), handler)
        return handler

    return decorator


def _int(args: dict[str, Any], key: str, default: int) -> int:
    value = args.get(key)
    return default if value is None else int(value)


def _require_one_of(args: dict[str, Any], *keys: str) -> None:
    if not any(args.get(key) for key in keys):
        raise ValueError(f"Provide {' or '.join(keys)}")


# --- Tools (skills) ---


@register(
    "list_skills",
    "List all available tools/skills in the Watson Orchestrate catalog",
    PAGING,
)
async def list_skills(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.list_tools(_int(args, "limit", 100), _int(args, "offset", 0))


@register(
    "list_tools_with_connections",
    "List Watson Orchestrate tools grouped by connection status: tools that require an "
    "API key/OAuth connection vs standard tools.",
    {"limit": _number("Maximum number of tools to inspect")},
)
async def list_tools_with_connections(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.list_tools_with_connections(_int(args, "limit", 100))


@register(
    "list_standard_tools",
    "List only standard tools (tools with no connections), with an accurate count.",
    {"limit": _number("Maximum number of tools to inspect")},
)
async def list_standard_tools(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.list_standard_tools(_int(args, "limit", 100))


@register(
    "execute_tool",
    "Execute a Watson Orchestrate tool by name or ID. Resolves tool names to IDs, ensures "
    "an agent has the tool, then invokes it. Pass parameters as a JSON object if needed.",
    {
        "tool_name": _string('Tool name, e.g. "News Search Tool"'),
        "tool_id": _string("Tool ID"),
        "parameters": _object("Tool parameters"),
        "agent_id": _string("Agent to run the tool with; defaults to the internal test agent"),
    },
)
async def execute_tool(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.execute_tool(
        tool_id=args.get("tool_id"),
        tool_name=args.get("tool_name"),
        parameters=args.get("parameters"),
        agent_id=args.get("agent_id"),
    )


@register(
    "get_skill",
    "Get a specific skill/tool by ID, including display name, description, and binding.",
    {"skill_id": _string("Tool ID")},
    ["skill_id"],
)
async def get_skill(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.get_tool(args["skill_id"])


@register("delete_skill", "Delete a skill by ID", {"skill_id": _string("Tool ID")}, ["skill_id"])
async def delete_skill(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.delete_tool(args["skill_id"])


@register(
    "deploy_skill",
    'Deploy a tool from an OpenAPI spec. Set openapi_spec["x-ibm-connection-id"] to bind a connection.',
    {
        "tool_spec": _object("Tool name, description, permission"),
        "openapi_spec": _object("OpenAPI 3 document"),
    },
    ["tool_spec", "openapi_spec"],
)
async def deploy_skill(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.deploy_tool(args.get("tool_spec") or {}, args.get("openapi_spec") or {})


@register(
    "update_skill",
    "Update a tool (name, display_name, description, permission)",
    {"skill_id": _string("Tool ID"), "skill_json": _object("Fields to update")},
    ["skill_id", "skill_json"],
)
async def update_skill(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.update_tool(args["skill_id"], args.get("skill_json") or {})


@register(
    "copy_skill",
    "Copy a tool. Creates a new tool with the same spec and connection. Use new_name for a "
    "custom name (letters, digits, underscores).",
    {
        "skill_id": _string("Tool ID to copy"),
        "skill_name": _string("Tool name to copy, when the ID is unknown"),
        "new_name": _string("Name for the copy"),
    },
)
async def copy_skill(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    _require_one_of(args, "skill_id", "skill_name")
    return await services.tools.copy_tool(
        tool_id=args.get("skill_id"),
        tool_name=args.get("skill_name"),
        new_name=args.get("new_name"),
    )


@register(
    "deploy_tool_from_url",
    "Create a tool from a URL. APIs with an API key in the query get a connection; public "
    "APIs become standard tools.",
    {
        "url": _string("Example request URL"),
        "tool_name": _string("Tool name"),
        "description": _string("Tool description"),
    },
    ["url", "tool_name"],
)
async def deploy_tool_from_url(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.deploy_tool_from_url(
        args["url"], args["tool_name"], args.get("description") or ""
    )


@register(
    "create_tool_and_assign_to_agent",
    "Create a tool from a URL and assign it to an agent in one step.",
    {
        "url": _string("Example request URL"),
        "tool_name": _string("Tool name"),
        "agent_name": _string("Agent to assign the tool to"),
        "description": _string("Tool description"),
    },
    ["url", "tool_name", "agent_name"],
)
async def create_tool_and_assign_to_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.create_tool_and_assign_to_agent(
        args["url"], args["tool_name"], args["agent_name"], args.get("description") or ""
    )


@register(
    "assign_tool_to_agent",
    "Assign a tool to an agent (add to its toolkit). Use tool_name or tool_id, agent_name or agent_id.",
    {"tool_id": _string("Tool ID"), "tool_name": _string("Tool name"), **AGENT_REF},
)
async def assign_tool_to_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.agents.assign_tool_to_agent(
        tool_id=args.get("tool_id"),
        tool_name=args.get("tool_name"),
        agent_id=args.get("agent_id"),
        agent_name=args.get("agent_name"),
    )


@register(
    "test_tool_local",
    "Test an API endpoint locally with a direct HTTP GET, without Watson Orchestrate.",
    {
        "url": _string("URL to request"),
        "params": {"type": "object", "additionalProperties": {"type": "string"}},
    },
    ["url"],
)
async def test_tool_local(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.tools.test_tool_local(args["url"], args.get("params"))


# --- Agents ---


@register("list_agents", "List all available agents", PAGING)
async def list_agents(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.agents.list_agents(_int(args, "limit", 20), _int(args, "offset", 0))


@register(
    "create_agent",
    "Create an agent. Pass a tools array to assign tool IDs.",
    {
        "name": _string(),
        "description": _string(),
        "model_id": _string("LLM model ID"),
        "instructions": _string(),
        "tools": {"type": "array", "items": {"type": "string"}},
    },
    ["name", "description", "model_id", "instructions"],
)
async def create_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.agents.create_agent(
        args["name"],
        args["description"],
        args["model_id"],
        args["instructions"],
        args.get("tools"),
    )


@register(
    "get_agent",
    "Get agent details by ID: config, assigned tools, instructions, and model.",
    {"agent_id": _string("Agent ID")},
    ["agent_id"],
)
async def get_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.agents.get_agent(args["agent_id"])


@register(
    "get_agent_chat_starter_settings",
    "Get chat starter settings for an agent: welcome message and quick prompts.",
    AGENT_REF,
)
async def get_agent_chat_starter_settings(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    _require_one_of(args, "agent_id", "agent_name")
    agent_id = await services.agents.resolve_agent_id(args.get("agent_id"), args.get("agent_name"))
    return await services.agents.get_chat_starter_settings(agent_id)


@register(
    "update_agent_chat_starter_settings",
    "Update chat starter settings: welcome_message and quick_prompts (array of {title, prompt}).",
    {
        **AGENT_REF,
        "welcome_message": _string(),
        "quick_prompts": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "prompt": {"type": "string"},
                    "subtitle": {"type": "string"},
                },
                "required": ["title", "prompt"],
            },
        },
    },
)
async def update_agent_chat_starter_settings(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    _require_one_of(args, "agent_id", "agent_name")
    return await services.agents.update_agent_chat_starter_settings(
        args.get("agent_id"), args.get("agent_name"), args
    )


@register(
    "list_agent_tools",
    "List tools assigned to an agent, with display names and descriptions when available.",
    AGENT_REF,
)
async def list_agent_tools(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    _require_one_of(args, "agent_id", "agent_name")
    return await services.agents.list_agent_tools(args.get("agent_id"), args.get("agent_name"))


@register(
    "update_agent",
    "Update an agent by name or ID. The payload may carry instructions, tools, description, "
    "welcome_message and quick_prompts.",
    {**AGENT_REF, "payload": _object("Fields to update")},
    ["payload"],
)
async def update_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    _require_one_of(args, "agent_id", "agent_name")
    return await services.agents.update_agent_by_name_or_id(
        args.get("agent_id"), args.get("agent_name"), args.get("payload") or {}
    )


@register(
    "update_agent_instructions_from_tools",
    "Rewrite an agent's instructions from its assigned tools.",
    AGENT_REF,
)
async def update_agent_instructions_from_tools(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    _require_one_of(args, "agent_id", "agent_name")
    return await services.agents.update_agent_instructions_from_tools(
        args.get("agent_id"), args.get("agent_name")
    )


@register(
    "invoke_agent",
    "Chat with an agent by name or ID and return its reply.",
    {**AGENT_REF, "message": _string("Message to send")},
    ["message"],
)
async def invoke_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.agents.invoke_agent(
        args.get("agent_id"), args.get("agent_name"), args.get("message") or ""
    )


@register("delete_agent", "Delete an agent by ID", {"agent_id": _string("Agent ID")}, ["agent_id"])
async def delete_agent(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.agents.delete_agent(args["agent_id"])


# --- Connections ---


@register(
    "list_connectors",
    "List available connector applications from the catalog",
    {"limit": _number("Maximum number of connectors")},
)
async def list_connectors(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.connections.list_connectors(_int(args, "limit", 50))


@register(
    "list_connections",
    "List configured connections (scope: draft, live, or all)",
    {"scope": _string("Connection scope", enum=["draft", "live", "all"])},
)
async def list_connections(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    scope = args.get("scope") or "all"
    if scope == "all":
        return await services.connections.list_all_connections()
    return await services.connections.list_connections(scope)


@register(
    "list_active_live_connections",
    "List only active and live connections (not tools), deduplicated.",
)
async def list_active_live_connections(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.connections.list_active_live_connections()


@register("get_connection", "Get a connection by app_id", {"app_id": _string()}, ["app_id"])
async def get_connection(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.connections.get_connection(args["app_id"])


@register(
    "create_connection",
    "Create a connection. Then use configure_connection for credentials.",
    {"app_id": _string(), "display_name": _string()},
    ["app_id"],
)
async def create_connection(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.connections.create_connection(args["app_id"], args.get("display_name"))


@register("delete_connection", "Delete a connection by app_id", {"app_id": _string()}, ["app_id"])
async def delete_connection(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.connections.delete_connection(args["app_id"])


@register(
    "configure_connection",
    "Configure connection credentials (api_key, basic, bearer)",
    {
        "app_id": _string(),
        "kind": _string(enum=["api_key", "basic", "bearer"]),
        "env": _string(enum=["draft", "live"]),
        "api_key": _string(),
        "username": _string(),
        "password": _string(),
        "token": _string(),
        "server_url": _string(),
    },
    ["app_id", "kind"],
)
async def configure_connection(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.connections.configure_connection(
        args["app_id"],
        args["kind"],
        args.get("env") or "draft",
        api_key=args.get("api_key"),
        username=args.get("username"),
        password=args.get("password"),
        token=args.get("token"),
        server_url=args.get("server_url"),
    )


# --- Flows ---


@register("list_flows", "List all available flows", PAGING)
async def list_flows(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.flows.list_flows(_int(args, "limit", 20), _int(args, "offset", 0))


@register("create_flow", "Create or update a flow", {"flow_json": _object("Flow definition")}, ["flow_json"])
async def create_flow(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.flows.create_flow(args["flow_json"])


@register("get_flow", "Get a flow by ID", {"flow_id": _string()}, ["flow_id"])
async def get_flow(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.flows.get_flow(args["flow_id"])


@register("delete_flow", "Delete a flow by ID", {"flow_id": _string()}, ["flow_id"])
async def delete_flow(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.flows.delete_flow(args["flow_id"])


# --- Models ---


@register("list_models", "List LLM models available to agents")
async def list_models(services: OrchestrateServices, args: dict[str, Any]) -> Any:
    return await services.models.list_models()
