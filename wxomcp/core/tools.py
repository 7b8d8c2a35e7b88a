"""Tool (skill) management, deployment and remote execution."""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import urlsplit

import httpx

from wxomcp.core import catalog
from wxomcp.core.agents import AgentService
from wxomcp.core.client import OrchestrateClient, decode_body, raise_for_api_error
from wxomcp.core.connections import ConnectionKind, ConnectionService
from wxomcp.core.errors import OrchestrateAPIError, OrchestrateError
from wxomcp.core.openapi import (
    DEFAULT_PERMISSION,
    auth_type_of,
    build_bundle_zip,
    build_tool_spec,
    connection_app_id,
    connection_id_of,
    detect_api_key_param,
    has_connection,
    openapi_for_url,
    sanitize_tool_name,
    split_url,
    tool_spec_name,
    tool_to_openapi,
)
from wxomcp.core.resolve import extract_items
from wxomcp.core.runs.invoker import TOOL_EXECUTION_POLICY, RunPollInvoker
from wxomcp.models.run import PollPolicy, RunTarget

logger = logging.getLogger(__name__)

TOOLS_PATH = catalog.TOOLS_PATH


def execution_directive(parameters: dict[str, Any]) -> str:
    if parameters:
        return (
            "Execute the tool with these parameters. Return the raw result data.\n\n"
            f"Parameters: {json.dumps(parameters)}"
        )
    return "Execute the tool with default parameters. Return the raw result data."


def _decode_result(content: str) -> Any:
    """Structured tool output comes back as JSON text; hand it back structured."""
    try:
        value = json.loads(content)
    except ValueError:
        return content
    return value if isinstance(value, dict | list) else content


def _summary(tool: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": tool.get("id") or tool.get("name"),
        "display_name": tool.get("display_name") or tool.get("name") or tool.get("id") or "Unnamed",
        "description": tool.get("description") or "",
    }


class ToolService:
    """Tool CRUD, OpenAPI deployment, copying, and execution through a run."""

    def __init__(
        self,
        client: OrchestrateClient,
        invoker: RunPollInvoker,
        agents: AgentService,
        connections: ConnectionService,
        *,
        local_http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client = client
        self.invoker = invoker
        self.agents = agents
        self.connections = connections
        self._local_http_client = local_http_client

    async def list_tools(self, limit: int = 100, offset: int = 0) -> Any:
        return await catalog.list_tools(self.client, limit, offset)

    async def get_tool(self, tool_id: str) -> Any:
        return await self.client.call("GET", f"{TOOLS_PATH}/{tool_id}", action="get skill")

    async def delete_tool(self, tool_id: str) -> dict[str, Any]:
        await self.client.call("DELETE", f"{TOOLS_PATH}/{tool_id}", action="delete skill")
        return {"success": True, "message": f"Skill {tool_id} deleted successfully."}

    async def update_tool(self, tool_id: str, tool_json: dict[str, Any]) -> Any:
        """Update the editable fields of a tool.

        Binding, schemas and connection are fixed at creation, so only name,
        display name, description, permission, restrictions and tags are sent.
        """
        payload: dict[str, Any] = {}
        if tool_json.get("name"):
            payload["name"] = tool_spec_name(str(tool_json["name"]))
        for key in ("display_name", "description"):
            if tool_json.get(key):
                payload[key] = tool_json[key]
        payload["permission"] = tool_json.get("permission") or DEFAULT_PERMISSION
        for key in ("restrictions", "tags"):
            if tool_json.get(key):
                payload[key] = tool_json[key]

        response = await self.client.request("PUT", f"{TOOLS_PATH}/{tool_id}", json=payload)
        raise_for_api_error(response, "update skill")
        body = decode_body(response)
        return body if isinstance(body, dict | list) else {"success": True}

    async def list_tools_with_connections(self, limit: int = 100) -> dict[str, Any]:
        tools = await catalog.list_tool_items(self.client, limit)
        with_connection = [tool for tool in tools if has_connection(tool)]
        standard = [tool for tool in tools if not has_connection(tool)]
        return {
            "summary": {
                "total": len(tools),
                "tools_with_connections": len(with_connection),
                "standard_tools": len(standard),
            },
            "tools_with_connections": [
                {
                    **_summary(tool),
                    "connection_id": connection_id_of(tool),
                    "auth_type": auth_type_of(tool),
                }
                for tool in with_connection
            ],
            "standard_tools": [_summary(tool) for tool in standard],
        }

    async def list_standard_tools(self, limit: int = 100) -> dict[str, Any]:
        grouped = await self.list_tools_with_connections(limit)
        standard = grouped["standard_tools"]
        return {"count": len(standard), "standard_tools": standard}

    async def deploy_tool(self, tool_spec: dict[str, Any], openapi_spec: dict[str, Any]) -> dict[str, Any]:
        """Create a tool from an OpenAPI document and upload its artifact bundle.

        The tool exists once the create call succeeds; a failed artifact
        upload is logged and does not fail the deploy.
        """
        if not tool_spec or not openapi_spec:
            raise ValueError("Missing required arguments: tool_spec, openapi_spec")

        spec = build_tool_spec(tool_spec, openapi_spec)
        connection_id = spec.get("binding", {}).get("openapi", {}).get("connection_id")
        logger.info('Creating tool "%s" (connection_id: %s)', spec.get("name"), connection_id or "none")

        response = await self.client.request("POST", TOOLS_PATH, json=spec)
        raise_for_api_error(response, "create tool")
        body = decode_body(response)
        if not isinstance(body, dict):
            raise OrchestrateAPIError(response.status_code, response.text, "parse tool response")
        tool_id = body.get("id")

        if tool_id:
            await self._upload_bundle(str(tool_id), openapi_spec)
        else:
            logger.warning("Tool response carried no id; skipping artifact upload")
        return {"success": True, "tool_id": tool_id}

    async def _upload_bundle(self, tool_id: str, openapi_spec: dict[str, Any]) -> None:
        files = {"file": (f"{tool_id}.zip", build_bundle_zip(openapi_spec), "application/zip")}
        try:
            response = await self.client.request("POST", f"{TOOLS_PATH}/{tool_id}/upload", files=files)
        except (OrchestrateError, httpx.HTTPError) as exc:
            logger.warning("Artifact upload error (tool still created): %s", exc)
            return
        if not response.is_success:
            logger.warning("Artifact upload failed (tool still created): %s", response.status_code)

    async def copy_tool(
        self,
        tool_id: str | None = None,
        tool_name: str | None = None,
        new_name: str | None = None,
    ) -> dict[str, Any]:
        """Deploy a copy of an existing tool, keeping its binding and connection."""
        if not tool_id and not tool_name:
            raise ValueError("Provide skill_id or skill_name")
        source_id = await catalog.resolve_tool_id(self.client, tool_id, tool_name)
        tool = await self.get_tool(source_id)
        if not isinstance(tool, dict):
            tool = {}

        document = tool_to_openapi(tool)
        info = document["info"]
        name = sanitize_tool_name(new_name) if new_name else info["x-ibm-skill-id"]
        info["x-ibm-skill-id"] = name
        if new_name:
            info["x-ibm-skill-name"] = new_name

        tool_spec = {
            "name": name,
            "description": info.get("description") or tool.get("description") or "Copy of existing tool",
        }
        result = await self.deploy_tool(tool_spec, document)
        return {**result, "source_tool_id": source_id, "tool_name": name}

    async def deploy_tool_from_url(self, url: str, tool_name: str, description: str = "") -> dict[str, Any]:
        """Create a tool from a URL.

        A URL that carries an API key in its query gets a connection holding
        that key, and the tool is bound to it. Any other URL becomes a
        standard tool with no connection.
        """
        origin, _, params = split_url(url)
        detected = detect_api_key_param(params)
        if detected is None:
            return await self.deploy_public_tool_from_url(url, tool_name, description)
        key_param, key_value = detected

        hostname = urlsplit(url).hostname or ""
        app_id = connection_app_id(hostname)
        host_part = hostname.removeprefix("api.").replace(".", "_")
        display_name = re.sub(r"[^a-zA-Z0-9_\s-]", "", tool_name or host_part or "API")

        try:
            await self.connections.create_connection(app_id, display_name or app_id)
        except OrchestrateAPIError as exc:
            if "already exists" not in str(exc):
                raise
            logger.info("Connection %s already exists", app_id)
        try:
            await self.connections.create_configuration(
                app_id, "draft", ConnectionKind.API_KEY, "team", origin
            )
        except OrchestrateAPIError as exc:
            if "already" not in str(exc) and "exist" not in str(exc):
                raise
            logger.info("Connection %s already configured", app_id)
        await self.connections.set_api_key_credentials(app_id, key_value, "draft")

        connection = await self.connections.get_connection(app_id)
        apps = extract_items(connection, "applications")
        if not apps and isinstance(connection, dict):
            apps = [connection]
        connection_id = app_id
        if apps:
            connection_id = apps[0].get("connection_id") or apps[0].get("app_id") or app_id

        document = openapi_for_url(
            url,
            tool_name,
            description,
            connection_id=connection_id,
            api_key_param=key_param,
        )
        tool_spec = {
            "name": tool_spec_name(tool_name),
            "description": description or f"Tool for {origin}",
            "tool_type": "openapi",
            "permission": DEFAULT_PERMISSION,
        }
        result = await self.deploy_tool(tool_spec, document)
        return {**result, "app_id": app_id}

    async def deploy_public_tool_from_url(
        self, url: str, tool_name: str, description: str = ""
    ) -> dict[str, Any]:
        origin, _, _ = split_url(url)
        document = openapi_for_url(url, tool_name, description)
        tool_spec = {
            "name": tool_spec_name(tool_name),
            "description": description or f"Public API tool for {origin}",
            "tool_type": "openapi",
            "permission": DEFAULT_PERMISSION,
        }
        result = await self.deploy_tool(tool_spec, document)
        return {**result, "app_id": ""}

    async def create_tool_and_assign_to_agent(
        self,
        url: str,
        tool_name: str,
        agent_name: str,
        description: str = "",
    ) -> dict[str, Any]:
        deployed = await self.deploy_tool_from_url(url, tool_name, description)
        assigned = await self.agents.assign_tool_to_agent(
            tool_id=deployed["tool_id"],
            agent_name=agent_name,
        )
        return {
            "success": True,
            "tool_id": deployed["tool_id"],
            "agent_id": assigned["agent_id"],
            "agent_name": assigned["agent_name"],
        }

    async def execute_tool(
        self,
        tool_id: str | None = None,
        tool_name: str | None = None,
        parameters: dict[str, Any] | None = None,
        agent_id: str | None = None,
        *,
        policy: PollPolicy = TOOL_EXECUTION_POLICY,
    ) -> dict[str, Any]:
        """Run a tool through an agent that has it assigned.

        Without ``agent_id`` the internal test agent is created or reused and
        its tools are set to exactly this tool.
        """
        if not tool_id and not tool_name:
            raise ValueError('Provide tool_name (e.g. "News Search Tool") or tool_id')
        resolved = await catalog.resolve_tool_id(self.client, tool_id, tool_name)
        parameters = parameters or {}
        target_agent = agent_id or await self.agents.ensure_test_agent_for_tool(resolved)

        target = RunTarget(agent_id=target_agent, tool_id=resolved, parameters=parameters)
        reply = await self.invoker.invoke(target, execution_directive(parameters), policy=policy)
        return {
            "success": True,
            "tool_id": resolved,
            "thread_id": reply.handle.thread_id,
            "result": _decode_result(reply.content),
        }

    async def test_tool_local(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET a URL directly, without Orchestrate or credentials."""
        split_url(url)
        if self._local_http_client is not None:
            response = await self._local_http_client.get(url, params=params or None)
        else:
            async with httpx.AsyncClient(timeout=self.client.settings.request_timeout) as client:
                response = await client.get(url, params=params or None)
        return {
            "success": response.is_success,
            "status": response.status_code,
            "data": decode_body(response),
        }
