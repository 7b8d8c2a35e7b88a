"""Agent management and agent chat."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from wxomcp.core import catalog
from wxomcp.core.client import OrchestrateClient, decode_body, raise_for_api_error
from wxomcp.core.errors import OrchestrateAPIError, ResourceNotFound
from wxomcp.core.llm_models import ModelService
from wxomcp.core.resolve import extract_items, find_by_name, tool_ids_from_agent
from wxomcp.core.runs.invoker import AGENT_CHAT_POLICY, RunPollInvoker
from wxomcp.models.run import PollPolicy, RunTarget

logger = logging.getLogger(__name__)

AGENTS_PATH = "/v1/orchestrate/agents"
AGENT_LIST_KEYS = ("assistants", "data")

TEST_AGENT_NAME = "WxoBuilderTestAgent"
TEST_AGENT_DESCRIPTION = "WxO Builder internal agent for remote tool testing. Do not delete."
TEST_AGENT_INSTRUCTIONS = (
    "When the user asks you to execute a tool, execute it and return the raw result. "
    "Do not add commentary."
)

# Purpose lines for common catalog tools that ship without a description.
KNOWN_TOOL_PURPOSES = {
    "World Time": "Get current time for any timezone (e.g. Europe/Amsterdam, America/New_York)",
    "Dad Jokes Skill": "Tell random dad jokes",
    "mvk-weatherv4": "Get current weather for locations worldwide",
    "REST Countries": "Look up country data: population, area, capital, flags, languages",
    "Aviation Weather METAR": "Get METAR weather reports for airport ICAO codes",
    "Currency Skill": "Get currency exchange rates",
    "Asia Time Tool": "Get current time for Asian timezones",
    "Asia Time Toolv3": "Get current time for Asian timezones",
}

CHAT_STARTER_FIELDS = ("welcome_message", "quick_prompts")


def _normalize_quick_prompt(prompt: Any) -> Any:
    if not isinstance(prompt, dict):
        return prompt
    normalized = {"title": prompt.get("title"), "prompt": prompt.get("prompt")}
    if prompt.get("subtitle"):
        normalized["subtitle"] = prompt["subtitle"]
    return normalized


def build_chat_starter_payload(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Translate ``welcome_message``/``quick_prompts`` into a chat starter payload.

    Only keys present in ``fields`` are translated; an explicit empty welcome
    message clears it.
    """
    payload: dict[str, Any] = {}
    if "welcome_message" in fields:
        payload["welcome_content"] = {"welcome_message": fields["welcome_message"] or None}
    if "quick_prompts" in fields:
        prompts = fields["quick_prompts"] or []
        payload["starter_prompts"] = {"customize": [_normalize_quick_prompt(p) for p in prompts]}
    return payload


def build_instructions(tools: list[dict[str, Any]]) -> str:
    bullets = []
    for tool in tools:
        name = tool.get("display_name") or tool.get("id")
        purpose = tool.get("description") or KNOWN_TOOL_PURPOSES.get(name) or f"Use {name} when relevant"
        bullets.append(f"- **{name}**: {purpose}")
    return (
        "You are a helpful assistant with these capabilities. "
        "Use the appropriate tool when users ask:\n\n"
        + "\n".join(bullets)
        + "\n\nBe concise and accurate. Cite the tool/source when providing data."
    )


def _agent_id_of(result: Any) -> str | None:
    if isinstance(result, str):
        return result or None
    if not isinstance(result, dict):
        return None
    if result.get("id"):
        return str(result["id"])
    data = result.get("data")
    if isinstance(data, dict) and data.get("id"):
        return str(data["id"])
    return None


class AgentService:
    """Agent CRUD, tool assignment, chat starter settings and chat."""

    def __init__(
        self,
        client: OrchestrateClient,
        invoker: RunPollInvoker,
        models: ModelService,
    ) -> None:
        self.client = client
        self.invoker = invoker
        self.models = models

    async def list_agents(self, limit: int = 20, offset: int = 0) -> Any:
        return await self.client.call(
            "GET",
            AGENTS_PATH,
            params={"limit": limit, "offset": offset},
            action="list agents",
        )

    async def agent_items(self, limit: int = 100) -> list[dict[str, Any]]:
        return extract_items(await self.list_agents(limit, 0), *AGENT_LIST_KEYS)

    async def resolve_agent_id(self, agent_id: str | None = None, agent_name: str | None = None) -> str:
        """Return ``agent_id`` or look ``agent_name`` up by name/display name."""
        if agent_id:
            return agent_id
        if not agent_name:
            raise ValueError("Provide agent_id or agent_name")
        match = find_by_name(await self.agent_items(), agent_name)
        if match is None or not match.get("id"):
            raise ResourceNotFound("Agent", agent_name)
        return str(match["id"])

    async def get_agent(self, agent_id: str) -> Any:
        return await self.client.call("GET", f"{AGENTS_PATH}/{agent_id}", action="get agent")

    async def create_agent(
        self,
        name: str,
        description: str,
        model_id: str,
        instructions: str,
        tools: list[str] | None = None,
    ) -> Any:
        """Create a watsonx agent, then assign ``tools`` when given."""
        payload = {
            "name": name,
            "description": description,
            "agent_type": "watsonx",
            "llm": model_id,
            "instructions": instructions,
            "style": "default",
            "settings": {},
        }
        logger.info('Creating agent "%s"', name)
        result = await self.client.call("POST", AGENTS_PATH, json=payload, action="create agent")

        agent_id = _agent_id_of(result)
        if tools and agent_id:
            await self.update_agent(agent_id, {"tools": tools})
            if isinstance(result, dict):
                result["tools"] = tools
        return result

    async def update_agent(self, agent_id: str, payload: dict[str, Any]) -> Any:
        response = await self.client.request("PATCH", f"{AGENTS_PATH}/{agent_id}", json=payload)
        raise_for_api_error(response, "update agent")
        body = decode_body(response)
        return body if isinstance(body, dict | list) else {"success": True}

    async def delete_agent(self, agent_id: str) -> dict[str, Any]:
        await self.client.call("DELETE", f"{AGENTS_PATH}/{agent_id}", action="delete agent")
        return {"success": True}

    async def update_agent_by_name_or_id(
        self,
        agent_id: str | None,
        agent_name: str | None,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Patch an agent; chat starter fields in ``payload`` go to their own endpoint."""
        resolved = await self.resolve_agent_id(agent_id, agent_name)
        agent_payload = {k: v for k, v in payload.items() if k not in CHAT_STARTER_FIELDS}
        if agent_payload:
            await self.update_agent(resolved, agent_payload)

        chat_payload = build_chat_starter_payload(payload)
        if chat_payload:
            await self.update_chat_starter_settings(resolved, chat_payload)
        return {"success": True}

    async def get_chat_starter_settings(self, agent_id: str) -> Any:
        response = await self.client.request("GET", f"{AGENTS_PATH}/{agent_id}/chat-starter-settings")
        if response.status_code == 404:
            return {
                "starter_prompts": {"prompts": []},
                "welcome_content": {},
            }
        raise_for_api_error(response, "get chat starter settings")
        return decode_body(response)

    async def update_chat_starter_settings(self, agent_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        await self.client.call(
            "PUT",
            f"{AGENTS_PATH}/{agent_id}/chat-starter-settings",
            json=payload,
            action="update chat starter settings",
        )
        return {"success": True}

    async def update_agent_chat_starter_settings(
        self,
        agent_id: str | None,
        agent_name: str | None,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        payload = build_chat_starter_payload(fields)
        if not payload:
            raise ValueError("Provide welcome_message or quick_prompts")
        resolved = await self.resolve_agent_id(agent_id, agent_name)
        return await self.update_chat_starter_settings(resolved, payload)

    async def list_agent_tools(
        self,
        agent_id: str | None = None,
        agent_name: str | None = None,
    ) -> dict[str, Any]:
        """Tools assigned to an agent, with catalog display names and descriptions."""
        resolved = await self.resolve_agent_id(agent_id, agent_name)
        agent = await self.get_agent(resolved)
        name = resolved
        if isinstance(agent, dict):
            name = agent.get("name") or agent.get("display_name") or agent_name or resolved

        meta: dict[str, dict[str, Any]] = {}
        for item in await catalog.list_tool_items(self.client):
            item_id = item.get("id") or item.get("name")
            if item_id:
                meta[item_id] = item

        tools = []
        for tool_id in tool_ids_from_agent(agent):
            entry: dict[str, Any] = {"id": tool_id, "display_name": tool_id}
            item = meta.get(tool_id)
            if item is not None:
                entry["display_name"] = item.get("display_name") or item.get("name") or tool_id
                if item.get("description"):
                    entry["description"] = item["description"]
            tools.append(entry)
        return {"agent_id": resolved, "agent_name": name, "tools": tools}

    async def assign_tool_to_agent(
        self,
        tool_id: str | None = None,
        tool_name: str | None = None,
        agent_id: str | None = None,
        agent_name: str | None = None,
    ) -> dict[str, Any]:
        """Append a tool to an agent's tools; assigning twice is a no-op."""
        if not tool_id and not tool_name:
            raise ValueError("Provide tool_id or tool_name")
        if not agent_id and not agent_name:
            raise ValueError("Provide agent_id or agent_name")

        resolved_tool = await catalog.resolve_tool_id(self.client, tool_id, tool_name)
        resolved_agent = await self.resolve_agent_id(agent_id, agent_name)
        agent = await self.get_agent(resolved_agent)
        name = resolved_agent
        if isinstance(agent, dict):
            name = agent.get("name") or agent.get("display_name") or resolved_agent

        existing = tool_ids_from_agent(agent)
        if resolved_tool in existing:
            return {"success": True, "agent_id": resolved_agent, "agent_name": name, "tools": existing}

        tools = [*existing, resolved_tool]
        await self.update_agent(resolved_agent, {"tools": tools})
        return {"success": True, "agent_id": resolved_agent, "agent_name": name, "tools": tools}

    async def ensure_test_agent_for_tool(self, tool_id: str) -> str:
        """Return the internal test agent's id with its tools set to ``[tool_id]``."""
        for agent in await self.agent_items():
            if (agent.get("name") or agent.get("display_name")) == TEST_AGENT_NAME and agent.get("id"):
                agent_id = str(agent["id"])
                await self.update_agent(agent_id, {"tools": [tool_id]})
                return agent_id

        logger.info("Creating %s for tool %s", TEST_AGENT_NAME, tool_id)
        created = await self.create_agent(
            TEST_AGENT_NAME,
            TEST_AGENT_DESCRIPTION,
            await self.models.get_default_model_id(),
            TEST_AGENT_INSTRUCTIONS,
            [tool_id],
        )
        agent_id = _agent_id_of(created)
        if agent_id is None:
            raise OrchestrateAPIError(None, str(created), f"create {TEST_AGENT_NAME}")
        return agent_id

    async def update_agent_instructions_from_tools(
        self,
        agent_id: str | None = None,
        agent_name: str | None = None,
    ) -> dict[str, Any]:
        listing = await self.list_agent_tools(agent_id, agent_name)
        instructions = build_instructions(listing["tools"])
        await self.update_agent(listing["agent_id"], {"instructions": instructions})
        return {
            "success": True,
            "agent_id": listing["agent_id"],
            "agent_name": listing["agent_name"],
            "instructions": instructions,
        }

    async def invoke_agent(
        self,
        agent_id: str | None,
        agent_name: str | None,
        message: str,
        *,
        policy: PollPolicy = AGENT_CHAT_POLICY,
    ) -> dict[str, Any]:
        """Send ``message`` to an agent and wait for its reply."""
        if not message:
            raise ValueError("message is required")
        resolved = await self.resolve_agent_id(agent_id, agent_name)
        logger.info('Invoking agent "%s"', resolved)
        reply = await self.invoker.invoke(RunTarget(agent_id=resolved), message, policy=policy)
        return {
            "success": True,
            "response": reply.content,
            "thread_id": reply.handle.thread_id,
            "run_id": reply.handle.run_id,
        }
