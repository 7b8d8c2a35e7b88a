"""Wire one client, one credential cache and the services that share them."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from wxomcp.core.agents import AgentService
from wxomcp.core.auth.credentials import CredentialCache
from wxomcp.core.client import OrchestrateClient
from wxomcp.core.connections import ConnectionService
from wxomcp.core.flows import FlowService
from wxomcp.core.llm_models import ModelService
from wxomcp.core.runs.invoker import RunPollInvoker
from wxomcp.core.tools import ToolService
from wxomcp.utils.config import OrchestrateSettings


@dataclass
class OrchestrateServices:
    """Every service bound to one Orchestrate instance."""

    settings: OrchestrateSettings
    credentials: CredentialCache
    client: OrchestrateClient
    invoker: RunPollInvoker
    models: ModelService
    agents: AgentService
    connections: ConnectionService
    tools: ToolService
    flows: FlowService

    @classmethod
    def from_settings(
        cls,
        settings: OrchestrateSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> OrchestrateServices:
        """Build the service graph; ``http_client`` is shared by every layer when given."""
        credentials = CredentialCache(
            settings.api_key,
            settings.iam_token_url,
            http_client=http_client,
            timeout=settings.request_timeout,
        )
        client = OrchestrateClient(settings, credentials, http_client=http_client)
        invoker = RunPollInvoker(client, sleep=sleep)
        models = ModelService(client)
        agents = AgentService(client, invoker, models)
        connections = ConnectionService(client)
        tools = ToolService(client, invoker, agents, connections, local_http_client=http_client)
        return cls(
            settings=settings,
            credentials=credentials,
            client=client,
            invoker=invoker,
            models=models,
            agents=agents,
            connections=connections,
            tools=tools,
            flows=FlowService(client),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.credentials.aclose()
