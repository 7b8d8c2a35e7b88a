"""Flow CRUD."""

from __future__ import annotations

import logging
from typing import Any

from wxomcp.core.client import OrchestrateClient

logger = logging.getLogger(__name__)

FLOWS_PATH = "/v1/flows/"


class FlowService:
    def __init__(self, client: OrchestrateClient) -> None:
        self.client = client

    async def list_flows(self, limit: int = 20, offset: int = 0) -> Any:
        logger.debug("Listing flows (limit=%d, offset=%d)", limit, offset)
        return await self.client.call(
            "GET",
            FLOWS_PATH,
            params={"limit": limit, "offset": offset},
            action="list flows",
        )

    async def get_flow(self, flow_id: str) -> Any:
        return await self.client.call("GET", f"{FLOWS_PATH}{flow_id}", action="get flow")

    async def create_flow(self, flow_json: dict[str, Any]) -> Any:
        """Create or update a flow from its JSON definition."""
        return await self.client.call("POST", FLOWS_PATH, json=flow_json, action="create flow")

    async def delete_flow(self, flow_id: str) -> dict[str, Any]:
        await self.client.call("DELETE", f"{FLOWS_PATH}{flow_id}", action="delete flow")
        return {"success": True, "message": f"Flow {flow_id} deleted successfully."}
