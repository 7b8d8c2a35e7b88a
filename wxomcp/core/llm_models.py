"""LLM model listing and default model selection."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wxomcp.core.client import OrchestrateClient, decode_body
from wxomcp.core.errors import OrchestrateError
from wxomcp.core.resolve import extract_items

logger = logging.getLogger(__name__)

MODELS_PATH = "/v1/models/list"
PREFERRED_DEFAULT_MODEL_ID = "groq/openai/gpt-oss-120b"


class ModelService:
    """Lists the LLMs available to agents on the instance."""

    def __init__(self, client: OrchestrateClient) -> None:
        self.client = client

    async def list_models(self) -> list[dict[str, Any]]:
        """Return available models; any failure yields an empty list."""
        try:
            response = await self.client.request("GET", MODELS_PATH)
        except (OrchestrateError, httpx.HTTPError) as exc:
            logger.warning("Listing models failed: %s", exc)
            return []
        if not response.is_success:
            logger.warning("Listing models returned %s", response.status_code)
            return []
        return extract_items(decode_body(response), "resources", "data")

    async def get_default_model_id(self) -> str:
        models = await self.list_models()
        ids = [model.get("id") for model in models if model.get("id")]
        if not ids or PREFERRED_DEFAULT_MODEL_ID in ids:
            return PREFERRED_DEFAULT_MODEL_ID
        return str(ids[0])
