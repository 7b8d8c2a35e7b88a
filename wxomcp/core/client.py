"""Authenticated HTTP transport for the Orchestrate API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wxomcp.core.auth.credentials import CredentialCache
from wxomcp.core.errors import OrchestrateAPIError
from wxomcp.utils.config import OrchestrateSettings

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


def raise_for_api_error(response: httpx.Response, action: str) -> None:
    """Raise ``OrchestrateAPIError`` unless the response is 2xx."""
    if not response.is_success:
        raise OrchestrateAPIError(response.status_code, response.text, action)


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to text (``None`` when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class OrchestrateClient:
    """Issues authenticated requests against one Orchestrate instance.

    Every request asks the injected ``CredentialCache`` for a bearer token,
    so all services sharing a client also share its token. Non-2xx statuses
    are returned to the caller, which decides whether they are fatal.
    """

    def __init__(
        self,
        settings: OrchestrateSettings,
        credentials: CredentialCache,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self._http_client = http_client
        self._owns_http_client = http_client is None

    def build_url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        path = path_or_url if path_or_url.startswith("/") else f"/{path_or_url}"
        return f"{self.settings.instance_url}{path}"

    async def request(
        self,
        method: str,
        path_or_url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        content: bytes | str | None = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        token = await self.credentials.acquire_token()
        url = self.build_url(path_or_url)

        merged: dict[str, str] = {
            "Authorization": f"Bearer {token}",
            "Accept": JSON_CONTENT_TYPE,
        }
        # httpx sets the multipart boundary itself.
        if files is None:
            merged["Content-Type"] = JSON_CONTENT_TYPE
        if headers:
            merged.update(headers)

        logger.debug("%s %s", method.upper(), url)
        client = self._get_http_client()
        return await client.request(
            method.upper(),
            url,
            json=json,
            params=params,
            headers=merged,
            content=content,
            files=files,
        )

    async def call(self, method: str, path_or_url: str, *, action: str, **kwargs: Any) -> Any:
        """Send a request, raise on non-2xx, and return the decoded body."""
        response = await self.request(method, path_or_url, **kwargs)
        raise_for_api_error(response, action)
        return decode_body(response)

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.request_timeout)
            self._owns_http_client = True
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
