"""Connections (stored credential bindings) and the connector catalog."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any
from urllib.parse import quote

import httpx

from wxomcp.core.client import OrchestrateClient, decode_body, raise_for_api_error
from wxomcp.core.errors import OrchestrateError
from wxomcp.core.resolve import extract_items

logger = logging.getLogger(__name__)

CONNECTIONS_PATH = "/v1/orchestrate/connections/applications"
CONNECTORS_PATH = "/v1/orchestrate/catalog/applications"


class ConnectionKind(StrEnum):
    API_KEY = "api_key"
    BASIC = "basic"
    BEARER = "bearer"


SECURITY_SCHEMES = {
    ConnectionKind.API_KEY: "api_key_auth",
    ConnectionKind.BASIC: "basic_auth",
    ConnectionKind.BEARER: "bearer_auth",
}

SCOPES = ("draft", "live")


def _app_path(app_id: str) -> str:
    return f"{CONNECTIONS_PATH}/{quote(app_id, safe='')}"


def _json_or_success(response: httpx.Response) -> Any:
    body = decode_body(response)
    return body if isinstance(body, dict | list) else {"success": True}


def _app_key(app: dict[str, Any], default_env: str) -> str:
    return f"{app.get('app_id') or app.get('connection_id')}:{app.get('environment') or default_env}"


class ConnectionService:
    """Connection CRUD, configuration and runtime credentials."""

    def __init__(self, client: OrchestrateClient) -> None:
        self.client = client

    async def list_connectors(self, limit: int = 50) -> Any:
        return await self.client.call(
            "GET", CONNECTORS_PATH, params={"limit": limit}, action="list connectors"
        )

    async def list_connections(self, scope: str = "draft") -> Any:
        """List connections for one scope; a failed listing yields no applications."""
        response = await self.client.request(
            "GET",
            CONNECTIONS_PATH,
            params={"include_details": "true", "scope": scope or "draft"},
        )
        if not response.is_success:
            logger.warning("Connections API returned %s: %s", response.status_code, response.text)
            return {"applications": []}
        return decode_body(response)

    async def list_all_connections(self) -> dict[str, Any]:
        """Merge draft and live connections, deduplicated by app and environment."""
        draft = extract_items(await self.list_connections("draft"), "applications")
        try:
            live = extract_items(await self.list_connections("live"), "applications")
        except (OrchestrateError, httpx.HTTPError) as exc:
            # Developer Edition instances have no live scope.
            logger.debug("Live connections unavailable: %s", exc)
            live = []

        merged = list(draft)
        seen = {_app_key(app, "draft") for app in draft}
        for app in live:
            key = _app_key(app, "live")
            if key not in seen:
                seen.add(key)
                merged.append(app)
        return {"applications": merged}

    async def list_active_live_connections(self) -> dict[str, Any]:
        """Live connections with credentials entered, one per app id."""
        apps = extract_items(await self.list_connections("live"), "applications")
        connections: list[dict[str, str]] = []
        seen: set[str] = set()
        for app in apps:
            if app.get("credentials_entered") is not True:
                continue
            app_id = app.get("app_id") or app.get("connection_id") or ""
            if not app_id or app_id in seen:
                continue
            seen.add(app_id)
            connections.append(
                {"app_id": app_id, "display_name": app.get("display_name") or app.get("name") or app_id}
            )
        return {
            "connections": connections,
            "names": [conn["display_name"] or conn["app_id"] for conn in connections],
        }

    async def get_connection(self, app_id: str) -> Any:
        return await self.client.call(
            "GET", CONNECTIONS_PATH, params={"app_id": app_id}, action="get connection"
        )

    async def create_connection(self, app_id: str, display_name: str | None = None) -> Any:
        payload = {"app_id": app_id, "display_name": display_name or app_id}
        return await self.client.call(
            "POST", CONNECTIONS_PATH, json=payload, action="create connection"
        )

    async def delete_connection(self, app_id: str) -> dict[str, Any]:
        await self.client.call("DELETE", _app_path(app_id), action="delete connection")
        return {"success": True}

    async def create_configuration(
        self,
        app_id: str,
        env: str,
        kind: str,
        type_: str = "team",
        server_url: str | None = None,
    ) -> Any:
        try:
            scheme = SECURITY_SCHEMES[ConnectionKind(kind)]
        except ValueError:
            scheme = SECURITY_SCHEMES[ConnectionKind.API_KEY]
        body: dict[str, Any] = {
            "environment": env,
            "kind": kind,
            "type": type_,
            "preference": type_,
            "security_scheme": scheme,
        }
        if server_url:
            body["server_url"] = server_url

        response = await self.client.request(
            "POST", f"{_app_path(app_id)}/configurations", json=body
        )
        raise_for_api_error(response, "create configuration")
        return _json_or_success(response)

    async def set_runtime_credentials(
        self,
        app_id: str,
        credentials: dict[str, str],
        env: str = "draft",
        label: str = "credentials",
    ) -> Any:
        """Store runtime credentials, creating them when an update is refused."""
        path = f"{_app_path(app_id)}/configs/{env}/runtime_credentials"
        body = {"runtime_credentials": credentials}
        response = await self.client.request("PATCH", path, json=body)
        if not response.is_success:
            logger.debug("PATCH %s returned %s, retrying as POST", path, response.status_code)
            response = await self.client.request("POST", path, json=body)
            raise_for_api_error(response, f"set {label}")
        return _json_or_success(response)

    async def set_api_key_credentials(self, app_id: str, api_key: str, env: str = "draft") -> Any:
        return await self.set_runtime_credentials(
            app_id, {"api_key": api_key}, env, label="API key credentials"
        )

    async def set_basic_credentials(
        self, app_id: str, username: str, password: str, env: str = "draft"
    ) -> Any:
        return await self.set_runtime_credentials(
            app_id, {"username": username, "password": password}, env, label="basic credentials"
        )

    async def set_bearer_credentials(self, app_id: str, token: str, env: str = "draft") -> Any:
        return await self.set_runtime_credentials(
            app_id, {"token": token}, env, label="bearer credentials"
        )

    async def configure_connection(
        self,
        app_id: str,
        kind: str,
        env: str = "draft",
        *,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
        token: str | None = None,
        server_url: str | None = None,
    ) -> dict[str, Any]:
        """Create a configuration for ``env`` and store credentials of ``kind``."""
        try:
            connection_kind = ConnectionKind(kind)
        except ValueError as exc:
            raise ValueError(f"Unsupported connection kind: {kind}") from exc
        if connection_kind is ConnectionKind.API_KEY and not api_key:
            raise ValueError("api_key required for kind=api_key")
        if connection_kind is ConnectionKind.BASIC and not (username and password):
            raise ValueError("username and password required for kind=basic")
        if connection_kind is ConnectionKind.BEARER and not token:
            raise ValueError("token required for kind=bearer")

        await self.create_configuration(app_id, env, connection_kind, "team", server_url)
        if connection_kind is ConnectionKind.API_KEY:
            await self.set_api_key_credentials(app_id, api_key or "", env)
        elif connection_kind is ConnectionKind.BASIC:
            await self.set_basic_credentials(app_id, username or "", password or "", env)
        else:
            await self.set_bearer_credentials(app_id, token or "", env)
        return {"success": True, "message": f"Connection {app_id} configured for {env}"}
