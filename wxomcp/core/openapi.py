"""Translation between OpenAPI documents and Orchestrate tool specs.

Everything here is a pure function. Translation is best effort: documents are
read for the first path and its first HTTP operation, and nothing is
validated beyond what the translation needs.
"""

from __future__ import annotations

import io
import json
import re
import zipfile
from typing import Any
from urllib.parse import parse_qsl, urlsplit

OPENAPI_VERSION = "3.0.1"
HTTP_METHODS = ("get", "post", "put", "patch", "delete")
DEFAULT_PERMISSION = "read_write"
BUNDLE_FORMAT_VERSION = "2.0.0\n"
COPY_FALLBACK_SERVER = "https://httpbin.org"

# Query parameter names that carry an API key, in lookup order.
API_KEY_PARAM_NAMES = ("key", "apiKey", "api_key", "apikey", "token", "auth")

_NON_WORD_RE = re.compile(r"[^a-zA-Z0-9_]")
_REPEATED_UNDERSCORE_RE = re.compile(r"_+")
_LEADING_NON_IDENT_RE = re.compile(r"^[^a-zA-Z_]+")
_KEY_LIKE_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_PATH_PARAM_RE = re.compile(r"\{([^}]+)\}")


def _compact(mapping: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


def sanitize_tool_name(name: str) -> str:
    """Letters, digits and underscores only, never starting with a digit."""
    cleaned = _REPEATED_UNDERSCORE_RE.sub("_", _NON_WORD_RE.sub("_", name))
    if cleaned[:1].isdigit():
        cleaned = f"t_{cleaned}"
    return cleaned or "tool_copy"


def tool_spec_name(name: str) -> str:
    """Tool name for create/update payloads: word characters, identifier start."""
    return _LEADING_NON_IDENT_RE.sub("", _NON_WORD_RE.sub("_", name))


def _binding(tool: Any) -> dict[str, Any]:
    if not isinstance(tool, dict):
        return {}
    binding = tool.get("binding")
    return binding if isinstance(binding, dict) else {}


def _openapi_binding(tool: Any) -> dict[str, Any]:
    openapi = _binding(tool).get("openapi")
    return openapi if isinstance(openapi, dict) else {}


def has_connection(tool: Any) -> bool:
    """True when a tool has binding security or a connection id."""
    if not isinstance(tool, dict):
        return False
    binding = _binding(tool)
    openapi = _openapi_binding(tool)

    security = openapi.get("security")
    if security is None:
        security = binding.get("security")
    if security is None:
        security = tool.get("security")

    connection_id = (
        openapi.get("connection_id") or binding.get("connection_id") or tool.get("connection_id")
    )
    return (isinstance(security, list) and len(security) > 0) or bool(connection_id)


def connection_id_of(tool: Any) -> str | None:
    return _openapi_binding(tool).get("connection_id") or None


def auth_type_of(tool: Any) -> str:
    security = _openapi_binding(tool).get("security")
    if isinstance(security, list) and security and isinstance(security[0], dict):
        return str(security[0].get("type") or "apiKey")
    return "apiKey"


def derive_binding_security(
    openapi_spec: dict[str, Any],
    operation: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Flatten OpenAPI security requirements into binding security entries.

    An explicit ``x-ibm-security`` list (or an existing binding's security)
    is used as-is. Otherwise the operation's (or document's) security
    references are looked up in ``components.securitySchemes``; ``apiKey``
    and ``http`` schemes are kept, everything else is dropped.
    """
    explicit = openapi_spec.get("x-ibm-security")
    if explicit is None:
        explicit = _openapi_binding(openapi_spec).get("security")
    if isinstance(explicit, list) and explicit:
        return explicit

    components = openapi_spec.get("components")
    schemes: dict[str, Any] = {}
    if isinstance(components, dict):
        schemes = components.get("securitySchemes") or {}
    refs = (operation or {}).get("security")
    if refs is None:
        refs = openapi_spec.get("security")
    if not isinstance(refs, list) or not refs:
        return []

    flat: list[dict[str, Any]] = []
    for ref in refs:
        if not isinstance(ref, dict) or not ref:
            continue
        scheme = schemes.get(next(iter(ref)))
        if not isinstance(scheme, dict):
            continue
        if scheme.get("type") == "apiKey":
            flat.append(
                {
                    "type": "apiKey",
                    "in": scheme.get("in") or "query",
                    "name": scheme.get("name") or "apiKey",
                }
            )
        elif scheme.get("type") == "http" or scheme.get("scheme") == "bearer":
            flat.append(
                {
                    "type": "http",
                    "scheme": scheme.get("scheme") or "bearer",
                    "name": scheme.get("name") or "Authorization",
                }
            )
    return flat


def _server_urls(openapi_spec: dict[str, Any]) -> list[str]:
    urls = []
    for server in openapi_spec.get("servers") or []:
        url = server if isinstance(server, str) else server.get("url") if isinstance(server, dict) else None
        if url:
            urls.append(url)
    return urls


def _input_schema(parameters: list[dict[str, Any]]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    used: set[str] = set()

    for param in parameters:
        param_in = param.get("in") or "query"
        param_name = param.get("name")
        schema = param.get("schema") or {}
        prop_key = param_name
        if prop_key in used:
            prop_key = f"{param_in}_{param_name}"
        used.add(prop_key)

        prop: dict[str, Any] = {
            "type": schema.get("type") or "string",
            "title": schema.get("title") if schema.get("title") is not None else param_name,
            "description": param.get("description") or schema.get("description") or "",
            "in": param_in,
        }
        if schema.get("default") is not None:
            prop["default"] = schema["default"]
        if prop_key != param_name:
            prop["aliasName"] = param_name
        properties[prop_key] = prop
        if param.get("required"):
            required.append(prop_key)

    input_schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        input_schema["required"] = required
    return input_schema


def build_tool_spec(tool_spec: dict[str, Any], openapi_spec: dict[str, Any]) -> dict[str, Any]:
    """Build the full tool payload from a partial tool spec and an OpenAPI document.

    Args:
        tool_spec: At least ``name``; optionally ``description``,
            ``permission``, ``restrictions`` and ``tags``.
        openapi_spec: The document; ``x-ibm-connection-id`` binds a connection.

    Returns:
        Tool payload with ``binding.openapi``, ``input_schema`` and, when the
        200 response has a JSON schema, ``output_schema``.
    """
    info = openapi_spec.get("info") or {}
    spec = _compact(
        {
            "name": tool_spec.get("name"),
            "display_name": info.get("x-ibm-skill-name") or info.get("title") or tool_spec.get("name"),
            "description": tool_spec.get("description"),
            "permission": tool_spec.get("permission") or DEFAULT_PERMISSION,
            "restrictions": tool_spec.get("restrictions") or None,
            "tags": tool_spec.get("tags") or None,
        }
    )

    paths = openapi_spec.get("paths") or {}
    if not paths:
        return spec
    path_key = next(iter(paths))
    path_item = paths[path_key] or {}

    for method in HTTP_METHODS:
        operation = path_item.get(method)
        if not isinstance(operation, dict):
            continue
        connection_id = (
            openapi_spec.get("x-ibm-connection-id")
            or _openapi_binding(openapi_spec).get("connection_id")
            or None
        )
        spec["binding"] = {
            "openapi": {
                "http_method": method.upper(),
                "http_path": path_key,
                "security": derive_binding_security(openapi_spec, operation),
                "servers": _server_urls(openapi_spec),
                "connection_id": connection_id,
            }
        }
        spec["input_schema"] = _input_schema(operation.get("parameters") or [])

        ok = (operation.get("responses") or {}).get("200") or {}
        schema = ((ok.get("content") or {}).get("application/json") or {}).get("schema")
        if schema:
            spec["output_schema"] = {
                **schema,
                "description": schema.get("description") or ok.get("description") or "Success",
            }
        break
    return spec


def tool_to_openapi(tool: dict[str, Any]) -> dict[str, Any]:
    """Rebuild an OpenAPI document from a deployed tool, for copying it."""
    binding = _openapi_binding(tool)
    method = str(binding.get("http_method") or "GET").lower()
    path = binding.get("http_path") or "/"
    servers = _server_urls(binding)
    security = binding.get("security")
    connection_id = binding.get("connection_id")

    input_schema = tool.get("input_schema") or {}
    required_keys = input_schema.get("required") or []
    parameters = []
    for key, prop in (input_schema.get("properties") or {}).items():
        schema = _compact(
            {
                "type": prop.get("type") or "string",
                "title": prop.get("title"),
                "default": prop.get("default"),
            }
        )
        if prop.get("enum"):
            schema["enum"] = prop["enum"]
        parameters.append(
            {
                "name": prop.get("aliasName") or key,
                "in": prop.get("in") or "query",
                "required": key in required_keys,
                "description": prop.get("description") or "",
                "schema": schema,
            }
        )

    title = f"{tool.get('display_name') or tool.get('name') or 'Tool'} (Copy)"
    skill_id = f"{_NON_WORD_RE.sub('_', tool.get('name') or 'tool')}_copy_v1"
    document: dict[str, Any] = {
        "openapi": OPENAPI_VERSION,
        "info": {
            "title": title,
            "version": (tool.get("info") or {}).get("version") or "1.0.0",
            "description": tool.get("description") or "",
            "x-ibm-skill-name": title,
            "x-ibm-skill-id": skill_id,
        },
        "servers": [{"url": url} for url in servers] or [{"url": COPY_FALLBACK_SERVER}],
        "paths": {
            path: {
                method: {
                    "operationId": tool.get("name") or "operation",
                    "summary": tool.get("display_name") or tool.get("name") or "Operation",
                    "parameters": parameters,
                    "responses": {
                        "200": {
                            "description": "Success",
                            "content": {
                                "application/json": {
                                    "schema": tool.get("output_schema") or {"type": "object"},
                                }
                            },
                        }
                    },
                }
            }
        },
    }
    if security:
        document["x-ibm-security"] = security
    if connection_id:
        document["x-ibm-connection-id"] = connection_id
    return document


def build_bundle_zip(openapi_spec: dict[str, Any]) -> bytes:
    """Zip the OpenAPI document into a tool artifact bundle."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("skill_v2.json", json.dumps(openapi_spec, indent=2))
        archive.writestr("bundle-format", BUNDLE_FORMAT_VERSION)
    return buffer.getvalue()


def split_url(url: str) -> tuple[str, str, dict[str, str]]:
    """Return ``(origin, path, query params)`` for an absolute http(s) URL."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid URL: {url}")
    origin = f"{parts.scheme}://{parts.netloc}"
    return origin, parts.path or "/", dict(parse_qsl(parts.query, keep_blank_values=True))


def detect_api_key_param(params: dict[str, str]) -> tuple[str, str] | None:
    """Find the query parameter that carries an API key.

    Well-known names win. Failing that, the first parameter counts when its
    value looks like a key (8+ characters of letters, digits, ``_`` or ``-``).
    """
    for name in API_KEY_PARAM_NAMES:
        if params.get(name):
            return name, params[name]
    if params:
        first, value = next(iter(params.items()))
        if len(value) >= 8 and _KEY_LIKE_RE.match(value):
            return first, value
    return None


def connection_app_id(hostname: str) -> str:
    host_part = re.sub(r"^api\.", "", hostname).replace(".", "_")
    return _NON_WORD_RE.sub("_", f"A1_{host_part}"[:64]) or "A1_api"


def _query_param(name: str, description: str = "") -> dict[str, Any]:
    return {
        "name": name,
        "in": "query",
        "required": False,
        "schema": {"type": "string"},
        "description": description,
    }


def _get_document(
    *,
    tool_name: str,
    description: str,
    skill_id: str,
    origin: str,
    path: str,
    parameters: list[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "openapi": OPENAPI_VERSION,
        "info": {
            "title": tool_name,
            "version": "1.0.0",
            "description": description,
            "x-ibm-skill-name": tool_name,
            "x-ibm-skill-id": skill_id,
        },
        "servers": [{"url": origin}],
        "paths": {
            path: {
                "get": {
                    "operationId": "fetch",
                    "summary": tool_name,
                    "parameters": parameters,
                    "responses": {
                        "200": {
                            "description": "Success",
                            "content": {"application/json": {"schema": {"type": "object"}}},
                        }
                    },
                }
            }
        },
    }


def _templated_public_path(path: str) -> str:
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return path
    last = segments[-1]
    if last.isdigit() or len(last) <= 1:
        return path
    if "name" in path:
        param = "name"
    elif "id" in path:
        param = "id"
    else:
        param = "q"
    segments[-1] = f"{{{param}}}"
    return "/" + "/".join(segments)


def openapi_for_url(
    url: str,
    tool_name: str,
    description: str = "",
    *,
    connection_id: str | None = None,
    api_key_param: str | None = None,
) -> dict[str, Any]:
    """Build a single-GET OpenAPI document for a URL.

    With ``api_key_param`` the document binds ``connection_id`` and declares
    the key as an ``apiKey`` query parameter injected by the connection;
    the path is kept verbatim. Without it the URL is treated as a public
    API: the last path segment becomes a path parameter and every query
    parameter is exposed (``q`` when there are none).
    """
    origin, path, params = split_url(url)

    if api_key_param:
        parameters = [_query_param(api_key_param, "API key (injected by connection)")]
        parameters.extend(_query_param(name) for name in params if name != api_key_param)
        document = _get_document(
            tool_name=tool_name,
            description=description or f"Tool for {origin}",
            skill_id=re.sub(r"[^a-zA-Z0-9_-]", "_", tool_name),
            origin=origin,
            path=path,
            parameters=parameters,
        )
        document["x-ibm-connection-id"] = connection_id
        document["x-ibm-security"] = [{"type": "apiKey", "in": "query", "name": api_key_param}]
        return document

    templated = _templated_public_path(path)
    parameters = [
        {
            "name": name,
            "in": "path",
            "required": True,
            "schema": {"type": "string"},
            "description": "",
        }
        for name in _PATH_PARAM_RE.findall(templated)
    ]
    parameters.extend(_query_param(name) for name in params)
    if not parameters:
        parameters.append(_query_param("q", "Query"))
    return _get_document(
        tool_name=tool_name,
        description=description or f"Public API tool for {origin}",
        skill_id=_NON_WORD_RE.sub("_", tool_name),
        origin=origin,
        path=templated,
        parameters=parameters,
    )
