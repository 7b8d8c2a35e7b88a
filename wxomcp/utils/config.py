"""Runtime settings and MCP client config snippet helpers."""

from __future__ import annotations

import json
import os
import shutil
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from wxomcp.core.errors import ConfigurationError

DEFAULT_IAM_TOKEN_URL = "https://iam.cloud.ibm.com/identity/token"

# Settings field -> environment variable.
ENV_VARS = {
    "api_key": "WO_API_KEY",
    "instance_url": "WO_INSTANCE_URL",
    "iam_token_url": "IAM_TOKEN_URL",
    "request_timeout": "WO_REQUEST_TIMEOUT",
}

REQUIRED_FIELDS = ("api_key", "instance_url")


class OrchestrateSettings(BaseModel):
    """Connection settings for one Orchestrate instance."""

    api_key: str = Field(default="", repr=False)
    instance_url: str = ""
    iam_token_url: str = DEFAULT_IAM_TOKEN_URL
    request_timeout: float = Field(default=30.0, gt=0)

    @field_validator("instance_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OrchestrateSettings:
        """Build settings from environment variables; unset variables keep defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for field_name, var in ENV_VARS.items():
            raw = env.get(var)
            if raw:
                values[field_name] = raw
        return cls(**values)

    def missing_fields(self) -> list[str]:
        """Return environment variable names for unset required settings."""
        return [ENV_VARS[name] for name in REQUIRED_FIELDS if not getattr(self, name)]

    def require_complete(self) -> None:
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(missing)


def load_settings(env_file: str | Path | None = None) -> OrchestrateSettings:
    """Load ``.env`` files, then read settings from the environment.

    An explicit ``env_file`` is loaded first, then ``./.env``. Variables that
    are already set in the process environment are never overridden.
    """
    if env_file is not None:
        load_dotenv(Path(env_file), override=False)
    cwd_env = Path.cwd() / ".env"
    if cwd_env.exists():
        load_dotenv(cwd_env, override=False)
    return OrchestrateSettings.from_env()


def _resolve_wxomcp_command() -> str:
    """Return an absolute ``wxomcp`` command path when possible.

    Desktop MCP clients often do not inherit a shell PATH (especially a
    virtualenv PATH), so an absolute path makes the snippet work as pasted.
    """
    argv0 = Path(sys.argv[0])
    if argv0.name == "wxomcp" and argv0.exists():
        return str(argv0.resolve())

    discovered = shutil.which("wxomcp")
    if discovered:
        return discovered

    return "wxomcp"


def build_mcp_config_payload(*, server_name: str, env_file: Path | None = None) -> dict[str, Any]:
    """Build an ``mcpServers`` payload that launches ``wxomcp serve``."""
    args: list[str] = []
    if env_file is not None:
        args.extend(["--env-file", str(env_file.resolve())])
    args.append("serve")

    return {
        "mcpServers": {
            server_name: {
                "command": _resolve_wxomcp_command(),
                "args": args,
            }
        }
    }


def render_config_payload(payload: dict[str, Any], fmt: str) -> str:
    """Render a config payload as json or yaml."""
    if fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=True)
    if fmt == "json":
        return json.dumps(payload, indent=2, sort_keys=True)
    raise ValueError(f"Unsupported config format: {fmt}")
