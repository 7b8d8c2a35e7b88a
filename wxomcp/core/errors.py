"""Error taxonomy for calls against the Orchestrate API.

Every error raised on purpose by wxomcp derives from ``OrchestrateError`` so
the MCP surface and the CLI can map them to a single error payload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wxomcp.models.run import PollStats, RunHandle

_BODY_PREVIEW_CHARS = 500


class OrchestrateError(Exception):
    """Base class for wxomcp errors."""


class ConfigurationError(OrchestrateError):
    """Required settings are missing."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in the environment or in a .env file."
        )
        self.missing = missing


class RemoteCallError(OrchestrateError):
    """A remote endpoint answered with a failure."""

    def __init__(self, message: str, status: int | None, body: str) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class AuthenticationFailed(RemoteCallError):
    """The identity service rejected the API key exchange."""

    def __init__(self, status: int | None, body: str) -> None:
        super().__init__(
            f"IAM token request failed: {status} {body[:_BODY_PREVIEW_CHARS]}",
            status,
            body,
        )


class RunStartFailed(RemoteCallError):
    """The runs endpoint refused to start a run."""

    def __init__(self, status: int | None, body: str, reason: str = "Failed to start run") -> None:
        super().__init__(f"{reason}: {status} {body[:_BODY_PREVIEW_CHARS]}", status, body)


class OrchestrateAPIError(RemoteCallError):
    """A resource endpoint returned a non-success status."""

    def __init__(self, status: int | None, body: str, action: str) -> None:
        super().__init__(
            f"Failed to {action}: {status} {body[:_BODY_PREVIEW_CHARS]}",
            status,
            body,
        )
        self.action = action


class ResourceNotFound(OrchestrateError):
    """Name resolution found no matching resource."""

    def __init__(self, kind: str, name: str, hint: str | None = None) -> None:
        message = f'{kind} not found: "{name}"'
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)
        self.kind = kind
        self.name = name


class RunTimeout(OrchestrateError):
    """No assistant reply arrived within the poll budget."""

    def __init__(
        self,
        handle: RunHandle,
        stats: PollStats,
        message: str = "Timed out waiting for assistant response.",
    ) -> None:
        super().__init__(message)
        self.handle = handle
        self.stats = stats


class PollingDegraded(RunTimeout):
    """Every poll attempt failed at the transport level."""

    def __init__(self, handle: RunHandle, stats: PollStats) -> None:
        super().__init__(
            handle,
            stats,
            f"Timed out waiting for assistant response: all {stats.attempts} "
            "message polls failed.",
        )
