"""Run, thread message, and poll models."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(StrEnum):
    """Roles a thread message may carry."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


class TextBlock(BaseModel):
    """A ``text`` content block; ``text`` is a string or ``{"value": ...}``."""

    type: Literal["text"] = "text"
    text: Any = None

    @property
    def value(self) -> str:
        if isinstance(self.text, str):
            return self.text
        if isinstance(self.text, dict) and self.text.get("value") is not None:
            inner = self.text["value"]
            return inner if isinstance(inner, str) else _dump(inner)
        return _dump(self.text)


class ToolResultBlock(BaseModel):
    """A ``tool_result`` content block."""

    type: Literal["tool_result"] = "tool_result"
    content: Any = None
    output: Any = None
    result: Any = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @property
    def payload(self) -> Any:
        """First of content/output/result that is present, else the raw block."""
        for candidate in (self.content, self.output, self.result):
            if candidate is not None:
                return candidate
        return self.raw


class UnknownBlock(BaseModel):
    """Any block type this client does not interpret."""

    type: str = ""
    raw: Any = None


ContentBlock = TextBlock | ToolResultBlock | UnknownBlock


def decode_block(raw: Any) -> ContentBlock:
    """Decode one content block; unrecognized shapes become ``UnknownBlock``."""
    if not isinstance(raw, dict):
        return UnknownBlock(raw=raw)
    block_type = raw.get("type")
    if block_type == "tool_result":
        return ToolResultBlock(
            content=raw.get("content"),
            output=raw.get("output"),
            result=raw.get("result"),
            raw=raw,
        )
    if block_type == "text":
        return TextBlock(text=raw.get("text"))
    return UnknownBlock(type=str(block_type or ""), raw=raw)


class Message(BaseModel):
    """One message in a thread.

    ``content`` keeps the raw value; ``blocks`` holds the decoded form when
    the content is a list, decoded once here and read by content extraction.
    """

    role: str = ""
    content: Any = None
    blocks: list[ContentBlock] | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> Message:
        if not isinstance(raw, dict):
            return cls(content=raw)
        content = raw.get("content")
        blocks = [decode_block(item) for item in content] if isinstance(content, list) else None
        role = raw.get("role")
        return cls(role=role if isinstance(role, str) else "", content=content, blocks=blocks)

    @property
    def is_assistant(self) -> bool:
        return self.role == MessageRole.ASSISTANT


def decode_messages(payload: Any) -> list[Message]:
    """Decode a thread messages envelope.

    Accepts a bare list, ``{"data": [...]}`` or ``{"messages": [...]}``;
    anything else decodes to no messages.
    """
    match payload:
        case list():
            items = payload
        case {"data": list() as items}:
            pass
        case {"messages": list() as items}:
            pass
        case _:
            return []
    return [Message.from_payload(item) for item in items]


class RunHandle(BaseModel):
    """Identifiers of a started run."""

    thread_id: str
    run_id: str | None = None


class PollStats(BaseModel):
    """Counters for one poll loop."""

    attempts: int = 0
    transport_errors: int = 0
    max_attempts: int = 0


class PollPolicy(BaseModel):
    """How often and how many times to poll a thread."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: float = Field(ge=0)
    max_attempts: int = Field(ge=1)


class RunTarget(BaseModel):
    """What a run is addressed to."""

    agent_id: str | None = None
    tool_id: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self, message: str) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.agent_id:
            payload["agent_id"] = self.agent_id
        if self.tool_id:
            payload["tool_id"] = self.tool_id
            payload["parameters"] = self.parameters
        payload["message"] = {"role": MessageRole.USER.value, "content": message}
        return payload


class RunReply(BaseModel):
    """Displayable content of the assistant's reply to a run."""

    content: str
    handle: RunHandle
    attempts: int
