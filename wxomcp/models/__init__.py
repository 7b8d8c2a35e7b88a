"""Pydantic data models for wxomcp."""

from wxomcp.models.run import (
    ContentBlock,
    Message,
    MessageRole,
    PollPolicy,
    PollStats,
    RunHandle,
    RunReply,
    RunTarget,
    TextBlock,
    ToolResultBlock,
    UnknownBlock,
    decode_block,
    decode_messages,
)

__all__ = [
    "ContentBlock",
    "Message",
    "MessageRole",
    "PollPolicy",
    "PollStats",
    "RunHandle",
    "RunReply",
    "RunTarget",
    "TextBlock",
    "ToolResultBlock",
    "UnknownBlock",
    "decode_block",
    "decode_messages",
]
