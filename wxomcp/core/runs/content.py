"""Turn assistant message content into displayable text."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from wxomcp.models.run import Message, TextBlock, ToolResultBlock


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def extract_content(message: Message) -> str:
    """Return displayable text for a decoded message. Never raises.

    String content is returned as-is. When the content was a block list, the
    first ``tool_result`` block wins, then the first ``text`` block; otherwise
    the whole list is rendered as JSON. Any other value is rendered as JSON.
    """
    if isinstance(message.content, str):
        return message.content
    if message.blocks is None:
        return _render(message.content)

    for block in message.blocks:
        if isinstance(block, ToolResultBlock):
            return _render(block.payload)
    for block in message.blocks:
        if isinstance(block, TextBlock):
            return block.value
    return _render(message.content)


def latest_assistant_message(messages: Sequence[Message]) -> Message | None:
    """Return the last assistant message, or ``None``."""
    for message in reversed(messages):
        if message.is_assistant:
            return message
    return None
