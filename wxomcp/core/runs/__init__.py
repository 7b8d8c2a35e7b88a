"""Run/poll invocation against agents and tools."""

from wxomcp.core.runs.content import extract_content, latest_assistant_message
from wxomcp.core.runs.invoker import (
    AGENT_CHAT_POLICY,
    TOOL_EXECUTION_POLICY,
    RunPollInvoker,
)

__all__ = [
    "AGENT_CHAT_POLICY",
    "TOOL_EXECUTION_POLICY",
    "RunPollInvoker",
    "extract_content",
    "latest_assistant_message",
]
