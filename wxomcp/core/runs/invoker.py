"""Start a run and poll its thread until the assistant replies.

Agent chat and tool execution share one poll loop and differ only in their
``PollPolicy``. A poll that fails at the transport level (non-2xx status or
an httpx exception) is counted and skipped; the loop keeps going until an
assistant message shows up or the attempts run out.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from wxomcp.core.client import OrchestrateClient, decode_body
from wxomcp.core.errors import PollingDegraded, RunStartFailed, RunTimeout
from wxomcp.core.runs.content import extract_content, latest_assistant_message
from wxomcp.models.run import (
    PollPolicy,
    PollStats,
    RunHandle,
    RunReply,
    RunTarget,
    decode_messages,
)

logger = logging.getLogger(__name__)

RUNS_PATH = "/v1/orchestrate/runs"

AGENT_CHAT_POLICY = PollPolicy(interval_seconds=2.0, max_attempts=15)
TOOL_EXECUTION_POLICY = PollPolicy(interval_seconds=4.0, max_attempts=12)


def thread_messages_path(thread_id: str) -> str:
    return f"/v1/orchestrate/threads/{thread_id}/messages"


class RunPollInvoker:
    """Runs one message against a target and waits for the reply."""

    def __init__(
        self,
        client: OrchestrateClient,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self._sleep = sleep

    async def start_run(self, target: RunTarget, message: str) -> RunHandle:
        try:
            response = await self.client.request("POST", RUNS_PATH, json=target.to_payload(message))
        except httpx.HTTPError as exc:
            raise RunStartFailed(None, str(exc)) from exc
        if not response.is_success:
            raise RunStartFailed(response.status_code, response.text)

        body = decode_body(response)
        thread_id = body.get("thread_id") if isinstance(body, dict) else None
        if not thread_id:
            raise RunStartFailed(
                response.status_code,
                response.text,
                reason="No thread_id returned from run",
            )
        run_id = body.get("id")
        logger.info("Run started: status=%s thread=%s", body.get("status"), thread_id)
        return RunHandle(thread_id=str(thread_id), run_id=str(run_id) if run_id else None)

    async def poll(self, handle: RunHandle, policy: PollPolicy) -> RunReply:
        stats = PollStats(max_attempts=policy.max_attempts)
        path = thread_messages_path(handle.thread_id)

        while stats.attempts < policy.max_attempts:
            await self._sleep(policy.interval_seconds)
            stats.attempts += 1

            try:
                response = await self.client.request("GET", path)
            except httpx.HTTPError as exc:
                stats.transport_errors += 1
                logger.debug("Poll %d/%d failed: %s", stats.attempts, policy.max_attempts, exc)
                continue

            if not response.is_success:
                stats.transport_errors += 1
                logger.debug(
                    "Poll %d/%d returned %s",
                    stats.attempts,
                    policy.max_attempts,
                    response.status_code,
                )
                continue

            messages = decode_messages(decode_body(response))
            reply = latest_assistant_message(messages)
            if reply is not None:
                return RunReply(
                    content=extract_content(reply),
                    handle=handle,
                    attempts=stats.attempts,
                )

        if stats.transport_errors == stats.attempts:
            raise PollingDegraded(handle, stats)
        raise RunTimeout(handle, stats)

    async def invoke(self, target: RunTarget, message: str, *, policy: PollPolicy) -> RunReply:
        """Start a run for ``target`` and wait for the assistant's reply.

        Raises ``RunStartFailed`` when the run cannot be started and
        ``RunTimeout`` (or ``PollingDegraded``) when no reply arrives.
        Authentication failures propagate unchanged.
        """
        handle = await self.start_run(target, message)
        return await self.poll(handle, policy)
