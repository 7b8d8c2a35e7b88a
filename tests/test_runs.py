"""Tests for thread message decoding, content extraction and the run poll loop."""

from __future__ import annotations

import httpx
import pydantic
import pytest

from tests.helpers import json_body
from wxomcp.core.errors import PollingDegraded, RunStartFailed, RunTimeout
from wxomcp.core.runs.content import extract_content, latest_assistant_message
from wxomcp.core.runs.invoker import (
    AGENT_CHAT_POLICY,
    RUNS_PATH,
    TOOL_EXECUTION_POLICY,
    thread_messages_path,
)
from wxomcp.models.run import (
    Message,
    PollPolicy,
    RunTarget,
    TextBlock,
    ToolResultBlock,
    UnknownBlock,
    decode_messages,
)

MESSAGES_T1 = thread_messages_path("t1")


class TestDecodeMessages:
    def test_bare_list(self):
        messages = decode_messages([{"role": "user", "content": "hi"}])
        assert [m.role for m in messages] == ["user"]

    @pytest.mark.parametrize("key", ["data", "messages"])
    def test_envelopes(self, key):
        messages = decode_messages({key: [{"role": "assistant", "content": "x"}]})
        assert messages[0].is_assistant

    @pytest.mark.parametrize("payload", [None, "text", {"items": []}, {"data": "nope"}])
    def test_unrecognized_shapes_are_empty(self, payload):
        assert decode_messages(payload) == []

    def test_blocks_decoded_from_list_content(self):
        message = Message.from_payload(
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "a"},
                    {"type": "tool_result", "output": 1},
                    {"type": "image", "url": "x"},
                    "loose",
                ],
            }
        )
        kinds = [type(block) for block in message.blocks]
        assert kinds == [TextBlock, ToolResultBlock, UnknownBlock, UnknownBlock]
        assert message.blocks[2].type == "image"

    def test_non_dict_message(self):
        message = Message.from_payload("stray")
        assert message.role == ""
        assert not message.is_assistant


def assistant(content) -> Message:
    return Message.from_payload({"role": "assistant", "content": content})


class TestExtractContent:
    def test_nested_text_value(self):
        assert extract_content(assistant([{"type": "text", "text": {"value": "42"}}])) == "42"

    def test_tool_result_output(self):
        assert extract_content(assistant([{"type": "tool_result", "output": "ok"}])) == "ok"

    def test_plain_string(self):
        assert extract_content(assistant("hello")) == "hello"

    def test_tool_result_wins_over_earlier_text(self):
        content = [
            {"type": "text", "text": "thinking"},
            {"type": "tool_result", "content": {"temp": 21}},
        ]
        assert extract_content(assistant(content)) == '{"temp": 21}'

    def test_tool_result_falls_back_to_raw_block(self):
        block = {"type": "tool_result", "id": "r1"}
        assert extract_content(assistant([block])) == '{"type": "tool_result", "id": "r1"}'

    def test_text_value_non_string(self):
        assert extract_content(assistant([{"type": "text", "text": {"value": [1, 2]}}])) == "[1, 2]"

    def test_text_without_value(self):
        assert extract_content(assistant([{"type": "text", "text": {"other": 1}}])) == '{"other": 1}'

    def test_reads_decoded_blocks(self):
        message = Message(
            role="assistant",
            content=[{"type": "text", "text": "raw"}],
            blocks=[TextBlock(text="decoded")],
        )
        assert extract_content(message) == "decoded"

    def test_unknown_blocks_render_whole_list(self):
        assert extract_content(assistant([{"type": "image"}])) == '[{"type": "image"}]'

    @pytest.mark.parametrize(
        ("content", "expected"),
        [(None, "null"), (7, "7"), ({"a": 1}, '{"a": 1}'), ([], "[]")],
    )
    def test_other_values_render_as_json(self, content, expected):
        assert extract_content(assistant(content)) == expected


def test_latest_assistant_message_picks_last():
    messages = decode_messages(
        [
            {"role": "assistant", "content": "first"},
            {"role": "user", "content": "again"},
            {"role": "assistant", "content": "second"},
            {"role": "user", "content": "trailing"},
        ]
    )
    assert latest_assistant_message(messages).content == "second"
    assert latest_assistant_message(messages[1:2]) is None


class TestRunTarget:
    def test_agent_payload(self):
        payload = RunTarget(agent_id="a1").to_payload("hi")
        assert payload == {"agent_id": "a1", "message": {"role": "user", "content": "hi"}}

    def test_tool_payload_carries_parameters(self):
        payload = RunTarget(agent_id="a1", tool_id="t9", parameters={"q": 1}).to_payload("go")
        assert payload["tool_id"] == "t9"
        assert payload["parameters"] == {"q": 1}
        assert payload["agent_id"] == "a1"


class TestPollPolicy:
    def test_presets(self):
        assert (AGENT_CHAT_POLICY.interval_seconds, AGENT_CHAT_POLICY.max_attempts) == (2.0, 15)
        assert (TOOL_EXECUTION_POLICY.interval_seconds, TOOL_EXECUTION_POLICY.max_attempts) == (
            4.0,
            12,
        )

    def test_rejects_zero_attempts(self):
        with pytest.raises(pydantic.ValidationError):
            PollPolicy(interval_seconds=1.0, max_attempts=0)


class TestStartRun:
    @pytest.mark.asyncio
    async def test_returns_handle(self, services, fake):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1", "thread_id": "t1", "status": "queued"})

        handle = await services.invoker.start_run(RunTarget(agent_id="a1"), "hello")

        assert (handle.thread_id, handle.run_id) == ("t1", "r1")
        (request,) = fake.calls("POST", RUNS_PATH)
        assert json_body(request)["message"] == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_non_success_raises(self, services, fake):
        fake.add("POST", RUNS_PATH, 403, "forbidden")

        with pytest.raises(RunStartFailed) as excinfo:
            await services.invoker.start_run(RunTarget(agent_id="a1"), "hello")

        assert excinfo.value.status == 403
        assert str(excinfo.value).startswith("Failed to start run")

    @pytest.mark.asyncio
    async def test_transport_error_raises_run_start_failed(self, services, fake):
        fake.fail("POST", RUNS_PATH, httpx.ConnectError("refused"))

        with pytest.raises(RunStartFailed) as excinfo:
            await services.invoker.start_run(RunTarget(agent_id="a1"), "hello")

        assert excinfo.value.status is None
        assert "refused" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_missing_thread_id_raises(self, services, fake):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1"})

        with pytest.raises(RunStartFailed, match="No thread_id returned from run"):
            await services.invoker.start_run(RunTarget(agent_id="a1"), "hello")


class TestInvoke:
    @pytest.mark.asyncio
    async def test_reply_after_second_poll(self, services, fake, sleeper):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1", "thread_id": "t1"})
        fake.add("GET", MESSAGES_T1, 200, [])
        fake.add("GET", MESSAGES_T1, 200, [{"role": "assistant", "content": "7.32"}])

        reply = await services.invoker.invoke(
            RunTarget(agent_id="a1"), "convert", policy=AGENT_CHAT_POLICY
        )

        assert reply.content == "7.32"
        assert reply.handle.run_id == "r1"
        assert reply.handle.thread_id == "t1"
        assert reply.attempts == 2
        assert sleeper.calls == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_selects_last_assistant_message(self, services, fake):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1", "thread_id": "t1"})
        fake.add(
            "GET",
            MESSAGES_T1,
            200,
            {
                "data": [
                    {"role": "user", "content": "q"},
                    {"role": "assistant", "content": "old"},
                    {"role": "assistant", "content": [{"type": "text", "text": "new"}]},
                ]
            },
        )

        reply = await services.invoker.invoke(
            RunTarget(agent_id="a1"), "q", policy=PollPolicy(interval_seconds=0, max_attempts=3)
        )

        assert reply.content == "new"
        assert reply.attempts == 1

    @pytest.mark.asyncio
    async def test_times_out_after_exactly_max_attempts(self, services, fake, sleeper):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1", "thread_id": "t1"})
        fake.add("GET", MESSAGES_T1, 200, [{"role": "user", "content": "q"}])
        policy = PollPolicy(interval_seconds=0.5, max_attempts=4)

        with pytest.raises(RunTimeout) as excinfo:
            await services.invoker.invoke(RunTarget(agent_id="a1"), "q", policy=policy)

        assert not isinstance(excinfo.value, PollingDegraded)
        assert excinfo.value.handle.thread_id == "t1"
        assert excinfo.value.stats.attempts == 4
        assert len(fake.calls("GET", MESSAGES_T1)) == 4
        assert sleeper.calls == [0.5] * 4

    @pytest.mark.asyncio
    async def test_tolerates_transient_poll_failures(self, services, fake):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1", "thread_id": "t1"})
        fake.add("GET", MESSAGES_T1, 502, "bad gateway")
        fake.fail("GET", MESSAGES_T1, httpx.ReadTimeout("slow"))
        fake.add("GET", MESSAGES_T1, 200, [{"role": "assistant", "content": "done"}])

        reply = await services.invoker.invoke(
            RunTarget(agent_id="a1"), "q", policy=PollPolicy(interval_seconds=0, max_attempts=5)
        )

        assert reply.content == "done"
        assert reply.attempts == 3

    @pytest.mark.asyncio
    async def test_all_polls_failing_is_degraded(self, services, fake):
        fake.add("POST", RUNS_PATH, 200, {"id": "r1", "thread_id": "t1"})
        fake.add("GET", MESSAGES_T1, 503, "unavailable")

        with pytest.raises(PollingDegraded) as excinfo:
            await services.invoker.invoke(
                RunTarget(agent_id="a1"), "q", policy=PollPolicy(interval_seconds=0, max_attempts=3)
            )

        assert excinfo.value.stats.transport_errors == 3
        assert "all 3 message polls failed" in str(excinfo.value)
