"""Tests for agent.tool_executor -- concurrent dispatch and result folding.

Run with:
    python -m pytest tests/agent/test_tool_executor.py -v
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from agent.observer import RecordingObserver, ToolCallEvent
from agent.tool_calls import ToolCall
from agent.tool_executor import (
    MAX_TOOL_RESULT_CHARS,
    ToolExecConfig,
    ToolOutcome,
    execute_tool_calls,
    format_tool_output,
    format_tool_results,
    preview,
    truncate_tool_output,
)
from tools.base import Tool, ToolResult, ToolSchema
from tools.registry import ToolRegistry


# ---------------------------------------------------------------------------
# Fake tools
# ---------------------------------------------------------------------------

class SleepyTool(Tool):
    """Echoes its label after a delay, recording completion order."""

    def __init__(self, finished):
        self.finished = finished

    @property
    def schema(self):
        return ToolSchema(name="sleepy", description="sleep then echo")

    async def execute(self, args):
        await asyncio.sleep(args["delay"])
        self.finished.append(args["label"])
        return ToolResult.ok(args["label"])


class FailingTool(Tool):
    @property
    def schema(self):
        return ToolSchema(name="failing", description="always fails")

    async def execute(self, args):
        return ToolResult.fail("boom")


class ExplodingTool(Tool):
    @property
    def schema(self):
        return ToolSchema(name="exploding", description="raises")

    async def execute(self, args):
        raise RuntimeError("kaboom")


@pytest.fixture
def finished():
    return []


@pytest.fixture
def registry(finished):
    return ToolRegistry([SleepyTool(finished), FailingTool(), ExplodingTool()])


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

class TestFormatting:
    def test_success_output_passes_through(self):
        assert format_tool_output(ToolResult.ok("fine")) == "fine"

    def test_failure_prefers_error(self):
        assert format_tool_output(ToolResult.fail("bad", output="partial")) == "Error: bad"

    def test_failure_without_error_uses_output(self):
        assert format_tool_output(ToolResult(success=False, output="partial")) == "Error: partial"

    def test_preview_truncates_at_120(self):
        assert preview("x" * 120) == "x" * 120
        assert preview("x" * 121) == "x" * 120 + "..."

    def test_truncate_large_output(self):
        text = "y" * (MAX_TOOL_RESULT_CHARS + 10)
        result = truncate_tool_output(text)
        assert result.startswith("y" * MAX_TOOL_RESULT_CHARS)
        assert "[Truncated" in result

    def test_format_tool_results_block(self):
        outcomes = [
            ToolOutcome("shell", "file.txt", True, 0.1),
            ToolOutcome("file_read", "Error: nope", False, 0.1),
        ]
        assert format_tool_results(outcomes) == (
            "[Tool results]\n"
            '<tool_result name="shell">\nfile.txt\n</tool_result>\n'
            '<tool_result name="file_read">\nError: nope\n</tool_result>'
        )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestExecuteToolCalls:
    @pytest.mark.asyncio
    async def test_results_in_parse_order_despite_completion_order(self, registry, finished):
        calls = [
            ToolCall("sleepy", {"delay": 0.05, "label": "first"}),
            ToolCall("sleepy", {"delay": 0.0, "label": "second"}),
        ]
        outcomes = await execute_tool_calls(calls, registry)
        assert finished == ["second", "first"]
        assert [o.output for o in outcomes] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_calls_run_concurrently(self, registry):
        calls = [ToolCall("sleepy", {"delay": 0.2, "label": str(i)}) for i in range(5)]
        loop = asyncio.get_running_loop()
        start = loop.time()
        await execute_tool_calls(calls, registry)
        assert loop.time() - start < 0.8

    @pytest.mark.asyncio
    async def test_fault_isolation(self, registry):
        calls = [
            ToolCall("failing"),
            ToolCall("sleepy", {"delay": 0, "label": "ok"}),
            ToolCall("nope"),
            ToolCall("exploding"),
        ]
        outcomes = await execute_tool_calls(calls, registry)
        assert outcomes[0].output == "Error: boom"
        assert outcomes[1].output == "ok"
        assert outcomes[1].success
        assert outcomes[2].output == "Unknown tool: nope"
        assert outcomes[3].output == "Error: Tool execution error: kaboom"
        assert not any(o.success for o in (outcomes[0], outcomes[2], outcomes[3]))

    @pytest.mark.asyncio
    async def test_events_and_observer(self, registry):
        events = []
        observer = RecordingObserver()
        calls = [ToolCall("sleepy", {"delay": 0, "label": "z" * 200}), ToolCall("failing")]

        await execute_tool_calls(calls, registry, observer=observer, event_sink=events.append)

        starts = [e for e in events if e.kind == "tool_start"]
        results = [e for e in events if e.kind == "tool_result"]
        assert [e.name for e in starts] == ["sleepy", "failing"]
        assert events[:2] == starts
        assert {e.name for e in results} == {"sleepy", "failing"}
        sleepy_preview = next(e.text for e in results if e.name == "sleepy")
        assert sleepy_preview == "z" * 120 + "..."

        tool_events = [e for e in observer.events if isinstance(e, ToolCallEvent)]
        assert {(e.tool, e.success) for e in tool_events} == {("sleepy", True), ("failing", False)}

    @pytest.mark.asyncio
    async def test_custom_result_limit(self, registry):
        config = ToolExecConfig(max_result_chars=10)
        outcomes = await execute_tool_calls(
            [ToolCall("sleepy", {"delay": 0, "label": "a" * 50})], registry, config=config,
        )
        assert outcomes[0].output.startswith("a" * 10 + "\n\n[Truncated")

    @pytest.mark.asyncio
    async def test_crashed_task_becomes_error_string(self, registry):
        with patch.object(registry, "execute", AsyncMock(side_effect=RuntimeError("registry broke"))):
            outcomes = await execute_tool_calls([ToolCall("failing")], registry)
        assert outcomes[0].output == "Error executing failing: registry broke"
        assert not outcomes[0].success

    @pytest.mark.asyncio
    async def test_failing_sink_is_ignored(self, registry):
        def bad_sink(event):
            raise ValueError("sink broke")

        outcomes = await execute_tool_calls(
            [ToolCall("sleepy", {"delay": 0, "label": "ok"})], registry, event_sink=bad_sink,
        )
        assert outcomes[0].success
