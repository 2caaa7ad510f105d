"""Concurrent tool call execution.

All calls from one model response are dispatched at once. Each call is
isolated: an unknown tool, a failing tool or a crashed task produces an
error string for that call only. Results come back in the order the
calls were parsed, regardless of completion order.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List

from agent.events import AgentEvent, EventSink, discard_event, send
from agent.observer import NoopObserver, Observer, ToolCallEvent, emit
from agent.tool_calls import ToolCall
from tools.base import ToolResult
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_TOOL_RESULT_CHARS = 100_000
PREVIEW_CHARS = 120
TOOL_RESULTS_HEADER = "[Tool results]"


@dataclass(frozen=True)
class ToolExecConfig:
    """Immutable configuration for tool execution."""

    max_result_chars: int = MAX_TOOL_RESULT_CHARS
    preview_chars: int = PREVIEW_CHARS


@dataclass(frozen=True)
class ToolOutcome:
    name: str
    output: str
    success: bool
    duration: float


def format_tool_output(result: ToolResult) -> str:
    if result.success:
        return result.output
    return f"Error: {result.error or result.output}"


def truncate_tool_output(text: str, limit: int = MAX_TOOL_RESULT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return (
        text[:limit]
        + f"\n\n[Truncated: tool response was {len(text):,} chars, "
        f"exceeding the {limit:,} char limit]"
    )


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_tool_results(outcomes: List[ToolOutcome]) -> str:
    """Fold outcomes into the user message fed back to the model."""
    blocks = [
        f'<tool_result name="{outcome.name}">\n{outcome.output}\n</tool_result>'
        for outcome in outcomes
    ]
    return TOOL_RESULTS_HEADER + "\n" + "\n".join(blocks)


async def _run_one(
    call: ToolCall,
    registry: ToolRegistry,
    config: ToolExecConfig,
    observer: Observer,
    event_sink: EventSink,
) -> ToolOutcome:
    start = time.monotonic()
    if call.name not in registry:
        output = f"Unknown tool: {call.name}"
        success = False
    else:
        result = await registry.execute(call.name, call.arguments)
        output = truncate_tool_output(format_tool_output(result), config.max_result_chars)
        success = result.success
    duration = time.monotonic() - start

    logger.debug("Tool %s finished in %.3fs success=%s", call.name, duration, success)
    emit(observer, ToolCallEvent(tool=call.name, duration=duration, success=success))
    send(event_sink, AgentEvent.tool_result(call.name, preview(output, config.preview_chars)))
    return ToolOutcome(call.name, output, success, duration)


async def execute_tool_calls(
    calls: List[ToolCall],
    registry: ToolRegistry,
    *,
    config: ToolExecConfig = ToolExecConfig(),
    observer: Observer = NoopObserver(),
    event_sink: EventSink = discard_event,
) -> List[ToolOutcome]:
    """Run every call concurrently and return outcomes in ``calls`` order."""
    for call in calls:
        send(event_sink, AgentEvent.tool_start(call.name))

    results = await asyncio.gather(
        *(_run_one(call, registry, config, observer, event_sink) for call in calls),
        return_exceptions=True,
    )

    outcomes: List[ToolOutcome] = []
    for call, result in zip(calls, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.error("Tool task for %s crashed: %s", call.name, result, exc_info=result)
            outcomes.append(ToolOutcome(call.name, f"Error executing {call.name}: {result}", False, 0.0))
        else:
            outcomes.append(result)
    return outcomes
