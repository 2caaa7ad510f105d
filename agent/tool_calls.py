"""
Parsing of tool calls embedded in model output.

Format:
    <tool_call>{"name": "shell", "arguments": {"command": "ls"}}</tool_call>

Any number of calls may appear, interleaved with free text. The text
outside the markers is the model's narrative and is returned separately.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from clawloop_constants import TOOL_CALL_END, TOOL_CALL_START

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A parsed tool call from model output."""

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


def _coerce_arguments(raw: Any) -> Dict[str, Any]:
    # Some models double-encode the arguments object as a JSON string
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return {}
    if isinstance(raw, dict):
        return raw
    return {}


def _decode_call(body: str) -> Optional[ToolCall]:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        logger.debug("Dropping malformed tool call: %.200s", body)
        return None
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    if not isinstance(name, str):
        # resolves to "Unknown tool: " at execution time
        name = ""
    call = ToolCall(name=name, arguments=_coerce_arguments(data.get("arguments")))
    call_id = data.get("id")
    if isinstance(call_id, str) and call_id:
        call.id = call_id
    return call


def parse_tool_calls(text: str) -> Tuple[str, List[ToolCall]]:
    """Split model output into narrative text and tool calls, in order.

    Text segments are stripped and joined with newlines. A start marker
    without a matching end marker stops the scan; everything from that
    marker onward is kept as narrative.
    """
    segments: List[str] = []
    calls: List[ToolCall] = []
    remaining = text

    while True:
        start = remaining.find(TOOL_CALL_START)
        if start < 0:
            break
        end = remaining.find(TOOL_CALL_END, start + len(TOOL_CALL_START))
        if end < 0:
            break

        before = remaining[:start].strip()
        if before:
            segments.append(before)

        body = remaining[start + len(TOOL_CALL_START):end].strip()
        call = _decode_call(body)
        if call is not None:
            calls.append(call)
        remaining = remaining[end + len(TOOL_CALL_END):]

    tail = remaining.strip()
    if tail:
        segments.append(tail)

    return "\n".join(segments), calls


def has_tool_call(text: str) -> bool:
    return TOOL_CALL_START in text
