"""System prompt assembly with caching.

Caching contract:
    - build() returns the cached prompt on subsequent calls
    - invalidate() clears the cache
    - After invalidate(), the next build() call creates a fresh prompt
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from clawloop_constants import TOOL_CALL_END, TOOL_CALL_START
from tools.registry import ToolRegistry

DEFAULT_AGENT_IDENTITY = (
    "You are clawloop, an autonomous assistant that works inside a sandboxed "
    "workspace. Be direct and concise. Use tools when they help you verify "
    "facts or make changes; do not invent tool output."
)

SAFETY_GUIDANCE = (
    "## Safety\n\n"
    "- Stay inside the workspace directory.\n"
    "- Do not run destructive commands unless the user asked for them.\n"
    "- If a tool call is denied by policy, explain what you wanted to do instead of retrying it."
)


def build_tool_instructions(registry: ToolRegistry) -> str:
    """Describe the tool-call protocol and every registered tool."""
    parts = [
        "\n## Tool Use Protocol\n\n",
        f"To use a tool, wrap a JSON object in {TOOL_CALL_START}{TOOL_CALL_END} tags:\n\n",
        f"```\n{TOOL_CALL_START}\n"
        '{"name": "tool_name", "arguments": {"param": "value"}}'
        f"\n{TOOL_CALL_END}\n```\n\n",
        "You may use multiple tool calls in a single response. ",
        "After tool execution, results appear in <tool_result> tags. ",
        "Continue reasoning with the results until you can give a final answer.\n\n",
        "### Available Tools\n\n",
    ]
    for schema in registry.get_schemas():
        parts.append(schema.to_prompt_description() + "\n\n")
    return "".join(parts)


class PromptAssembler:
    """Assembles the system prompt from identity, runtime context and tools.

    Args:
        workspace_dir: The sandbox root shown to the model.
        model: Model name shown to the model.
        identity: Optional replacement for the default identity paragraph.
    """

    def __init__(
        self,
        workspace_dir: Union[str, Path],
        model: str,
        *,
        identity: Optional[str] = None,
    ):
        self._workspace_dir = Path(workspace_dir)
        self._model = model
        self._identity = identity or DEFAULT_AGENT_IDENTITY
        self._cached_prompt: Optional[str] = None

    def build(self, registry: ToolRegistry) -> str:
        if self._cached_prompt is not None:
            return self._cached_prompt

        prompt_parts = [self._identity]

        tool_names = registry.names()
        if tool_names:
            prompt_parts.append("## Tools\n\n" + "\n".join(f"- {name}" for name in tool_names))

        prompt_parts.append(SAFETY_GUIDANCE)

        now = datetime.now().astimezone()
        prompt_parts.append(
            "## Runtime\n\n"
            f"Workspace: {self._workspace_dir}\n"
            f"Model: {self._model}\n"
            f"Current time: {now.strftime('%A, %B %d, %Y %I:%M %p %Z')}"
        )

        prompt = "\n\n".join(prompt_parts) + "\n" + build_tool_instructions(registry)
        self._cached_prompt = prompt
        return prompt

    def invalidate(self) -> None:
        self._cached_prompt = None


def build_system_prompt(
    workspace_dir: Union[str, Path],
    model: str,
    registry: ToolRegistry,
    identity: Optional[str] = None,
) -> str:
    return PromptAssembler(workspace_dir, model, identity=identity).build(registry)
