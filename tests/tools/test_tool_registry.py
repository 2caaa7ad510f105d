"""Tests for tools.registry."""

from typing import Any, Dict

import pytest

from agent.memory import NoneMemory
from security.policy import SecurityPolicy
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, str_arg
from tools.registry import ToolRegistry, build_default_registry


class UpperTool(Tool):
    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="upper",
            description="Uppercase text",
            parameters={"text": {"type": "string"}},
            required=["text"],
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        return ToolResult.ok(str_arg(args, "text").upper())


class CrashingTool(Tool):
    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(name="crash", description="Always raises")

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        raise RuntimeError("kaboom")


class TouchTool(Tool):
    category = "write"

    def __init__(self):
        self.calls = 0

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(name="touch", description="Pretends to write a file")

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        self.calls += 1
        return ToolResult.ok("touched")


class TestToolRegistry:
    def test_register_and_lookup(self):
        registry = ToolRegistry([UpperTool()])
        assert "upper" in registry
        assert len(registry) == 1
        assert registry.get("upper").description == "Uppercase text"
        assert registry.get("missing") is None
        assert registry.names() == ["upper"]

    def test_register_replaces_same_name(self):
        registry = ToolRegistry([UpperTool()])
        replacement = UpperTool()
        registry.register(replacement)
        assert len(registry) == 1
        assert registry.get("upper") is replacement

    def test_schemas(self):
        registry = ToolRegistry([UpperTool()])
        assert registry.get_schemas()[0].to_dict() == {
            "type": "function",
            "function": {
                "name": "upper",
                "description": "Uppercase text",
                "parameters": {
                    "type": "object",
                    "properties": {"text": {"type": "string"}},
                    "required": ["text"],
                },
            },
        }
        assert registry.get_prompt_description().startswith("**upper**: Uppercase text\nParameters: `")

    @pytest.mark.asyncio
    async def test_execute(self):
        result = await ToolRegistry([UpperTool()]).execute("upper", {"text": "hi"})
        assert result.success
        assert result.output == "HI"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await ToolRegistry().execute("nope", {})
        assert result.error == "Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_argument_error_becomes_failure(self):
        result = await ToolRegistry([UpperTool()]).execute("upper", {})
        assert not result.success
        assert result.error == "Missing 'text' parameter"

    @pytest.mark.asyncio
    async def test_crash_becomes_failure(self):
        result = await ToolRegistry([CrashingTool()]).execute("crash", {})
        assert not result.success
        assert result.error == "Tool execution error: kaboom"


    @pytest.mark.asyncio
    async def test_read_only_policy_blocks_write_category(self, tmp_path):
        touch = TouchTool()
        registry = ToolRegistry([touch, UpperTool()], security=SecurityPolicy(tmp_path, "read_only"))

        result = await registry.execute("touch", {})

        assert not result.success
        assert result.error == (
            "Action blocked: write tools are not allowed at autonomy level read_only"
        )
        assert touch.calls == 0

        allowed = await registry.execute("upper", {"text": "still fine"})
        assert allowed.output == "STILL FINE"

    @pytest.mark.asyncio
    async def test_supervised_policy_runs_write_category(self, tmp_path):
        touch = TouchTool()
        registry = ToolRegistry([touch], security=SecurityPolicy(tmp_path))
        result = await registry.execute("touch", {})
        assert result.output == "touched"
        assert touch.calls == 1


class TestDefaultRegistry:
    def test_builtin_tools(self, tmp_path):
        registry = build_default_registry(SecurityPolicy(tmp_path))
        assert registry.names() == [
            "shell", "file_read", "file_write", "file_patch", "search_files", "web_fetch",
        ]
        categories = {tool.name: tool.category for tool in registry.list_tools()}
        assert categories["shell"] == "shell"
        assert categories["file_write"] == "write"
        assert categories["web_fetch"] == "network"

    def test_memory_tools_with_backend(self, tmp_path):
        registry = build_default_registry(SecurityPolicy(tmp_path), NoneMemory())
        assert {"memory_store", "memory_recall", "memory_forget"} <= set(registry.names())

    @pytest.mark.asyncio
    async def test_read_only_blocks_builtin_file_write(self, tmp_path):
        registry = build_default_registry(SecurityPolicy(tmp_path, "read_only"))
        result = await registry.execute("file_write", {"path": "a.txt", "content": "x"})
        assert result.error.startswith("Action blocked: write tools")
        assert not (tmp_path / "a.txt").exists()


def test_argument_error_is_value_error():
    assert issubclass(ToolArgumentError, ValueError)
