"""Tools that let the model store, recall and forget long-term memories."""

import logging
from typing import Any, Dict

from agent.memory import Memory, MemoryCategory
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, str_arg

logger = logging.getLogger(__name__)

DEFAULT_RECALL_LIMIT = 5
MAX_RECALL_LIMIT = 50


class MemoryStoreTool(Tool):
    category = "memory"

    def __init__(self, memory: Memory):
        self.memory = memory

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="memory_store",
            description="Save a fact to long-term memory under a short key. Overwrites an existing key.",
            parameters={
                "key": {"type": "string", "description": "Short unique key, e.g. user_timezone"},
                "content": {"type": "string", "description": "The fact to remember"},
                "category": {
                    "type": "string",
                    "enum": [c.value for c in MemoryCategory],
                    "description": "Memory category (default: core)",
                },
            },
            required=["key", "content"],
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            key = str_arg(args, "key")
            content = str_arg(args, "content")
            category = MemoryCategory(str_arg(args, "category", default=MemoryCategory.CORE.value))
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))
        except ValueError:
            return ToolResult.fail(f"Unknown memory category: {args.get('category')}")

        await self.memory.store(key, content, category)
        return ToolResult.ok(f"Stored memory: {key}")


class MemoryRecallTool(Tool):
    category = "memory"

    def __init__(self, memory: Memory):
        self.memory = memory

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="memory_recall",
            description="Search long-term memory for entries relevant to a query.",
            parameters={
                "query": {"type": "string", "description": "What to look for"},
                "limit": {"type": "integer", "description": f"Maximum entries (default {DEFAULT_RECALL_LIMIT})"},
            },
            required=["query"],
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            query = str_arg(args, "query")
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))
        limit = args.get("limit", DEFAULT_RECALL_LIMIT)
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            limit = DEFAULT_RECALL_LIMIT
        limit = min(limit, MAX_RECALL_LIMIT)

        entries = await self.memory.recall(query, limit)
        if not entries:
            return ToolResult.ok("No memories found.", count=0)
        lines = [f"- [{entry.category.value}] {entry.key}: {entry.content}" for entry in entries]
        return ToolResult.ok(f"Found {len(entries)} memories:\n" + "\n".join(lines), count=len(entries))


class MemoryForgetTool(Tool):
    category = "memory"

    def __init__(self, memory: Memory):
        self.memory = memory

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="memory_forget",
            description="Delete a long-term memory by key.",
            parameters={
                "key": {"type": "string", "description": "Key of the memory to delete"},
            },
            required=["key"],
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            key = str_arg(args, "key")
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))
        if await self.memory.forget(key):
            return ToolResult.ok(f"Forgot memory: {key}")
        return ToolResult.ok(f"No memory found for key: {key}")
