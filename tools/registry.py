"""Tool registry and the default built-in tool set."""

import logging
from typing import Dict, List, Optional

from agent.memory import Memory
from security.policy import SecurityPolicy
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema
from tools.file_patch import FilePatchTool
from tools.file_read import FileReadTool
from tools.file_write import FileWriteTool
from tools.memory_tools import MemoryForgetTool, MemoryRecallTool, MemoryStoreTool
from tools.search_files import SearchFilesTool
from tools.shell import ShellTool
from tools.web_fetch import WebFetchTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tools, keyed by name."""

    def __init__(
        self,
        tools: Optional[List[Tool]] = None,
        security: Optional[SecurityPolicy] = None,
    ):
        self._tools: Dict[str, Tool] = {}
        self.security = security
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.debug("Replacing registered tool %s", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def get_schemas(self) -> List[ToolSchema]:
        return [tool.schema for tool in self._tools.values()]

    def get_prompt_description(self) -> str:
        return "\n\n".join(tool.schema.to_prompt_description() for tool in self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, name: str, arguments: Dict) -> ToolResult:
        """Run a tool by name. Never raises for tool-level problems."""
        tool = self.get(name)
        if tool is None:
            return ToolResult.fail(f"Unknown tool: {name}")
        if self.security is not None and not self.security.allows_category(tool.category):
            logger.info("Blocked %s tool %s at autonomy %s", tool.category, name, self.security.autonomy.value)
            return ToolResult.fail(
                f"Action blocked: {tool.category} tools are not allowed at autonomy level "
                f"{self.security.autonomy.value}"
            )
        try:
            return await tool.execute(arguments)
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception("Tool %s raised", name)
            return ToolResult.fail(f"Tool execution error: {e}")


def build_default_registry(
    security: SecurityPolicy,
    memory: Optional[Memory] = None,
) -> ToolRegistry:
    """Built-in tools; memory tools are included only when a backend is given."""
    tools: List[Tool] = [
        ShellTool(security),
        FileReadTool(security),
        FileWriteTool(security),
        FilePatchTool(security),
        SearchFilesTool(security),
        WebFetchTool(),
    ]
    if memory is not None:
        tools.extend([
            MemoryStoreTool(memory),
            MemoryRecallTool(memory),
            MemoryForgetTool(memory),
        ])
    return ToolRegistry(tools, security=security)
