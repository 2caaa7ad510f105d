"""
Tools Package

Built-in tools the agent can invoke through the ``<tool_call>`` protocol.
Each module provides one capability, guarded by the security policy:

- shell: command execution in the workspace
- file_read / file_write / file_patch: workspace file access
- search_files: regex search over workspace files
- web_fetch: HTTP(S) GET
- memory_tools: store / recall / forget long-term memories

``build_default_registry`` assembles the standard set.
"""

from tools.base import Tool, ToolResult, ToolSchema
from tools.registry import ToolRegistry, build_default_registry

__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "ToolSchema",
    "build_default_registry",
]
