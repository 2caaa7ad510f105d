"""Write a file inside the workspace, creating parent directories."""

from typing import Any, Dict

from security.policy import SecurityPolicy
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, run_blocking, str_arg
from tools.workspace import PathDeniedError, resolve_for_write


class FileWriteTool(Tool):
    category = "write"

    def __init__(self, security: SecurityPolicy):
        self.security = security

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="file_write",
            description="Write content to a file in the workspace. Creates parent directories if needed.",
            parameters={
                "path": {
                    "type": "string",
                    "description": "Path to the file (relative to the workspace)",
                },
                "content": {
                    "type": "string",
                    "description": "Content to write",
                },
            },
            required=["path", "content"],
        )

    def _write(self, path: str, content: str) -> ToolResult:
        target = resolve_for_write(self.security, path)
        data = content.encode("utf-8")
        target.write_bytes(data)
        return ToolResult.ok(f"Written {len(data)} bytes to {path}", path=str(target), bytes=len(data))

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            path = str_arg(args, "path")
            content = str_arg(args, "content")
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))

        if not self.security.can_act():
            return ToolResult.fail("Action blocked: autonomy is read-only")
        if not self.security.record_action():
            return ToolResult.fail("Rate limit exceeded: too many actions in the last hour")

        try:
            return await run_blocking(self._write, path, content)
        except PathDeniedError as e:
            return ToolResult.fail(str(e))
        except OSError as e:
            return ToolResult.fail(f"Failed to write file: {e}")
