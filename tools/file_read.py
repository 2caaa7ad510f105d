"""Read a file from the workspace."""

from typing import Any, Dict

from security.policy import SecurityPolicy
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, run_blocking, str_arg
from tools.workspace import PathDeniedError, resolve_in_workspace

MAX_FILE_BYTES = 10 * 1024 * 1024


class FileReadTool(Tool):
    category = "read"

    def __init__(self, security: SecurityPolicy, max_file_size: int = MAX_FILE_BYTES):
        self.security = security
        self.max_file_size = max_file_size

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="file_read",
            description="Read the contents of a file in the workspace.",
            parameters={
                "path": {
                    "type": "string",
                    "description": "Path to the file (relative to the workspace)",
                },
            },
            required=["path"],
        )

    def _read(self, path: str) -> ToolResult:
        resolved = resolve_in_workspace(self.security, path)
        if not resolved.is_file():
            return ToolResult.fail(f"Not a file: {path}")
        size = resolved.stat().st_size
        if size > self.max_file_size:
            return ToolResult.fail(f"File too large: {size} bytes (max {self.max_file_size})")
        content = resolved.read_text(encoding="utf-8", errors="replace")
        return ToolResult.ok(content, path=str(resolved), size=size)

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            path = str_arg(args, "path")
            return await run_blocking(self._read, path)
        except (ToolArgumentError, PathDeniedError) as e:
            return ToolResult.fail(str(e))
        except FileNotFoundError:
            return ToolResult.fail(f"File not found: {args.get('path')}")
        except OSError as e:
            return ToolResult.fail(f"Failed to read file: {e}")
