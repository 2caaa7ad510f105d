"""Replace exactly one occurrence of a string in a workspace file."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict

from security.policy import SecurityPolicy
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, run_blocking, str_arg
from tools.workspace import PathDeniedError, resolve_in_workspace


def atomic_write_text(path: Path, content: str) -> None:
    """Write via a sibling temp file and ``os.replace`` so readers never see a partial file."""
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        shutil.copymode(str(path), tmp_name)
        os.replace(tmp_name, str(path))
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class FilePatchTool(Tool):
    """
    Surgical edit: ``old_string`` must occur exactly once in the file.

    Zero or multiple matches leave the file untouched and tell the model
    how to fix the call.
    """

    category = "write"

    def __init__(self, security: SecurityPolicy):
        self.security = security

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="file_patch",
            description=(
                "Replace one exact occurrence of old_string with new_string in a file. "
                "old_string must match exactly once; include surrounding lines for context."
            ),
            parameters={
                "path": {"type": "string", "description": "Path to the file (relative to the workspace)"},
                "old_string": {"type": "string", "description": "Exact text to replace"},
                "new_string": {"type": "string", "description": "Replacement text"},
            },
            required=["path", "old_string", "new_string"],
        )

    def _patch(self, path: str, old_string: str, new_string: str) -> ToolResult:
        resolved = resolve_in_workspace(self.security, path)
        try:
            content = resolved.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            return ToolResult.fail(f"Failed to read file: {e}")

        count = content.count(old_string)
        if count == 0:
            return ToolResult.fail("old_string not found in file")
        if count > 1:
            return ToolResult.fail(
                f"old_string found {count} times, must match exactly once. Provide more context."
            )

        new_content = content.replace(old_string, new_string, 1)
        atomic_write_text(resolved, new_content)
        return ToolResult.ok(
            f"Patched {path} ({len(new_content.encode('utf-8'))} bytes)",
            path=str(resolved),
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            path = str_arg(args, "path")
            old_string = str_arg(args, "old_string")
            new_string = str_arg(args, "new_string")
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))
        if not old_string:
            return ToolResult.fail("old_string must not be empty")

        if not self.security.can_act():
            return ToolResult.fail("Action blocked: autonomy is read-only")
        if not self.security.record_action():
            return ToolResult.fail("Rate limit exceeded: too many actions in the last hour")

        try:
            return await run_blocking(self._patch, path, old_string, new_string)
        except PathDeniedError as e:
            return ToolResult.fail(str(e))
        except FileNotFoundError:
            return ToolResult.fail(f"Cannot resolve path: {path}")
        except OSError as e:
            return ToolResult.fail(f"Failed to write file: {e}")
