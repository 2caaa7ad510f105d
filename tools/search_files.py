"""Regex search across workspace files."""

import fnmatch
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern

from security.policy import SecurityPolicy
from tools.base import (
    Tool,
    ToolArgumentError,
    ToolResult,
    ToolSchema,
    optional_str_arg,
    run_blocking,
    str_arg,
)
from tools.workspace import PathDeniedError, resolve_in_workspace

MAX_MATCHES = 100
MAX_SEARCH_FILE_BYTES = 1_000_000
SKIP_DIRS = frozenset({"target", "node_modules", "__pycache__", "venv"})


def _skip_name(name: str) -> bool:
    return name.startswith(".") or name in SKIP_DIRS


class SearchFilesTool(Tool):
    category = "read"

    def __init__(self, security: SecurityPolicy, max_matches: int = MAX_MATCHES):
        self.security = security
        self.max_matches = max_matches

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="search_files",
            description="Search file contents in the workspace with a regular expression.",
            parameters={
                "pattern": {"type": "string", "description": "Regular expression to search for"},
                "path": {"type": "string", "description": "Directory or file to search (default: workspace root)"},
                "glob": {"type": "string", "description": "Only search files whose name matches, e.g. *.py"},
            },
            required=["pattern"],
        )

    def _iter_files(self, root: Path):
        """Regular files under ``root``; symlinks are never followed."""
        if root.is_file():
            yield root
            return
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not _skip_name(d) and not os.path.islink(os.path.join(dirpath, d))
            )
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                file_path = Path(dirpath) / filename
                if file_path.is_symlink() or not file_path.is_file():
                    continue
                yield file_path

    def _search(self, regex: Pattern, subdir: str, glob: Optional[str]) -> ToolResult:
        root = resolve_in_workspace(self.security, subdir)
        base = root.parent if root.is_file() else root

        matches: List[str] = []
        for file_path in self._iter_files(root):
            if glob and not fnmatch.fnmatch(file_path.name, glob):
                continue
            try:
                if file_path.stat().st_size > MAX_SEARCH_FILE_BYTES:
                    continue
                text = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue

            rel = file_path.relative_to(base).as_posix()
            for line_no, line in enumerate(text.splitlines(), 1):
                if regex.search(line):
                    matches.append(f"{rel}:{line_no}: {line}")
                    if len(matches) >= self.max_matches:
                        break
            if len(matches) >= self.max_matches:
                break

        if not matches:
            return ToolResult.ok("No matches found.", matches=0)

        truncated = f"\n... truncated at {self.max_matches} matches" if len(matches) >= self.max_matches else ""
        body = "\n".join(matches)
        return ToolResult.ok(f"{len(matches)} matches:{truncated}\n{body}", matches=len(matches))

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            pattern = str_arg(args, "pattern")
            subdir = str_arg(args, "path", default=".")
            glob = optional_str_arg(args, "glob")
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))

        try:
            regex = re.compile(pattern)
        except re.error as e:
            return ToolResult.fail(f"Invalid regex: {e}")

        try:
            return await run_blocking(self._search, regex, subdir, glob)
        except PathDeniedError as e:
            return ToolResult.fail(str(e))
        except OSError as e:
            return ToolResult.fail(f"Cannot resolve search path: {e}")
