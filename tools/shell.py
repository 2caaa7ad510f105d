"""Shell command execution inside the workspace."""

import asyncio
import logging
from typing import Any, Dict

from security.policy import SecurityPolicy
from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, str_arg

logger = logging.getLogger(__name__)

SHELL_TIMEOUT_SECONDS = 60.0
MAX_OUTPUT_BYTES = 1_048_576


def _truncate(data: bytes, limit: int) -> str:
    text = data[:limit].decode("utf-8", errors="replace")
    if len(data) > limit:
        text += f"\n... [output truncated at {limit} bytes]"
    return text


class ShellTool(Tool):
    """
    Execute a shell command in the workspace directory.

    Supervised autonomy restricts commands to the policy allowlist; every
    run counts against the hourly action budget.
    """

    category = "shell"

    def __init__(
        self,
        security: SecurityPolicy,
        timeout: float = SHELL_TIMEOUT_SECONDS,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
    ):
        self.security = security
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="shell",
            description="Execute a shell command in the workspace directory and return stdout/stderr.",
            parameters={
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                },
            },
            required=["command"],
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            command = str_arg(args, "command")
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))

        if not self.security.can_act():
            return ToolResult.fail("Action blocked: autonomy is read-only")
        if not self.security.is_command_allowed(command):
            return ToolResult.fail(f"Command not allowed by security policy: {command}")
        if not self.security.record_action():
            return ToolResult.fail("Rate limit exceeded: too many actions in the last hour")

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.security.workspace_dir),
            )
        except OSError as e:
            return ToolResult.fail(f"Failed to execute command: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("Shell command timed out after %ss: %s", self.timeout, command)
            return ToolResult.fail(
                f"Command timed out after {self.timeout:g}s",
                exit_code=-1,
                timeout=True,
            )

        stdout_str = _truncate(stdout, self.max_output_bytes)
        stderr_str = _truncate(stderr, self.max_output_bytes)

        output = stdout_str
        if stderr_str:
            output = f"{stdout_str}\n[stderr]\n{stderr_str}" if stdout_str else stderr_str
        output = output.strip()

        exit_code = process.returncode
        if exit_code == 0:
            return ToolResult.ok(output, exit_code=exit_code)
        return ToolResult.fail(f"Exit code: {exit_code}", output=output, exit_code=exit_code)
