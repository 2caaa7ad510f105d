"""
Base tool abstraction.

Tools follow a simple pattern:
1. Define schema (name, description, parameters)
2. Implement execute(args)
3. Return ToolResult with output/error

Expected failures (bad arguments, policy denials, I/O errors) are returned
as ``ToolResult(success=False)``, never raised.
"""

import asyncio
import functools
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar

T = TypeVar("T")


class ToolArgumentError(ValueError):
    """A required argument is missing or has the wrong type."""


@dataclass
class ToolSchema:
    """JSON Schema for a tool's parameters."""

    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)

    def to_json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": self.parameters,
            "required": self.required,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to OpenAI-compatible function schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.to_json_schema(),
            },
        }

    def to_prompt_description(self) -> str:
        """Tool entry for the system prompt's tool list."""
        schema = json.dumps(self.to_json_schema(), ensure_ascii=False)
        return f"**{self.name}**: {self.description}\nParameters: `{schema}`"


@dataclass
class ToolResult:
    """Result from executing a tool."""

    success: bool
    output: str = ""
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, output: str, **metadata: Any) -> "ToolResult":
        return cls(success=True, output=output, metadata=metadata)

    @classmethod
    def fail(cls, error: str, output: str = "", **metadata: Any) -> "ToolResult":
        return cls(success=False, output=output, error=error, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "metadata": self.metadata,
        }


class Tool(ABC):
    """
    Abstract base class for tools.

    Subclasses must implement:
    - schema: ToolSchema describing the tool
    - execute(): async method that performs the tool action

    ``category`` is one of read, write, shell, network or memory and is
    what the security policy's autonomy level is checked against.
    """

    category: str = "read"

    @property
    @abstractmethod
    def schema(self) -> ToolSchema:
        """Return the tool's schema."""

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def description(self) -> str:
        return self.schema.description

    def parameters_schema(self) -> Dict[str, Any]:
        return self.schema.to_json_schema()

    @abstractmethod
    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        """Execute the tool with the model-supplied argument object."""

    async def __call__(self, args: Dict[str, Any]) -> ToolResult:
        return await self.execute(args)


def str_arg(args: Dict[str, Any], key: str, default: Optional[str] = None) -> str:
    """Fetch a string argument, raising ToolArgumentError when absent or mistyped."""
    value = args.get(key, default)
    if value is None:
        raise ToolArgumentError(f"Missing '{key}' parameter")
    if not isinstance(value, str):
        raise ToolArgumentError(f"'{key}' must be a string")
    return value


def optional_str_arg(args: Dict[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolArgumentError(f"'{key}' must be a string")
    return value


async def run_blocking(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run blocking filesystem work on the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))
