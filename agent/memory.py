"""Long-term memory interface consumed by the agent.

The storage backend lives outside this package; the agent only needs
recall, store and forget. ``NoneMemory`` is the null backend used when
memory is disabled.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

MEMORY_CONTEXT_HEADER = "[Memory context]"


class MemoryCategory(str, Enum):
    CORE = "core"
    DAILY = "daily"
    CONVERSATION = "conversation"


@dataclass
class MemoryEntry:
    key: str
    content: str
    category: MemoryCategory = MemoryCategory.CORE
    timestamp: Optional[str] = None
    score: Optional[float] = None


class Memory(ABC):
    name: str = "memory"

    @abstractmethod
    async def recall(self, query: str, limit: int = 5) -> List[MemoryEntry]:
        """Return up to ``limit`` entries relevant to ``query``."""

    @abstractmethod
    async def store(self, key: str, content: str, category: MemoryCategory = MemoryCategory.CORE) -> None:
        """Insert or overwrite the entry for ``key``."""

    @abstractmethod
    async def forget(self, key: str) -> bool:
        """Delete ``key``; True if something was removed."""


class NoneMemory(Memory):
    name = "none"

    async def recall(self, query: str, limit: int = 5) -> List[MemoryEntry]:
        return []

    async def store(self, key: str, content: str, category: MemoryCategory = MemoryCategory.CORE) -> None:
        return None

    async def forget(self, key: str) -> bool:
        return False


def build_memory_context(entries: List[MemoryEntry]) -> str:
    """Format recalled entries as a block to prepend to the user message.

    Empty when nothing was recalled.
    """
    if not entries:
        return ""
    lines = [MEMORY_CONTEXT_HEADER]
    lines.extend(f"- {entry.key}: {entry.content}" for entry in entries)
    return "\n".join(lines) + "\n\n"
