"""Security policy for tool execution.

Path checks run in two phases. ``is_path_allowed`` is purely syntactic
and must pass before the path is ever resolved on disk;
``is_resolved_path_allowed`` then checks the canonical path against the
canonical workspace root, which catches symlink escapes.
"""

import os
import re
import threading
import time
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]

DEFAULT_ALLOWED_COMMANDS = (
    "git", "ls", "cat", "head", "tail", "wc", "grep", "rg", "find", "echo",
    "pwd", "sort", "uniq", "diff", "date", "which", "env", "mkdir", "touch",
    "cp", "mv", "python", "python3", "pytest", "pip", "make", "cargo", "npm",
    "node",
)

DEFAULT_FORBIDDEN_PATHS = (
    "/etc", "/proc", "/sys", "/boot", "/dev",
    "~/.ssh", "~/.gnupg", "~/.aws", "~/.config/gcloud",
)

# Tool categories denied in read-only mode
WRITE_CATEGORIES = frozenset({"write", "shell"})

_COMMAND_SEPARATORS = re.compile(r"\|\||&&|[;|\n]")
_ENV_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_FORBIDDEN_SHELL_SYNTAX = ("`", "$(", "<(", ">")


class AutonomyLevel(str, Enum):
    READ_ONLY = "read_only"
    SUPERVISED = "supervised"
    FULL = "full"

    @classmethod
    def parse(cls, value: Union[str, "AutonomyLevel", None]) -> "AutonomyLevel":
        if isinstance(value, cls):
            return value
        key = (value or cls.SUPERVISED.value).strip().lower().replace("-", "_")
        if key == "autonomous":
            return cls.FULL
        if key == "readonly":
            return cls.READ_ONLY
        return cls(key)


class ActionTracker:
    """Sliding-window counter of side-effecting actions."""

    def __init__(self, max_actions: int, window_seconds: float = 3600.0, clock=time.monotonic):
        self.max_actions = max_actions
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: deque = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._events and self._events[0] <= cutoff:
            self._events.popleft()

    def record(self) -> bool:
        """Record one action; False when the budget for the window is spent."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._events) >= self.max_actions:
                return False
            self._events.append(now)
            return True

    def count(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._events)

    def is_exhausted(self) -> bool:
        return self.count() >= self.max_actions


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.expanduser(path))


def _is_within(child: str, parent: str) -> bool:
    if child == parent:
        return True
    parent = parent.rstrip(os.sep) + os.sep
    return child.startswith(parent)


class SecurityPolicy:
    def __init__(
        self,
        workspace_dir: PathLike,
        autonomy: Union[str, AutonomyLevel] = AutonomyLevel.SUPERVISED,
        *,
        workspace_only: bool = True,
        allowed_commands: Optional[Iterable[str]] = None,
        forbidden_paths: Optional[Iterable[str]] = None,
        max_actions_per_hour: int = 100,
    ):
        self.workspace_dir = Path(workspace_dir)
        self.autonomy = AutonomyLevel.parse(autonomy)
        self.workspace_only = workspace_only
        self.allowed_commands = frozenset(
            DEFAULT_ALLOWED_COMMANDS if allowed_commands is None else allowed_commands
        )
        self.forbidden_paths: List[str] = [
            _normalize(p) for p in (DEFAULT_FORBIDDEN_PATHS if forbidden_paths is None else forbidden_paths)
        ]
        self.tracker = ActionTracker(max_actions_per_hour)

    @classmethod
    def from_config(cls, autonomy_config: Any, workspace_dir: PathLike) -> "SecurityPolicy":
        return cls(
            workspace_dir,
            autonomy_config.level,
            workspace_only=autonomy_config.workspace_only,
            allowed_commands=autonomy_config.allowed_commands,
            forbidden_paths=autonomy_config.forbidden_paths,
            max_actions_per_hour=autonomy_config.max_actions_per_hour,
        )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _workspace_lexical(self) -> str:
        return os.path.normpath(os.path.abspath(self.workspace_dir))

    def _is_forbidden(self, normalized: str) -> bool:
        workspace = self._workspace_lexical()
        for forbidden in self.forbidden_paths:
            if not os.path.isabs(forbidden):
                forbidden = os.path.join(workspace, forbidden)
            if _is_within(normalized, forbidden):
                return True
        return False

    def is_path_allowed(self, path: str) -> bool:
        """Syntactic check; never touches the filesystem."""
        if not path or "\0" in path:
            return False
        if path.startswith("~"):
            return False
        parts = re.split(r"[\\/]+", path)
        if ".." in parts:
            return False

        workspace = self._workspace_lexical()
        if os.path.isabs(path):
            candidate = os.path.normpath(path)
            if self.workspace_only and not _is_within(candidate, workspace):
                return False
        else:
            candidate = os.path.normpath(os.path.join(workspace, path))
        return not self._is_forbidden(candidate)

    def workspace_root(self) -> Path:
        """Canonical workspace root."""
        return Path(os.path.realpath(self.workspace_dir))

    def is_resolved_path_allowed(self, resolved: PathLike) -> bool:
        """Check an already-canonicalized path against the canonical root."""
        resolved_path = Path(resolved)
        root = self.workspace_root()
        if resolved_path == root or root in resolved_path.parents:
            return True
        if self.workspace_only:
            return False
        return not self._is_forbidden(str(resolved_path))

    # ------------------------------------------------------------------
    # Autonomy
    # ------------------------------------------------------------------

    def can_act(self) -> bool:
        return self.autonomy != AutonomyLevel.READ_ONLY

    def allows_category(self, category: str) -> bool:
        if category in WRITE_CATEGORIES:
            return self.can_act()
        return True

    def is_command_allowed(self, command: str) -> bool:
        if not self.can_act():
            return False
        command = (command or "").strip()
        if not command:
            return False
        if self.autonomy == AutonomyLevel.FULL:
            return True
        if any(token in command for token in _FORBIDDEN_SHELL_SYNTAX):
            return False

        for segment in _COMMAND_SEPARATORS.split(command):
            words = segment.split()
            while words and _ENV_ASSIGNMENT.match(words[0]):
                words.pop(0)
            if not words:
                continue
            executable = os.path.basename(words[0])
            if executable not in self.allowed_commands:
                return False
        return True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    def record_action(self) -> bool:
        return self.tracker.record()

    def is_rate_limited(self) -> bool:
        return self.tracker.is_exhausted()
