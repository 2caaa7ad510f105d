"""Workspace path resolution shared by the filesystem tools.

Every path goes through the syntactic policy check before it is
canonicalized, and the canonical result is checked again against the
canonical workspace root.
"""

import os
from pathlib import Path

from security.policy import SecurityPolicy


class PathDeniedError(PermissionError):
    """The security policy rejected a path."""


def canonicalize(path: Path) -> Path:
    """Resolve symlinks and ``..``; the path must exist."""
    return path.resolve(strict=True)


def join_workspace(security: SecurityPolicy, raw_path: str) -> Path:
    if os.path.isabs(raw_path):
        return Path(raw_path)
    return security.workspace_dir / raw_path


def resolve_in_workspace(security: SecurityPolicy, raw_path: str) -> Path:
    """Return the canonical path for an existing file or directory.

    Raises PathDeniedError for policy violations and FileNotFoundError
    when the path does not exist.
    """
    if not security.is_path_allowed(raw_path):
        raise PathDeniedError(f"Path not allowed by security policy: {raw_path}")
    resolved = canonicalize(join_workspace(security, raw_path))
    if not security.is_resolved_path_allowed(resolved):
        raise PathDeniedError(f"Resolved path escapes workspace: {resolved}")
    return resolved


def _existing_ancestor(path: Path) -> Path:
    while not os.path.lexists(path) and path.parent != path:
        path = path.parent
    return path


def resolve_for_write(security: SecurityPolicy, raw_path: str) -> Path:
    """Return the canonical target for a file that may not exist yet.

    The deepest existing ancestor is canonicalized and checked before any
    missing directories are created, then the parent is checked again. An
    existing symlink at the target is followed and its destination checked
    as well.
    """
    if not security.is_path_allowed(raw_path):
        raise PathDeniedError(f"Path not allowed by security policy: {raw_path}")
    full = join_workspace(security, raw_path)
    if not full.name:
        raise PathDeniedError(f"Not a file path: {raw_path}")

    ancestor = canonicalize(_existing_ancestor(full.parent))
    if not security.is_resolved_path_allowed(ancestor):
        raise PathDeniedError(f"Resolved path escapes workspace: {ancestor}")

    full.parent.mkdir(parents=True, exist_ok=True)
    parent = canonicalize(full.parent)
    if not security.is_resolved_path_allowed(parent):
        raise PathDeniedError(f"Resolved path escapes workspace: {parent}")

    target = parent / full.name
    if target.is_symlink():
        try:
            destination = canonicalize(target)
        except FileNotFoundError as e:
            raise PathDeniedError(f"Refusing to write through dangling symlink: {raw_path}") from e
        if not security.is_resolved_path_allowed(destination):
            raise PathDeniedError(f"Resolved path escapes workspace: {destination}")
        return destination
    return target
