"""Session persistence as one JSON file per session.

Sessions live at ``<workspace>/sessions/<id>.json``. ``update`` keeps the
original ``created_at``; ``list`` returns lightweight metadata, newest
first, and skips files that cannot be parsed.
"""

import logging
import re
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from providers.base import ChatMessage

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 60
_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def new_session_id() -> str:
    """Hex millisecond timestamp plus a short random suffix."""
    return f"{int(time.time() * 1000):x}-{secrets.token_hex(3)}"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class Session(BaseModel):
    id: str
    created_at: str
    updated_at: str
    model: str
    messages: List[Dict[str, str]] = Field(default_factory=list)

    def chat_messages(self) -> List[ChatMessage]:
        return [ChatMessage.from_dict(m) for m in self.messages]


class SessionMeta(BaseModel):
    id: str
    created_at: str
    updated_at: str
    message_count: int
    preview: str = ""


def _preview(messages: List[Dict[str, str]]) -> str:
    first_user = next((m.get("content", "") for m in messages if m.get("role") == "user"), "")
    if len(first_user) > PREVIEW_CHARS:
        return first_user[:PREVIEW_CHARS] + "..."
    return first_user


class SessionStore:
    """Reads and writes session files under a workspace.

    Args:
        workspace_dir: Workspace root; files go to its ``sessions/`` subdirectory.
    """

    def __init__(self, workspace_dir: Union[str, Path]):
        self._sessions_dir = Path(workspace_dir) / "sessions"

    @property
    def sessions_dir(self) -> Path:
        return self._sessions_dir

    def path_for(self, session_id: str) -> Path:
        if not _SESSION_ID_RE.match(session_id or ""):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._sessions_dir / f"{session_id}.json"

    def _write(self, session: Session) -> Path:
        path = self.path_for(session.id)
        self._sessions_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(session.model_dump_json(indent=2), encoding="utf-8")
        return path

    def save(self, session_id: str, model: str, messages: List[ChatMessage]) -> Path:
        now = now_iso()
        return self._write(Session(
            id=session_id,
            created_at=now,
            updated_at=now,
            model=model,
            messages=[m.to_dict() for m in messages],
        ))

    def update(self, session_id: str, model: str, messages: List[ChatMessage]) -> Path:
        """Overwrite a session, preserving ``created_at`` when it already exists."""
        path = self.path_for(session_id)
        now = now_iso()
        created_at = now
        if path.exists():
            created_at = self.load(session_id).created_at
        return self._write(Session(
            id=session_id,
            created_at=created_at,
            updated_at=now,
            model=model,
            messages=[m.to_dict() for m in messages],
        ))

    def load(self, session_id: str) -> Session:
        """Raises FileNotFoundError for unknown ids and ValidationError for corrupt files."""
        path = self.path_for(session_id)
        return Session.model_validate_json(path.read_text(encoding="utf-8"))

    def list(self) -> List[SessionMeta]:
        if not self._sessions_dir.is_dir():
            return []
        metas: List[SessionMeta] = []
        for path in self._sessions_dir.glob("*.json"):
            try:
                session = Session.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                logger.debug("Skipping unreadable session file %s: %s", path, e)
                continue
            metas.append(SessionMeta(
                id=session.id,
                created_at=session.created_at,
                updated_at=session.updated_at,
                message_count=len(session.messages),
                preview=_preview(session.messages),
            ))
        metas.sort(key=lambda m: m.updated_at, reverse=True)
        return metas

    def delete(self, session_id: str) -> None:
        """Remove a session file; missing sessions are not an error."""
        path = self.path_for(session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return None

    def latest(self) -> Optional[SessionMeta]:
        sessions = self.list()
        return sessions[0] if sessions else None
