"""Tests for the run_agent command-line entry point."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from agent.loop import IterationLimitExceeded
from agent.session import AgentSession
from agent.session_persister import SessionStore
from providers.base import BaseProvider
from providers.errors import HttpError
from run_agent import _run
from tools.registry import ToolRegistry


class SilentProvider(BaseProvider):
    name = "silent"

    async def chat_with_system(self, system_prompt, message, model, temperature):
        raise AssertionError("not expected")

    async def chat_with_history(self, messages, model, temperature):
        raise AssertionError("not expected")


def _mock_session(error=None):
    session = MagicMock()
    session.start = AsyncMock()
    session.aclose = AsyncMock()
    session.handle_message = AsyncMock(side_effect=error)
    return session


def _real_session(tmp_path):
    return AgentSession(
        SilentProvider(),
        ToolRegistry(),
        "test-model",
        system_prompt="sys",
        store=SessionStore(tmp_path),
    )


class TestRunExitCodes:
    @pytest.mark.asyncio
    async def test_network_error_after_retries_exits_1(self, capsys):
        session = _mock_session(httpx.ConnectError("connection refused"))

        assert await _run(session, "hi", None) == 1

        assert "Network error: connection refused" in capsys.readouterr().out
        session.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provider_error_exits_1(self):
        session = _mock_session(HttpError("openrouter", 500, "boom"))
        assert await _run(session, "hi", None) == 1
        session.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_iteration_limit_exits_2(self):
        session = _mock_session(IterationLimitExceeded(10))
        assert await _run(session, "hi", None) == 2

    @pytest.mark.asyncio
    async def test_missing_resume_session_exits_1(self, capsys):
        session = _mock_session()
        session.restore.side_effect = FileNotFoundError("no such session")

        assert await _run(session, "hi", "abc123") == 1

        assert "Cannot resume session abc123" in capsys.readouterr().out
        session.handle_message.assert_not_called()
        session.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_session_id_on_disk_exits_1(self, tmp_path):
        assert await _run(_real_session(tmp_path), "hi", "does-not-exist") == 1

    @pytest.mark.asyncio
    async def test_corrupt_session_file_exits_1(self, tmp_path, capsys):
        session = _real_session(tmp_path)
        path = session.store.path_for("broken")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json", encoding="utf-8")

        assert await _run(session, "hi", "broken") == 1
        assert "Cannot resume session broken" in capsys.readouterr().out
