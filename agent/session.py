"""Interactive session orchestration around the agent loop.

An ``AgentSession`` owns one conversation: it enriches user input with
recalled memories, runs the loop, trims and persists history, and
reports lifecycle events to the observer.
"""

import logging
import os
import time
from typing import List, Optional

import httpx

from agent.config import Config
from agent.events import AgentEvent, EventSink, discard_event, send
from agent.history import trim_history
from agent.loop import AgentLoop
from agent.memory import Memory, MemoryCategory, NoneMemory, build_memory_context
from agent.observer import (
    AgentEndEvent,
    AgentStartEvent,
    ErrorEvent,
    NoopObserver,
    Observer,
    create_observer,
    emit,
)
from agent.prompt_assembler import build_system_prompt
from agent.session_persister import SessionStore, new_session_id
from clawloop_constants import DEFAULT_TEMPERATURE, MAX_HISTORY_MESSAGES, MAX_TOOL_ITERATIONS
from providers.base import BaseProvider, ChatMessage
from providers.errors import ProviderError
from providers.factory import create_routed_provider
from providers.registry import EnvGetter
from providers.usage import UsageTracker
from security.policy import SecurityPolicy
from tools.registry import ToolRegistry, build_default_registry

logger = logging.getLogger(__name__)

MEMORY_RECALL_LIMIT = 5
SUMMARY_CHARS = 100


def summarize(text: str, limit: int = SUMMARY_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class AgentSession:
    def __init__(
        self,
        provider: BaseProvider,
        registry: ToolRegistry,
        model: str,
        *,
        provider_name: str = "",
        temperature: float = DEFAULT_TEMPERATURE,
        system_prompt: Optional[str] = None,
        observer: Optional[Observer] = None,
        memory: Optional[Memory] = None,
        auto_save: bool = False,
        usage: Optional[UsageTracker] = None,
        store: Optional[SessionStore] = None,
        session_id: Optional[str] = None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        max_history_messages: int = MAX_HISTORY_MESSAGES,
    ):
        self.provider = provider
        self.provider_name = provider_name or provider.name
        self.registry = registry
        self.model = model
        self.observer = observer or NoopObserver()
        self.memory = memory or NoneMemory()
        self.auto_save = auto_save
        self.store = store
        self.session_id = session_id or new_session_id()
        self.max_history_messages = max_history_messages
        self.history: List[ChatMessage] = [ChatMessage.system(system_prompt)] if system_prompt else []

        self.usage = usage or UsageTracker()
        provider.set_usage_tracker(self.usage)

        self.loop = AgentLoop(
            provider,
            registry,
            model,
            temperature=temperature,
            max_iterations=max_iterations,
            observer=self.observer,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        provider: Optional[BaseProvider] = None,
        memory: Optional[Memory] = None,
        env_get: EnvGetter = os.getenv,
    ) -> "AgentSession":
        workspace = config.workspace_dir
        workspace.mkdir(parents=True, exist_ok=True)

        security = SecurityPolicy.from_config(config.autonomy, workspace)
        registry = build_default_registry(security, memory)
        if provider is None:
            provider = create_routed_provider(config, env_get=env_get)

        return cls(
            provider,
            registry,
            config.default_model,
            provider_name=config.default_provider,
            temperature=config.default_temperature,
            system_prompt=build_system_prompt(workspace, config.default_model, registry, config.identity),
            observer=create_observer(config.observability.backend),
            memory=memory,
            auto_save=config.memory.auto_save and memory is not None,
            store=SessionStore(workspace),
            max_iterations=config.agent.max_tool_iterations,
            max_history_messages=config.agent.max_history_messages,
        )

    async def start(self) -> None:
        """Announce the session and warm up provider connections."""
        emit(self.observer, AgentStartEvent(provider=self.provider_name, model=self.model))
        try:
            await self.provider.warmup()
        except (ProviderError, httpx.HTTPError) as e:
            logger.warning("Provider warmup failed: %s", e)

    def restore(self, session_id: str) -> None:
        """Replace history with a saved session's messages."""
        if self.store is None:
            raise RuntimeError("No session store configured")
        session = self.store.load(session_id)
        self.history = session.chat_messages()
        self.session_id = session.id

    async def _remember(self, key: str, content: str, category: MemoryCategory) -> None:
        try:
            await self.memory.store(key, content, category)
        except Exception as e:
            logger.warning("Memory store failed for %s: %s", key, e)

    async def _memory_context(self, user_input: str) -> str:
        try:
            entries = await self.memory.recall(user_input, MEMORY_RECALL_LIMIT)
        except Exception as e:
            logger.warning("Memory recall failed: %s", e)
            return ""
        return build_memory_context(entries)

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.update(self.session_id, self.model, self.history)
        except (OSError, ValueError) as e:
            logger.warning("Failed to save session %s: %s", self.session_id, e)

    async def handle_message(self, user_input: str, event_sink: EventSink = discard_event) -> str:
        """Run one user turn and return the final answer.

        Loop failures are reported as an ``error`` event and re-raised; the
        partial history is kept.
        """
        started = time.monotonic()
        if self.auto_save:
            await self._remember("user_msg", user_input, MemoryCategory.CONVERSATION)

        context = await self._memory_context(user_input)
        self.history.append(ChatMessage.user(context + user_input))

        try:
            answer = await self.loop.run_turn(self.history, event_sink)
        except Exception as e:
            logger.error("Turn failed: %s", e)
            send(event_sink, AgentEvent.error(str(e)))
            emit(self.observer, ErrorEvent(component="agent", message=str(e)))
            raise

        trim_history(self.history, self.max_history_messages)
        if self.auto_save:
            await self._remember("assistant_resp", summarize(answer), MemoryCategory.DAILY)
        self._persist()

        send(event_sink, AgentEvent.done(answer))
        emit(self.observer, AgentEndEvent(
            duration=time.monotonic() - started,
            tokens_used=self.usage.snapshot().total_tokens,
        ))
        return answer

    async def aclose(self) -> None:
        await self.provider.aclose()
