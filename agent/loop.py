"""The tool-calling agent loop.

Each iteration sends the history to the provider, parses ``<tool_call>``
markers out of the reply, runs the calls concurrently and feeds the
results back as a user message. The loop ends when a reply contains no
tool calls, or raises ``IterationLimitExceeded`` once the iteration
budget is spent.
"""

import asyncio
import logging
from typing import List, Optional

from agent.events import AgentEvent, EventSink, discard_event, send
from agent.observer import NoopObserver, Observer
from agent.tool_calls import parse_tool_calls
from agent.tool_executor import ToolExecConfig, execute_tool_calls, format_tool_results
from clawloop_constants import DEFAULT_TEMPERATURE, MAX_TOOL_ITERATIONS, TOKEN_CHANNEL_CAPACITY
from providers.base import BaseProvider, ChatMessage
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class IterationLimitExceeded(RuntimeError):
    def __init__(self, max_iterations: int):
        super().__init__(f"Agent exceeded maximum tool iterations ({max_iterations})")
        self.max_iterations = max_iterations


class AgentLoop:
    def __init__(
        self,
        provider: BaseProvider,
        registry: ToolRegistry,
        model: str,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        observer: Optional[Observer] = None,
        exec_config: Optional[ToolExecConfig] = None,
        token_buffer: int = TOKEN_CHANNEL_CAPACITY,
    ):
        self.provider = provider
        self.registry = registry
        self.model = model
        self.temperature = temperature
        self.max_iterations = max_iterations
        self.observer = observer or NoopObserver()
        self.exec_config = exec_config or ToolExecConfig()
        self.token_buffer = token_buffer

    async def run_turn(self, history: List[ChatMessage], event_sink: EventSink = discard_event) -> str:
        """Run until the model answers without tool calls.

        ``history`` is extended in place with every assistant reply and
        tool-result message, including on failure.
        """
        for iteration in range(1, self.max_iterations + 1):
            response = await self._call_model(history, event_sink)
            narrative, calls = parse_tool_calls(response)

            if not calls:
                history.append(ChatMessage.assistant(response))
                return narrative or response

            logger.debug(
                "Iteration %d/%d: %d tool call(s): %s",
                iteration, self.max_iterations, len(calls), ", ".join(c.name for c in calls),
            )
            outcomes = await execute_tool_calls(
                calls,
                self.registry,
                config=self.exec_config,
                observer=self.observer,
                event_sink=event_sink,
            )
            history.append(ChatMessage.assistant(response))
            history.append(ChatMessage.user(format_tool_results(outcomes)))

        raise IterationLimitExceeded(self.max_iterations)

    async def _call_model(self, history: List[ChatMessage], event_sink: EventSink) -> str:
        """Stream one reply, forwarding tokens through a bounded queue.

        A full queue blocks the provider until the forwarder catches up.
        The forwarder is drained before returning so no token is lost.
        """
        queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=self.token_buffer)

        async def forward() -> None:
            while True:
                token = await queue.get()
                if token is None:
                    return
                send(event_sink, AgentEvent.token(token))

        forwarder = asyncio.create_task(forward())
        try:
            return await self.provider.chat_with_history_stream(
                list(history), self.model, self.temperature, queue.put,
            )
        finally:
            await queue.put(None)
            await forwarder
