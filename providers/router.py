"""Retry, failover and model-route dispatch on top of concrete providers.

``ReliableProvider`` retries transient failures with exponential backoff
and then fails over to the next provider in its chain. ``RouterProvider``
maps ``hint:<name>`` model strings to a configured (provider, model) pair.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

import httpx

from providers.base import BaseProvider, ChatMessage, TokenSink
from providers.errors import HttpError
from providers.usage import UsageTracker

logger = logging.getLogger(__name__)

HINT_PREFIX = "hint:"
MAX_BACKOFF_SECONDS = 10.0

Sleeper = Callable[[float], Awaitable[None]]


def is_retryable(error: BaseException) -> bool:
    """Transient failures: 408/429/5xx responses and transport errors."""
    if isinstance(error, HttpError):
        return error.retryable
    return isinstance(error, httpx.TransportError)


class ReliableProvider(BaseProvider):
    """Primary provider plus ordered fallbacks, each tried ``retries + 1`` times.

    Non-retryable errors propagate immediately. When every provider is
    exhausted the last transient error is raised unchanged.
    """

    name = "reliable"

    def __init__(
        self,
        providers: List[Tuple[str, BaseProvider]],
        retries: int = 2,
        backoff_ms: int = 500,
        *,
        sleep: Sleeper = asyncio.sleep,
    ):
        if not providers:
            raise ValueError("ReliableProvider needs at least one provider")
        super().__init__()
        self.providers = list(providers)
        self.retries = max(0, retries)
        self.backoff_ms = max(0, backoff_ms)
        self._sleep = sleep

    def _plan(self) -> Iterator[Tuple[str, BaseProvider, int]]:
        for name, provider in self.providers:
            for attempt in range(self.retries + 1):
                yield name, provider, attempt

    def backoff_seconds(self, attempt: int) -> float:
        return min(self.backoff_ms / 1000.0 * (2 ** attempt), MAX_BACKOFF_SECONDS)

    async def _after_failure(self, name: str, attempt: int, error: BaseException) -> None:
        if attempt < self.retries:
            delay = self.backoff_seconds(attempt)
            logger.info(
                "Provider %s attempt %d/%d failed (%s); retrying in %.2fs",
                name, attempt + 1, self.retries + 1, error, delay,
            )
            await self._sleep(delay)
        else:
            logger.warning("Provider %s exhausted after %d attempts: %s", name, attempt + 1, error)

    async def _call(
        self,
        fn: Callable[[BaseProvider], Awaitable[str]],
        can_retry: Callable[[], bool] = lambda: True,
    ) -> str:
        last_error: Optional[BaseException] = None
        for name, provider, attempt in self._plan():
            try:
                return await fn(provider)
            except (HttpError, httpx.TransportError) as e:
                if not is_retryable(e) or not can_retry():
                    raise
                last_error = e
                await self._after_failure(name, attempt, e)
        raise last_error

    async def chat_with_system(
        self,
        system_prompt: Optional[str],
        message: str,
        model: str,
        temperature: float,
    ) -> str:
        return await self._call(
            lambda p: p.chat_with_system(system_prompt, message, model, temperature)
        )

    async def chat_with_history(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        return await self._call(lambda p: p.chat_with_history(messages, model, temperature))

    def supports_streaming(self) -> bool:
        return self.providers[0][1].supports_streaming()

    async def chat_with_history_stream(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        token_sink: TokenSink,
    ) -> str:
        # Tokens already handed to the sink cannot be taken back, so only a
        # failure before the first token is retried.
        forwarded = False

        async def sink(delta: str) -> None:
            nonlocal forwarded
            forwarded = True
            await token_sink(delta)

        return await self._call(
            lambda p: p.chat_with_history_stream(messages, model, temperature, sink),
            can_retry=lambda: not forwarded,
        )

    async def stream_chat(self, messages, model, temperature):
        last_error: Optional[BaseException] = None
        for name, provider, attempt in self._plan():
            yielded = False
            try:
                async for delta in provider.stream_chat(messages, model, temperature):
                    yielded = True
                    yield delta
                return
            except (HttpError, httpx.TransportError) as e:
                if yielded or not is_retryable(e):
                    raise
                last_error = e
                await self._after_failure(name, attempt, e)
        raise last_error

    def set_usage_tracker(self, tracker: UsageTracker) -> None:
        super().set_usage_tracker(tracker)
        for _, provider in self.providers:
            provider.set_usage_tracker(tracker)

    async def warmup(self) -> None:
        for name, provider in self.providers:
            try:
                await provider.warmup()
            except (HttpError, httpx.HTTPError) as e:
                logger.warning("Warmup failed for provider %s: %s", name, e)

    async def aclose(self) -> None:
        for _, provider in self.providers:
            await provider.aclose()


class RouterProvider(BaseProvider):
    """Dispatches ``hint:<name>`` models to routed providers.

    Any other model string goes to the default provider unchanged. An
    unknown hint falls back to the default provider and default model.
    """

    name = "router"

    def __init__(
        self,
        default: BaseProvider,
        default_model: str,
        routes: Optional[Dict[str, Tuple[BaseProvider, str]]] = None,
    ):
        super().__init__()
        self.default = default
        self.default_model = default_model
        self.routes = dict(routes or {})

    def resolve(self, model: str) -> Tuple[BaseProvider, str]:
        if model.startswith(HINT_PREFIX):
            hint = model[len(HINT_PREFIX):]
            route = self.routes.get(hint)
            if route is not None:
                return route
            logger.warning("Unknown model hint %r; using default model %s", hint, self.default_model)
            return self.default, self.default_model
        return self.default, model

    def _distinct_providers(self) -> List[BaseProvider]:
        seen: List[BaseProvider] = [self.default]
        for provider, _ in self.routes.values():
            if all(provider is not p for p in seen):
                seen.append(provider)
        return seen

    async def chat_with_system(
        self,
        system_prompt: Optional[str],
        message: str,
        model: str,
        temperature: float,
    ) -> str:
        provider, resolved = self.resolve(model)
        return await provider.chat_with_system(system_prompt, message, resolved, temperature)

    async def chat_with_history(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        provider, resolved = self.resolve(model)
        return await provider.chat_with_history(messages, resolved, temperature)

    def supports_streaming(self) -> bool:
        return self.default.supports_streaming()

    async def chat_with_history_stream(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        token_sink: TokenSink,
    ) -> str:
        provider, resolved = self.resolve(model)
        return await provider.chat_with_history_stream(messages, resolved, temperature, token_sink)

    async def stream_chat(self, messages, model, temperature):
        provider, resolved = self.resolve(model)
        async for delta in provider.stream_chat(messages, resolved, temperature):
            yield delta

    def set_usage_tracker(self, tracker: UsageTracker) -> None:
        super().set_usage_tracker(tracker)
        for provider in self._distinct_providers():
            provider.set_usage_tracker(tracker)

    async def warmup(self) -> None:
        for provider in self._distinct_providers():
            await provider.warmup()

    async def aclose(self) -> None:
        for provider in self._distinct_providers():
            await provider.aclose()
