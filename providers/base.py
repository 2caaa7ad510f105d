"""Provider contract shared by every chat backend.

A provider turns an ordered chat history into assistant text, either in
one response or as a stream of text deltas. Concrete vendors only need to
implement ``chat_with_system``; native history and streaming support are
opt-in overrides.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from clawloop_constants import HTTP_CONNECT_TIMEOUT, HTTP_TIMEOUT
from providers.errors import CredentialError, EmptyResponseError, HttpError, ProtocolError
from providers.usage import TokenUsage, UsageTracker

logger = logging.getLogger(__name__)

TokenSink = Callable[[str], Awaitable[None]]

_ERROR_BODY_LIMIT = 2000


@dataclass
class ChatMessage:
    role: str
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls("user", content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls("assistant", content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(role=str(data.get("role", "user")), content=str(data.get("content", "")))


def clean_credential(value: Optional[str]) -> Optional[str]:
    """Trim a key or token; blank values count as missing."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class BaseProvider(ABC):
    """Base class for chat providers.

    Subclasses set ``name`` and implement ``chat_with_system``. The HTTP
    client is created lazily so constructing a provider never touches the
    network, and credentials are checked at call time.
    """

    name: str = "provider"
    credential_env_hint: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = clean_credential(api_key)
        self.base_url = (base_url or "").strip().rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._usage_tracker: Optional[UsageTracker] = None

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(HTTP_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def require_api_key(self) -> str:
        if not self.api_key:
            raise CredentialError(self.name, self.credential_env_hint)
        return self.api_key

    def raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        body = response.text[:_ERROR_BODY_LIMIT]
        raise HttpError(self.name, response.status_code, body)

    async def raise_for_stream_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        await response.aread()
        self.raise_for_status(response)

    def parse_json(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"{self.name} returned invalid JSON: {e}", provider=self.name) from e
        if not isinstance(data, dict):
            raise ProtocolError(f"{self.name} returned unexpected payload", provider=self.name)
        return data

    # ------------------------------------------------------------------
    # Usage accounting
    # ------------------------------------------------------------------

    def set_usage_tracker(self, tracker: UsageTracker) -> None:
        self._usage_tracker = tracker

    @property
    def usage_tracker(self) -> Optional[UsageTracker]:
        return self._usage_tracker

    def record_usage(self, usage: TokenUsage, request: bool = True) -> None:
        if self._usage_tracker is None:
            return
        if request:
            self._usage_tracker.add(usage, request=True)
        elif not usage.is_empty():
            self._usage_tracker.add(usage, request=False)

    def record_request(self) -> None:
        if self._usage_tracker is not None:
            self._usage_tracker.record_request()

    # ------------------------------------------------------------------
    # Chat surface
    # ------------------------------------------------------------------

    async def chat(self, message: str, model: str, temperature: float) -> str:
        return await self.chat_with_system(None, message, model, temperature)

    @abstractmethod
    async def chat_with_system(
        self,
        system_prompt: Optional[str],
        message: str,
        model: str,
        temperature: float,
    ) -> str:
        """Send one user turn, optionally preceded by a system prompt."""

    async def chat_with_history(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        """Send a full history.

        The fallback keeps only the first system message and the last user
        message; vendors that accept native history override this.
        """
        system_prompt = next((m.content for m in messages if m.role == "system"), None)
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        return await self.chat_with_system(system_prompt, last_user, model, temperature)

    def supports_streaming(self) -> bool:
        return False

    async def stream_chat(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        """Yield text deltas. Non-streaming providers yield the whole reply once."""
        text = await self.chat_with_history(messages, model, temperature)
        if text:
            yield text

    async def chat_with_history_stream(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        token_sink: TokenSink,
    ) -> str:
        """Drive ``stream_chat``, awaiting ``token_sink`` for every delta.

        Returns the concatenated text. Raises ``EmptyResponseError`` when the
        stream produced no text at all.
        """
        if not self.supports_streaming():
            text = await self.chat_with_history(messages, model, temperature)
            if text:
                await token_sink(text)
            return text

        parts: List[str] = []
        async for delta in self.stream_chat(messages, model, temperature):
            if not delta:
                continue
            parts.append(delta)
            await token_sink(delta)
        if not parts:
            raise EmptyResponseError(f"{self.name} stream produced no text", provider=self.name)
        return "".join(parts)

    async def warmup(self) -> None:
        """Pre-establish connections. No-op unless a vendor overrides it."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, base_url={self.base_url!r})"
