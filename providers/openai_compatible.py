"""OpenAI-compatible chat completions provider.

Covers OpenRouter, OpenAI, Ollama and any custom endpoint that speaks
``POST {base_url}/chat/completions``. Vendor differences (extra headers,
warmup endpoint, whether a key is required) come from the provider
registry.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

import httpx

from providers.base import BaseProvider, ChatMessage
from providers.errors import EmptyResponseError, ProtocolError
from providers.sse import iter_sse_events
from providers.usage import TokenUsage

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseProvider):
    def __init__(
        self,
        name: str,
        api_key: Optional[str],
        base_url: str,
        *,
        extra_headers: Optional[Mapping[str, str]] = None,
        requires_api_key: bool = True,
        warmup_path: Optional[str] = None,
        credential_env_hint: str = "",
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, base_url, client=client)
        self.name = name
        self.extra_headers = dict(extra_headers or {})
        self.requires_api_key = requires_api_key
        self.warmup_path = warmup_path
        self.credential_env_hint = credential_env_hint

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        headers = dict(self.extra_headers)
        if self.requires_api_key:
            headers["Authorization"] = f"Bearer {self.require_api_key()}"
        elif self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def chat_with_system(
        self,
        system_prompt: Optional[str],
        message: str,
        model: str,
        temperature: float,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append(ChatMessage.system(system_prompt))
        messages.append(ChatMessage.user(message))
        return await self.chat_with_history(messages, model, temperature)

    async def chat_with_history(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        headers = self._headers()
        payload = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
        }
        response = await self.client.post(self.completions_url, json=payload, headers=headers)
        self.raise_for_status(response)
        data = self.parse_json(response)

        choices = data.get("choices")
        if not isinstance(choices, list):
            raise ProtocolError(f"{self.name} response has no choices array", provider=self.name)
        if not choices:
            raise EmptyResponseError(f"No response from {self.name}", provider=self.name)

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ProtocolError(f"{self.name} returned non-text message content", provider=self.name)

        self.record_usage(TokenUsage.from_openai(data.get("usage")))
        return content

    def supports_streaming(self) -> bool:
        return True

    async def stream_chat(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        headers = self._headers()
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        async with self.client.stream("POST", self.completions_url, json=payload, headers=headers) as response:
            await self.raise_for_stream_status(response)
            async for event in iter_sse_events(response.aiter_bytes()):
                usage = event.get("usage")
                if usage:
                    self.record_usage(TokenUsage.from_openai(usage), request=False)
                for choice in event.get("choices") or []:
                    if not isinstance(choice, dict):
                        continue
                    delta = choice.get("delta") or {}
                    text = delta.get("content") if isinstance(delta, dict) else None
                    if isinstance(text, str) and text:
                        yield text
        self.record_request()

    async def warmup(self) -> None:
        if not self.warmup_path:
            return
        if self.requires_api_key and not self.api_key:
            logger.debug("Skipping %s warmup: no credentials", self.name)
            return
        response = await self.client.get(f"{self.base_url}{self.warmup_path}", headers=self._headers())
        self.raise_for_status(response)
        logger.info("%s connection warmed up", self.name)
