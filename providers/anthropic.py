"""Anthropic Messages API provider.

System prompts travel in the top-level ``system`` field rather than as a
message. Setup tokens (``sk-ant-oat01-``) authenticate with a bearer
header; regular API keys use ``x-api-key``.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx

from clawloop_constants import (
    ANTHROPIC_BASE_URL,
    ANTHROPIC_MAX_TOKENS,
    ANTHROPIC_SETUP_TOKEN_PREFIX,
    ANTHROPIC_VERSION,
)
from providers.base import BaseProvider, ChatMessage
from providers.errors import EmptyResponseError, ProtocolError
from providers.sse import iter_sse_events
from providers.usage import TokenUsage

logger = logging.getLogger(__name__)


def is_setup_token(credential: str) -> bool:
    return credential.startswith(ANTHROPIC_SETUP_TOKEN_PREFIX)


def split_system(messages: List[ChatMessage]) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """Pull system messages out of the history; the rest become ``messages``."""
    system_parts = []
    turns = []
    for message in messages:
        if message.role == "system":
            system_parts.append(message.content)
        else:
            turns.append(message.to_dict())
    system = "\n\n".join(system_parts) if system_parts else None
    return system, turns


class AnthropicProvider(BaseProvider):
    name = "Anthropic"
    credential_env_hint = "ANTHROPIC_API_KEY or ANTHROPIC_OAUTH_TOKEN (setup-token)"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        max_tokens: int = ANTHROPIC_MAX_TOKENS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, base_url or ANTHROPIC_BASE_URL, client=client)
        self.max_tokens = max_tokens

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    def _headers(self) -> Dict[str, str]:
        credential = self.require_api_key()
        headers = {"anthropic-version": ANTHROPIC_VERSION}
        if is_setup_token(credential):
            headers["Authorization"] = f"Bearer {credential}"
        else:
            headers["x-api-key"] = credential
        return headers

    def _payload(
        self,
        system: Optional[str],
        turns: List[Dict[str, str]],
        model: str,
        temperature: float,
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": turns,
            "temperature": temperature,
        }
        if system:
            payload["system"] = system
        if stream:
            payload["stream"] = True
        return payload

    async def chat_with_system(
        self,
        system_prompt: Optional[str],
        message: str,
        model: str,
        temperature: float,
    ) -> str:
        headers = self._headers()
        payload = self._payload(system_prompt, [ChatMessage.user(message).to_dict()], model, temperature)
        return await self._send(payload, headers)

    async def chat_with_history(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        headers = self._headers()
        system, turns = split_system(messages)
        return await self._send(self._payload(system, turns, model, temperature), headers)

    async def _send(self, payload: Dict[str, Any], headers: Dict[str, str]) -> str:
        response = await self.client.post(self.messages_url, json=payload, headers=headers)
        self.raise_for_status(response)
        data = self.parse_json(response)

        content = data.get("content")
        if not isinstance(content, list):
            raise ProtocolError("Anthropic response has no content array", provider=self.name)
        texts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        if not texts:
            raise EmptyResponseError("No response from Anthropic", provider=self.name)

        self.record_usage(TokenUsage.from_anthropic(data.get("usage")))
        return "".join(texts)

    def supports_streaming(self) -> bool:
        return True

    async def stream_chat(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        headers = self._headers()
        system, turns = split_system(messages)
        payload = self._payload(system, turns, model, temperature, stream=True)

        async with self.client.stream("POST", self.messages_url, json=payload, headers=headers) as response:
            await self.raise_for_stream_status(response)
            async for event in iter_sse_events(response.aiter_bytes()):
                event_type = event.get("type", "")
                if event_type == "content_block_delta":
                    delta = event.get("delta") or {}
                    text = delta.get("text") if isinstance(delta, dict) else None
                    if isinstance(text, str) and text:
                        yield text
                elif event_type == "message_start":
                    # input tokens only; message_delta carries the final output count
                    usage = (event.get("message") or {}).get("usage") or {}
                    self.record_usage(
                        TokenUsage.of(prompt_tokens=int(usage.get("input_tokens") or 0)),
                        request=False,
                    )
                elif event_type == "message_delta":
                    usage = event.get("usage") or {}
                    self.record_usage(
                        TokenUsage.of(completion_tokens=int(usage.get("output_tokens") or 0)),
                        request=False,
                    )
                elif event_type == "message_stop":
                    break
                elif event_type == "error":
                    error = event.get("error") or {}
                    raise ProtocolError(
                        f"Anthropic stream error: {error.get('message', error)}",
                        provider=self.name,
                    )
        self.record_request()
