"""Chat provider layer.

Normalizes vendor chat-completion protocols (OpenAI-compatible and
Anthropic Messages) behind one async interface with streaming, usage
accounting, retry and failover.
"""

from providers.base import BaseProvider, ChatMessage
from providers.errors import (
    CredentialError,
    EmptyResponseError,
    HttpError,
    ProtocolError,
    ProviderError,
)
from providers.factory import create_provider, create_routed_provider
from providers.usage import TokenUsage, UsageTracker

__all__ = [
    "BaseProvider",
    "ChatMessage",
    "CredentialError",
    "EmptyResponseError",
    "HttpError",
    "ProtocolError",
    "ProviderError",
    "TokenUsage",
    "UsageTracker",
    "create_provider",
    "create_routed_provider",
]
