"""Provider error taxonomy.

Transport-level failures (timeouts, refused connections) surface as
``httpx.TransportError`` and are not wrapped.
"""

from typing import Optional

RETRYABLE_STATUS_CODES = frozenset({408, 429})


class ProviderError(Exception):
    """Base class for every failure raised by a chat provider."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class CredentialError(ProviderError):
    """No API key or token is configured for the provider."""

    def __init__(self, provider: str, env_hint: str = ""):
        message = f"{provider} credentials not set."
        if env_hint:
            message += f" Set {env_hint} or add api_key to config.yaml."
        super().__init__(message, provider=provider)


class HttpError(ProviderError):
    """The provider answered with a non-2xx status."""

    def __init__(self, provider: str, status: int, body: str = ""):
        super().__init__(f"{provider} API error ({status}): {body}", provider=provider)
        self.status = status
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status in RETRYABLE_STATUS_CODES or self.status >= 500


class ProtocolError(ProviderError):
    """The response body could not be decoded into the expected shape."""


class EmptyResponseError(ProviderError):
    """The provider returned no choices, content blocks or streamed text."""
