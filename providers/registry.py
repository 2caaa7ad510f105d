"""
Central provider registry.

Lightweight metadata shared by the provider factory, configuration
loading and credential resolution. Resolution helpers take an injectable
``env_get`` so tests never have to touch ``os.environ``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from clawloop_constants import (
    ANTHROPIC_BASE_URL,
    OLLAMA_BASE_URL,
    OPENAI_BASE_URL,
    OPENROUTER_AUTH_KEY_PATH,
    OPENROUTER_BASE_URL,
)

EnvGetter = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class ProviderMeta:
    id: str
    label: str
    kind: str  # "openai" (chat/completions) or "anthropic" (messages)
    default_base_url: str = ""
    api_key_env_vars: Tuple[str, ...] = ()
    base_url_env_var: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    requires_api_key: bool = True
    extra_headers: Tuple[Tuple[str, str], ...] = ()
    warmup_path: Optional[str] = None


PROVIDERS: Dict[str, ProviderMeta] = {
    "openrouter": ProviderMeta(
        id="openrouter",
        label="OpenRouter",
        kind="openai",
        default_base_url=OPENROUTER_BASE_URL,
        api_key_env_vars=("OPENROUTER_API_KEY",),
        base_url_env_var="OPENROUTER_BASE_URL",
        extra_headers=(
            ("HTTP-Referer", "https://github.com/clawloop/clawloop"),
            ("X-Title", "clawloop"),
        ),
        warmup_path=OPENROUTER_AUTH_KEY_PATH,
    ),
    "anthropic": ProviderMeta(
        id="anthropic",
        label="Anthropic",
        kind="anthropic",
        default_base_url=ANTHROPIC_BASE_URL,
        api_key_env_vars=("ANTHROPIC_API_KEY", "ANTHROPIC_OAUTH_TOKEN"),
        base_url_env_var="ANTHROPIC_BASE_URL",
        aliases=("claude",),
    ),
    "openai": ProviderMeta(
        id="openai",
        label="OpenAI",
        kind="openai",
        default_base_url=OPENAI_BASE_URL,
        api_key_env_vars=("OPENAI_API_KEY",),
        aliases=("gpt",),
    ),
    "ollama": ProviderMeta(
        id="ollama",
        label="Ollama (local)",
        kind="openai",
        default_base_url=OLLAMA_BASE_URL,
        base_url_env_var="OLLAMA_BASE_URL",
        aliases=("local",),
        requires_api_key=False,
    ),
    "custom": ProviderMeta(
        id="custom",
        label="Custom OpenAI-compatible endpoint",
        kind="openai",
        api_key_env_vars=("CUSTOM_API_KEY",),
        base_url_env_var="CUSTOM_BASE_URL",
    ),
}

_ALIAS_TO_PROVIDER: Dict[str, str] = {}
for _pid, _meta in PROVIDERS.items():
    _ALIAS_TO_PROVIDER[_pid] = _pid
    for _alias in _meta.aliases:
        _ALIAS_TO_PROVIDER[_alias.lower()] = _pid


def normalize_provider_id(provider_id: Optional[str], default: str = "openrouter") -> str:
    """Normalize a provider ID or alias to a canonical ID."""
    if not provider_id:
        return default
    key = provider_id.strip().lower()
    if not key:
        return default
    return _ALIAS_TO_PROVIDER.get(key, key)


def get_provider(provider_id: str) -> Optional[ProviderMeta]:
    return PROVIDERS.get(normalize_provider_id(provider_id))


def list_provider_ids() -> List[str]:
    return list(PROVIDERS)


def iter_api_key_env_vars(provider_id: str) -> Iterable[str]:
    meta = get_provider(provider_id)
    if not meta:
        return ()
    return meta.api_key_env_vars


def resolve_provider_api_key(
    provider_id: str,
    *,
    env_get: EnvGetter = os.getenv,
    explicit_api_key: Optional[str] = None,
) -> Optional[str]:
    if isinstance(explicit_api_key, str) and explicit_api_key.strip():
        return explicit_api_key.strip()
    for env_var in iter_api_key_env_vars(provider_id):
        value = env_get(env_var)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def resolve_provider_base_url(
    provider_id: str,
    *,
    env_get: EnvGetter = os.getenv,
    explicit_base_url: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve a provider base URL.

    Order: explicit value, provider-specific env override, registry default.
    """
    if isinstance(explicit_base_url, str) and explicit_base_url.strip():
        return explicit_base_url.strip().rstrip("/")
    meta = get_provider(provider_id)
    if not meta:
        return None
    if meta.base_url_env_var:
        env_value = env_get(meta.base_url_env_var)
        if isinstance(env_value, str) and env_value.strip():
            return env_value.strip().rstrip("/")
    if meta.default_base_url:
        return meta.default_base_url.rstrip("/")
    return None


def credential_env_hint(provider_id: str) -> str:
    """Human-readable list of env vars that can hold the provider's key."""
    return " or ".join(iter_api_key_env_vars(provider_id))
