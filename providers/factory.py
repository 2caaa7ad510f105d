"""Build providers from registry metadata and configuration."""

import logging
import os
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import httpx

from providers.anthropic import AnthropicProvider
from providers.base import BaseProvider
from providers.openai_compatible import OpenAICompatibleProvider
from providers.registry import (
    EnvGetter,
    credential_env_hint,
    get_provider,
    resolve_provider_api_key,
    resolve_provider_base_url,
)
from providers.router import ReliableProvider, RouterProvider

if TYPE_CHECKING:
    from agent.config import Config

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom:"


def create_provider(
    name: str,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    *,
    env_get: EnvGetter = os.getenv,
    client: Optional[httpx.AsyncClient] = None,
) -> BaseProvider:
    """Create a single provider by registry id or alias.

    ``custom:<url>`` is shorthand for the custom provider at ``<url>``.
    Raises ``ValueError`` for unknown names or a custom provider without a
    base URL. Missing credentials are not an error until the first call.
    """
    if name.startswith(CUSTOM_PREFIX):
        base_url = base_url or name[len(CUSTOM_PREFIX):]
        name = "custom"

    meta = get_provider(name)
    if meta is None:
        raise ValueError(f"Unknown provider: {name}")

    key = resolve_provider_api_key(meta.id, env_get=env_get, explicit_api_key=api_key)
    url = resolve_provider_base_url(meta.id, env_get=env_get, explicit_base_url=base_url)

    if meta.kind == "anthropic":
        return AnthropicProvider(key, url, client=client)

    if not url:
        raise ValueError(f"Provider {meta.id} requires a base_url")
    return OpenAICompatibleProvider(
        meta.label,
        key,
        url,
        extra_headers=dict(meta.extra_headers),
        requires_api_key=meta.requires_api_key,
        warmup_path=meta.warmup_path,
        credential_env_hint=credential_env_hint(meta.id),
        client=client,
    )


def create_routed_provider(config: "Config", *, env_get: EnvGetter = os.getenv) -> RouterProvider:
    """Primary chain with fallbacks, plus one reliable chain per model route."""
    reliability = config.reliability
    primary = config.default_provider

    chain: List[Tuple[str, BaseProvider]] = [
        (primary, create_provider(primary, config.api_key, env_get=env_get)),
    ]
    for fallback in reliability.fallback_providers:
        if fallback == primary or any(fallback == name for name, _ in chain):
            continue
        chain.append((fallback, create_provider(fallback, env_get=env_get)))

    default = ReliableProvider(
        chain,
        retries=reliability.provider_retries,
        backoff_ms=reliability.provider_backoff_ms,
    )

    routes: Dict[str, Tuple[BaseProvider, str]] = {}
    for route in config.model_routes:
        routed = create_provider(route.provider, route.api_key, env_get=env_get)
        routes[route.hint] = (
            ReliableProvider(
                [(route.provider, routed)],
                retries=reliability.provider_retries,
                backoff_ms=reliability.provider_backoff_ms,
            ),
            route.model,
        )
        logger.debug("Model route hint:%s -> %s/%s", route.hint, route.provider, route.model)

    return RouterProvider(default, config.default_model, routes)
