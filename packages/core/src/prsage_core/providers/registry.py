"""Provider construction and availability-ordered selection."""

from __future__ import annotations

from prsage_core.errors import ConfigurationError
from prsage_core.providers.anthropic import AnthropicProvider
from prsage_core.providers.base import BaseProvider
from prsage_core.providers.openai import OpenAIProvider

_PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def build_providers(config: dict) -> dict[str, BaseProvider]:
    """Instantiate every known provider in ``provider_priority`` order.

    Providers without credentials are still built; they simply report
    ``is_available() is False`` so selection can skip them.
    """
    models = config.get("models") or {}
    order = list(config.get("provider_priority") or _PROVIDER_CLASSES)
    order += [name for name in _PROVIDER_CLASSES if name not in order]
    providers: dict[str, BaseProvider] = {}
    for name in order:
        cls = _PROVIDER_CLASSES[name]
        providers[name] = cls(
            api_key=config.get(f"{name}_api_key"),
            model=models.get(name),
            timeout=config.get("request_timeout", 120),
            max_retries=config.get("max_retries", 2),
        )
    return providers


def available_providers(providers: dict[str, BaseProvider]) -> list[str]:
    return [name for name, provider in providers.items() if provider.is_available()]


def select_provider(providers: dict[str, BaseProvider], requested: str | None = None) -> str:
    """Return the explicitly requested provider, else the first available one."""
    if requested is not None:
        provider = providers.get(requested)
        if provider is None:
            raise ConfigurationError(f"Unknown provider: {requested!r}. Choose one of: {', '.join(providers)}.")
        if not provider.is_available():
            raise ConfigurationError(f"Provider {requested!r} is not configured (missing API key).", provider=requested)
        return requested

    available = available_providers(providers)
    if not available:
        raise ConfigurationError("No AI provider available. Set ANTHROPIC_API_KEY or OPENAI_API_KEY.")
    return available[0]
