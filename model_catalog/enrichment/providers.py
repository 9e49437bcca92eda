"""
Provider configuration and discovery.

The surrounding application owns the settings store; each run receives the
provider map (provider key -> ProviderConfig) as a parameter so a run never
reads settings that change while it is in flight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Discovery order after the caller's preferred provider.
PROVIDER_PRIORITY = (
    "perplexity",
    "anthropic",
    "openai",
    "google",
    "deepseek",
    "cohere",
    "openrouter",
)

# Providers whose completions are backed by live web search.
WEB_SEARCH_PROVIDERS = ("perplexity",)

DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "perplexity": "https://api.perplexity.ai",
    "openrouter": "https://openrouter.ai/api/v1",
    "cohere": "https://api.cohere.ai/compatibility/v1",
    "ollama": "http://localhost:11434/v1",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20240620",
    "google": "gemini-2.5-flash",
    "deepseek": "deepseek-chat",
    "perplexity": "sonar",
    "openrouter": "openai/gpt-4o",
    "cohere": "command-r-plus",
    "ollama": "llama3",
}


@dataclass
class ProviderConfig:
    """Settings for one text-generation provider."""
    enabled: bool = False
    api_key: str = ""
    base_url: Optional[str] = None
    model: Optional[str] = None
    protocol: Optional[str] = None
    web_search: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProviderConfig":
        return cls(
            enabled=bool(data.get("enabled", False)),
            api_key=str(data.get("api_key", data.get("apiKey", "")) or ""),
            base_url=data.get("base_url", data.get("baseUrl")),
            model=data.get("model"),
            protocol=data.get("protocol"),
            web_search=bool(data.get("web_search", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        # api_key is never serialized
        return {
            "enabled": self.enabled,
            "base_url": self.base_url,
            "model": self.model,
            "protocol": self.protocol,
            "web_search": self.web_search,
        }


ApiConfig = Mapping[str, Union[ProviderConfig, Mapping[str, Any]]]


def _as_config(value: Union[ProviderConfig, Mapping[str, Any], None]) -> Optional[ProviderConfig]:
    if value is None:
        return None
    if isinstance(value, ProviderConfig):
        return value
    return ProviderConfig.from_dict(value)


def is_provider_usable(key: str, cfg: Optional[ProviderConfig]) -> bool:
    """Enabled, and either has a non-blank key or is a local ollama endpoint."""
    if cfg is None or not cfg.enabled:
        return False
    if key == "ollama" or cfg.protocol == "ollama":
        return True
    return bool(cfg.api_key and cfg.api_key.strip())


def uses_web_search(key: str, cfg: ProviderConfig) -> bool:
    return key in WEB_SEARCH_PROVIDERS or cfg.web_search


def iter_usable_providers(
    api_config: Optional[ApiConfig],
    preferred: Optional[str] = None,
) -> Iterator[Tuple[str, ProviderConfig]]:
    """
    Yield usable providers in discovery order.

    Order: preferred, then PROVIDER_PRIORITY, then any remaining entries in
    the order the mapping lists them. Each key is yielded at most once.
    """
    if not api_config:
        return

    seen = set()
    order: List[str] = []
    for key in [preferred, *PROVIDER_PRIORITY, *api_config.keys()]:
        if key and key not in seen:
            seen.add(key)
            order.append(key)

    for key in order:
        cfg = _as_config(api_config.get(key))
        if is_provider_usable(key, cfg):
            yield key, cfg


def find_enabled_provider(
    api_config: Optional[ApiConfig],
    preferred: Optional[str] = None,
) -> Optional[Tuple[str, ProviderConfig]]:
    """Return the first usable (key, config) pair, or None."""
    for key, cfg in iter_usable_providers(api_config, preferred):
        logger.info("Using provider %s (web_search=%s)", key, uses_web_search(key, cfg))
        return key, cfg
    return None


__all__ = [
    "PROVIDER_PRIORITY",
    "WEB_SEARCH_PROVIDERS",
    "DEFAULT_BASE_URLS",
    "DEFAULT_MODELS",
    "ProviderConfig",
    "ApiConfig",
    "is_provider_usable",
    "uses_web_search",
    "iter_usable_providers",
    "find_enabled_provider",
]
