"""
Enrichment package - provider clients, provider discovery and per-record
enrichment.
"""

from model_catalog.enrichment.engine import (
    RecordEnricher,
    build_enrichment_prompt,
    parse_enrichment_response,
)
from model_catalog.enrichment.llm_client import (
    AnthropicLLMClient,
    LLMClient,
    MockLLMClient,
    OpenAICompatibleClient,
    VertexLLMClient,
    get_llm_client,
)
from model_catalog.enrichment.providers import (
    PROVIDER_PRIORITY,
    ProviderConfig,
    find_enabled_provider,
    is_provider_usable,
    iter_usable_providers,
)

__all__ = [
    "RecordEnricher",
    "build_enrichment_prompt",
    "parse_enrichment_response",
    "AnthropicLLMClient",
    "LLMClient",
    "MockLLMClient",
    "OpenAICompatibleClient",
    "VertexLLMClient",
    "get_llm_client",
    "PROVIDER_PRIORITY",
    "ProviderConfig",
    "find_enabled_provider",
    "is_provider_usable",
    "iter_usable_providers",
]
