"""
Enrichment Engine - Fill in one record's missing metadata with an LLM.

RecordEnricher is the `validate(record, sources)` callable the validation
queue runs. It asks each usable provider in turn for the full record as JSON
and returns the first reply that parses. Merging the reply back onto the
original (and protecting user flags) is the queue's job, not this module's.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, Optional, Sequence

from model_catalog.enrichment.llm_client import LLMClient, get_llm_client
from model_catalog.enrichment.providers import (
    ApiConfig,
    ProviderConfig,
    iter_usable_providers,
)
from model_catalog.errors import (
    EmptyValidationResult,
    NoProviderConfigured,
    ValidationCancelled,
)
from model_catalog.jobs.models import ValidationSource
from model_catalog.records.completeness import get_missing_fields
from model_catalog.records.models import USER_FLAG_FIELDS, Record

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, ProviderConfig], LLMClient]

ENRICHMENT_SYSTEM_PROMPT = (
    "You are an AI expert that provides accurate metadata about AI models."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


# =============================================================================
# PROMPT
# =============================================================================

def _record_for_prompt(record: Record) -> Dict[str, Any]:
    data = record.to_dict()
    for key in ("isFavorite", "isNSFWFlagged", "flaggedImageUrls", *USER_FLAG_FIELDS):
        data.pop(key, None)
    return data


def build_enrichment_prompt(record: Record, sources: Sequence[ValidationSource]) -> str:
    """
    Build the per-record enrichment prompt.

    User flags are left out of the record JSON; the model has no business
    seeing or returning them.
    """
    if ValidationSource.WEBSEARCH in sources:
        source_hint = "Use web search to find the most accurate and up-to-date information."
    else:
        source_hint = "Use your knowledge to fill in missing information."

    missing = get_missing_fields(record)
    missing_line = (
        f"Fields currently missing: {', '.join(missing)}\n" if missing else ""
    )

    record_json = json.dumps(_record_for_prompt(record), indent=2, default=str)

    return f"""I need complete and accurate metadata for this AI model:
{record_json}

{source_hint}
{missing_line}
For each missing or incomplete field, provide the most accurate information available.
Pay special attention to:
1. Provider/Author: the actual person or organization who created the model (NOT the platform like "HuggingFace" or "Replicate")
2. Parameters (model size like "7B", "70B", "1.3B")
3. Context window (for LLMs like "4k", "8k", "32k", "128k")
4. License details (exact name, type, commercial use permissions)
5. Release date: the official announcement/launch date, formatted YYYY-MM-DD
6. Description (brief explanation of what the model does)
7. Tags (relevant technical tags and categories)
8. Links: authoritative url (model card, official page) and repo if available
9. Pricing (input/output per million tokens in USD) and hosting information

If a reliable value cannot be found, cross-check at least two sources before returning "Unknown".

Return the complete model information as a valid JSON object with all fields filled.
Do not include explanations outside the JSON structure.
"""


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for pattern in (r"\{[\s\S]*\}", r"\[[\s\S]*\]"):
        match = re.search(pattern, text)
        if not match:
            continue
        try:
            return json.loads(match.group())
        except json.JSONDecodeError:
            continue
    return None


def parse_enrichment_response(raw_response: str, original: Record) -> Optional[Record]:
    """
    Normalize a provider's JSON reply into a Record.

    Accepts a bare object, an object inside a markdown fence, or a list of
    objects (the first one is used). The original id is always kept.

    Returns:
        The enriched Record, or None if nothing usable was found
    """
    if not raw_response or not raw_response.strip():
        return None

    text = raw_response.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    data = _load_json(text)
    if isinstance(data, list):
        data = next((item for item in data if isinstance(item, dict)), None)
    if isinstance(data, dict) and isinstance(data.get("model"), dict):
        data = data["model"]
    if not isinstance(data, dict) or not data:
        logger.warning("Failed to parse enrichment response: %s", text[:200])
        return None

    enriched = Record.from_dict(data, default_id=original.id)
    enriched.id = original.id
    return enriched


# =============================================================================
# ENRICHER
# =============================================================================

class RecordEnricher:
    """
    Async callable: (record, sources) -> enriched record.

    Providers are tried in discovery order; the first one that returns a
    parseable record wins. If every provider fails, the last error is raised
    so the queue can retry and classify it.
    """

    def __init__(
        self,
        api_config: Optional[ApiConfig],
        preferred_provider: Optional[str] = None,
        client_factory: ClientFactory = get_llm_client,
        cancel_token=None,
    ):
        self.api_config = api_config
        self.preferred_provider = preferred_provider
        self.client_factory = client_factory
        self.cancel_token = cancel_token

    async def __call__(self, record: Record, sources: Sequence[ValidationSource]) -> Record:
        providers = list(iter_usable_providers(self.api_config, self.preferred_provider))
        if not providers:
            raise NoProviderConfigured("No enabled LLM providers available for validation")

        prompt = build_enrichment_prompt(record, sources)
        last_error: Optional[Exception] = None

        for key, provider_config in providers:
            try:
                client = self.client_factory(key, provider_config)
                reply = await client.complete(
                    ENRICHMENT_SYSTEM_PROMPT, prompt, cancel_token=self.cancel_token
                )
            except ValidationCancelled:
                raise
            except Exception as e:
                logger.warning("Provider %s failed for %s: %s", key, record.display_name(), e)
                last_error = e
                continue

            enriched = parse_enrichment_response(reply, record)
            if enriched is not None:
                logger.info("Enriched %s via %s", record.display_name(), key)
                return enriched
            logger.warning("Provider %s returned no usable record for %s", key, record.display_name())

        if last_error is not None:
            raise last_error
        raise EmptyValidationResult(
            "Failed to get valid enriched model data from any provider"
        )


__all__ = [
    "ENRICHMENT_SYSTEM_PROMPT",
    "RecordEnricher",
    "build_enrichment_prompt",
    "parse_enrichment_response",
]
