"""Prompts for whole-catalog validation."""

from __future__ import annotations

from typing import Optional, Sequence

from model_catalog.codec.tabular import encode_records
from model_catalog.records.models import Record

SINGLE_SYSTEM_PROMPT = "You are an expert AI model database curator and fact-checker."

BATCH_SYSTEM_PROMPT = """You are an expert AI model database curator and fact-checker with access to web search.

CRITICAL INSTRUCTIONS:
- Use web search to find accurate, verifiable information for missing fields
- Search official sources: company blogs, research papers, GitHub repos, model cards
- Cross-reference multiple sources before adding data
- For release dates, search: "[model name] release date", "[model name] announcement"
- For parameters, search: "[model name] parameters", "[model name] size"
- For licenses, search: "[model name] license", check official documentation
- NEVER remove or drop models from the database
- ONLY fill in empty fields, preserve existing data
- Return ALL models in the CSV output"""


def create_database_validation_prompt(
    records: Sequence[Record],
    encoded: Optional[str] = None,
) -> str:
    """Build the user prompt carrying the encoded records."""
    count = len(records)
    table = encoded if encoded is not None else encode_records(records)

    return f"""You are an AI model database expert. I'm providing you with my AI model database in CSV format for enrichment and validation.

CRITICAL RULES:
1. **PRESERVE ALL MODELS** - You MUST return ALL {count} models in your response
2. **ONLY FILL BLANKS** - Only update fields that are empty or contain "Unknown"
3. **DO NOT REMOVE MODELS** - Every model in the input MUST appear in the output
4. **DO NOT GUESS** - If you don't know accurate information, leave the field as is or mark "Unknown"
5. **USE WEB SEARCH** - For missing dates, parameters, or other facts, search for official sources

TASK: Enrich this database by filling in ONLY the missing information:

**PRIORITY FIELDS TO FILL:**
- **release_date**: Find official announcement/launch date (YYYY-MM-DD format)
- **parameters**: Model size (e.g., "7B", "70B", "1.3B", "405B")
- **context_window**: For LLMs (e.g., "4k", "8k", "32k", "128k", "200k")
- **provider**: ACTUAL creator/publisher (NOT "HuggingFace" or "Replicate")
- **description**: Brief, accurate description of capabilities
- **license_name**: Exact license name (e.g., "Apache-2.0", "MIT", "Llama 3 Community License")
- **commercial_use**: true/false based on actual license terms

**VALIDATION APPROACH:**
1. Scan each row for empty fields
2. For each empty field, search for accurate information
3. Only update if you find reliable, verifiable data
4. Keep existing data unless it's clearly wrong
5. Return ALL {count} models with enriched data

DATABASE ({count} models):
{table}

**OUTPUT FORMAT:**
Return ONLY the complete CSV with ALL {count} models.
- Same column structure as input, starting with the header row
- Same row count as input ({count} rows + header)
- Keep every id exactly as given
- pricing_* columns hold one value per pricing tier separated by ";" (keep tier order)
- Leave is_favorite, is_nsfw_flagged and flagged_image_urls unchanged
- Only empty fields should be filled
- No explanations, just the CSV data

Begin CSV output now:"""


__all__ = [
    "SINGLE_SYSTEM_PROMPT",
    "BATCH_SYSTEM_PROMPT",
    "create_database_validation_prompt",
]
