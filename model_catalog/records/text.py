"""Text helpers shared by matching, merging and validation."""

from __future__ import annotations

import re
from typing import Any, Optional

_CJK_RE = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\u3040-\u30ff\uac00-\ud7af]")

# Placeholders a provider or import writes when it has no value.
EMPTY_PLACEHOLDERS = ("unknown", "n/a", "none", "null")


def normalize_name_for_match(name: Optional[str]) -> str:
    """
    Normalize a model name for fuzzy comparison.

    "FLUX.1 [pro]" -> "flux 1 pro"
    """
    if not name:
        return ""
    s = str(name).lower()
    s = re.sub(r"\[([^\]]+)\]", r" \1 ", s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def contains_cjk(text: Optional[str]) -> bool:
    """True if text contains Chinese, Japanese or Korean characters."""
    if not text:
        return False
    return bool(_CJK_RE.search(text))


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections count as empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def is_placeholder(value: Any) -> bool:
    """Empty, or a textual placeholder such as "Unknown"."""
    if is_empty(value):
        return True
    return isinstance(value, str) and value.strip().lower() in EMPTY_PLACEHOLDERS


def clean_description(desc: Optional[str]) -> str:
    """Strip markdown decoration from scraped model descriptions."""
    if not desc:
        return ""
    s = desc
    s = re.sub(r"!\[([^\]]*)\]\([^)]+\)", "", s)
    s = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", s)
    s = re.sub(r"(^|\n)#+\s+", r"\1", s)
    s = re.sub(r"(\*\*|__)(.*?)\1", r"\2", s)
    s = re.sub(r"```[\s\S]*?```", "", s)
    s = re.sub(r"`([^`]+)`", r"\1", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


__all__ = [
    "normalize_name_for_match",
    "contains_cjk",
    "is_empty",
    "is_placeholder",
    "clean_description",
    "EMPTY_PLACEHOLDERS",
]
