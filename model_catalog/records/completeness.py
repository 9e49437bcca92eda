"""
Completeness checks - which catalog fields are still missing for a record.

Size fields only matter for some domains: parameters for LLM/VLM/ImageGen,
context_window for LLM/VLM.
"""

from __future__ import annotations

from typing import List

from model_catalog.records.models import Domain, Record
from model_catalog.records.text import is_empty, is_placeholder

_PARAMETER_DOMAINS = (Domain.LLM, Domain.VLM, Domain.IMAGE_GEN)
_CONTEXT_DOMAINS = (Domain.LLM, Domain.VLM)


def get_missing_fields(record: Record) -> List[str]:
    """Return the dotted names of fields that still need a value."""
    missing: List[str] = []

    if is_empty(record.name):
        missing.append("name")
    if is_empty(record.provider):
        missing.append("provider")
    if is_empty(record.description):
        missing.append("description")
    if is_empty(record.parameters) and record.domain in _PARAMETER_DOMAINS:
        missing.append("parameters")
    if is_empty(record.context_window) and record.domain in _CONTEXT_DOMAINS:
        missing.append("context_window")
    if is_placeholder(record.license.name):
        missing.append("license.name")
    if is_empty(record.updated_at) and is_empty(record.release_date):
        missing.append("release_date")
    if not record.tags:
        missing.append("tags")

    return missing


def is_record_incomplete(record: Record) -> bool:
    """True if any tracked field is missing."""
    return bool(get_missing_fields(record))


__all__ = ["get_missing_fields", "is_record_incomplete"]
