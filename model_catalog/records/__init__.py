"""
Records Module - Canonical catalog schema and field helpers.

This module provides:
- Record and its sub-objects (LicenseInfo, Hosting, PricingEntry)
- Domain / LicenseType / Indemnity enums
- Text helpers for name matching and CJK detection
- Completeness checks used to pick records for validation
"""

from model_catalog.records.models import (
    Domain,
    Hosting,
    Indemnity,
    LicenseInfo,
    LicenseType,
    PricingEntry,
    Record,
    USER_FLAG_FIELDS,
    preserve_user_flags,
    union_ci,
)
from model_catalog.records.text import (
    clean_description,
    contains_cjk,
    is_empty,
    is_placeholder,
    normalize_name_for_match,
)
from model_catalog.records.completeness import get_missing_fields, is_record_incomplete

__all__ = [
    # Models
    "Domain",
    "Hosting",
    "Indemnity",
    "LicenseInfo",
    "LicenseType",
    "PricingEntry",
    "Record",
    "USER_FLAG_FIELDS",
    "preserve_user_flags",
    "union_ci",
    # Text
    "clean_description",
    "contains_cjk",
    "is_empty",
    "is_placeholder",
    "normalize_name_for_match",
    # Completeness
    "get_missing_fields",
    "is_record_incomplete",
]
