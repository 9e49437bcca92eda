"""
Merge Engine - Fold untrusted incoming records into the canonical catalog.

═══════════════════════════════════════════════════════════════════════════════
ENTRY POINTS
═══════════════════════════════════════════════════════════════════════════════

  match_existing_index(catalog, candidate, fuzzy) -> Optional[int]
      Find the catalog slot an incoming record refers to.

  merge_records(existing, incoming) -> Record
      Field-level merge. Existing wins unless empty, with two exceptions
      (text quality and pricing union, see below).

  merge_incoming(catalog, incoming, fuzzy) -> MergeOutcome
      Import / sync entry point: match, merge or append, re-assert user
      flags, then dedupe.

  dedupe_records(records) -> List[Record]
      Collapse duplicate ids, last write wins.

═══════════════════════════════════════════════════════════════════════════════
MATCHING (first hit wins)
═══════════════════════════════════════════════════════════════════════════════

  1. exact id
  2. exact repo URL
  3. exact url
  4. fuzzy (opt-in): normalized name equal AND provider tolerant (equal,
     either empty, or one contains the other) AND domain equal when both
     are known (Other counts as unknown)

  Fuzzy matching can merge distinct models with similar names, so it is
  off unless CATALOG_FUZZY_MATCHING=true or fuzzy=True is passed.

═══════════════════════════════════════════════════════════════════════════════
FIELD RULES
═══════════════════════════════════════════════════════════════════════════════

  id                 never changes
  name, description  incoming wins if it is plain (not tagged "translated"),
                     not CJK, and existing is CJK; else existing unless empty
  pricing            union by signature (model|unit|input|output|flat|CURRENCY),
                     incoming entries first
  license/hosting    booleans OR'ed; license text fields existing unless empty
  tags, usage_restrictions, hosting.providers
                     union, case-insensitive
  everything else    existing unless empty
  user flags         NOT merged here; callers re-assert them from existing

═══════════════════════════════════════════════════════════════════════════════
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

from model_catalog import config
from model_catalog.records.models import (
    Domain,
    Hosting,
    Indemnity,
    LicenseInfo,
    PricingEntry,
    Record,
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

logger = logging.getLogger(__name__)

TRANSLATED_TAG = "translated"
UNRELEASED_TAGS = ("unreleased", "future-release")


# =============================================================================
# MATCHING
# =============================================================================

def _providers_compatible(a: Optional[str], b: Optional[str]) -> bool:
    a = (a or "").lower()
    b = (b or "").lower()
    return a == b or not a or not b or a in b or b in a


def _domains_compatible(a: Domain, b: Domain) -> bool:
    if a == Domain.OTHER or b == Domain.OTHER:
        return True
    return a == b


def match_existing_index(
    catalog: Sequence[Record],
    candidate: Record,
    fuzzy: Optional[bool] = None,
) -> Optional[int]:
    """
    Return the index of the catalog record that candidate refers to.

    Args:
        catalog: Current records
        candidate: Incoming record
        fuzzy: Enable fuzzy name matching (defaults to CATALOG_FUZZY_MATCHING)

    Returns:
        Index into catalog, or None if candidate is a new entry
    """
    if fuzzy is None:
        fuzzy = config.FUZZY_MATCHING_ENABLED

    if candidate.id:
        for idx, existing in enumerate(catalog):
            if existing.id and existing.id == candidate.id:
                return idx

    if candidate.repo:
        for idx, existing in enumerate(catalog):
            if existing.repo and existing.repo == candidate.repo:
                return idx

    if candidate.url:
        for idx, existing in enumerate(catalog):
            if existing.url and existing.url == candidate.url:
                return idx

    if fuzzy:
        base = normalize_name_for_match(candidate.name)
        if base:
            for idx, existing in enumerate(catalog):
                if (
                    normalize_name_for_match(existing.name) == base
                    and _providers_compatible(existing.provider, candidate.provider)
                    and _domains_compatible(existing.domain, candidate.domain)
                ):
                    return idx

    return None


# =============================================================================
# FIELD MERGE
# =============================================================================

def _first_non_empty(*values):
    for value in values:
        if not is_empty(value):
            return value
    return values[-1] if values else None


def _prefer_text(
    existing: Optional[str],
    incoming: Optional[str],
    incoming_tags: Sequence[str],
) -> Optional[str]:
    translated = any(t.lower() == TRANSLATED_TAG for t in incoming_tags or [])
    if (
        not is_empty(incoming)
        and not translated
        and not contains_cjk(incoming)
        and contains_cjk(existing)
    ):
        return incoming
    return existing if not is_empty(existing) else incoming


def pricing_signature(entry: PricingEntry) -> str:
    def num(value: Optional[float]) -> str:
        return "" if value is None else repr(float(value))

    return "|".join([
        (entry.model or "").lower(),
        (entry.unit or "").lower(),
        num(entry.input),
        num(entry.output),
        num(entry.flat),
        (entry.currency or "").upper(),
    ])


def normalize_pricing(entry: PricingEntry) -> PricingEntry:
    """Fill pricing defaults: model "Usage", unit month/token, currency USD."""
    return PricingEntry(
        model=entry.model or "Usage",
        unit=entry.unit or ("month" if entry.flat is not None else "token"),
        input=entry.input,
        output=entry.output,
        flat=entry.flat,
        currency=entry.currency or "USD",
        notes=entry.notes,
        url=entry.url,
    )


def merge_pricing(
    existing: Sequence[PricingEntry],
    incoming: Sequence[PricingEntry],
) -> List[PricingEntry]:
    """Union pricing tiers by signature; incoming tiers come first."""
    seen = set()
    merged: List[PricingEntry] = []
    for entry in [*incoming, *existing]:
        normalized = normalize_pricing(entry)
        sig = pricing_signature(normalized)
        if sig in seen:
            continue
        seen.add(sig)
        merged.append(normalized)
    return merged


def _merge_license(existing: LicenseInfo, incoming: LicenseInfo) -> LicenseInfo:
    known = not is_placeholder(existing.name)
    return LicenseInfo(
        name=existing.name if known else (incoming.name or existing.name),
        type=existing.type if known else incoming.type,
        commercial_use=existing.commercial_use or incoming.commercial_use,
        attribution_required=existing.attribution_required or incoming.attribution_required,
        share_alike=existing.share_alike or incoming.share_alike,
        copyleft=existing.copyleft or incoming.copyleft,
        url=_first_non_empty(existing.url, incoming.url),
        notes=_first_non_empty(existing.notes, incoming.notes),
    )


def _merge_hosting(existing: Hosting, incoming: Hosting) -> Hosting:
    return Hosting(
        weights_available=existing.weights_available or incoming.weights_available,
        api_available=existing.api_available or incoming.api_available,
        on_premise_friendly=existing.on_premise_friendly or incoming.on_premise_friendly,
        providers=union_ci(existing.providers, incoming.providers),
    )


def apply_release_tags(record: Record, today: Optional[date] = None) -> Record:
    """
    Tag records whose release date lies in the future (in place).

    A parseable past release date removes the tags again.
    """
    if not record.release_date:
        return record
    try:
        released = date.fromisoformat(record.release_date.strip()[:10])
    except ValueError:
        return record

    today = today or date.today()
    if released > today:
        record.tags = union_ci(record.tags, UNRELEASED_TAGS)
    else:
        record.tags = [t for t in record.tags if t.lower() not in UNRELEASED_TAGS]
    return record


def merge_records(
    existing: Record,
    incoming: Record,
    today: Optional[date] = None,
) -> Record:
    """
    Merge incoming into a copy of existing.

    existing is never mutated and existing.id is always kept. User flags are
    carried over from existing unchanged; callers doing enrichment merges
    must still call preserve_user_flags explicitly.
    """
    merged = existing.copy()

    merged.name = _prefer_text(existing.name, incoming.name, incoming.tags) or ""
    merged.description = _prefer_text(existing.description, incoming.description, incoming.tags)
    if merged.description is not None:
        merged.description = clean_description(merged.description) or None

    merged.provider = _first_non_empty(existing.provider, incoming.provider)
    merged.domain = existing.domain if existing.domain != Domain.OTHER else incoming.domain
    merged.source = _first_non_empty(existing.source, incoming.source) or ""
    merged.url = _first_non_empty(existing.url, incoming.url)
    merged.repo = _first_non_empty(existing.repo, incoming.repo)

    merged.parameters = _first_non_empty(existing.parameters, incoming.parameters)
    merged.context_window = _first_non_empty(existing.context_window, incoming.context_window)
    merged.release_date = _first_non_empty(existing.release_date, incoming.release_date)
    merged.updated_at = _first_non_empty(existing.updated_at, incoming.updated_at)
    merged.downloads = existing.downloads if existing.downloads is not None else incoming.downloads
    merged.data_provenance = _first_non_empty(existing.data_provenance, incoming.data_provenance)
    merged.indemnity = (
        existing.indemnity if existing.indemnity != Indemnity.UNKNOWN else incoming.indemnity
    )

    merged.tags = union_ci(existing.tags, incoming.tags)
    merged.usage_restrictions = union_ci(existing.usage_restrictions, incoming.usage_restrictions)

    merged.license = _merge_license(existing.license, incoming.license)
    merged.hosting = _merge_hosting(existing.hosting, incoming.hosting)
    merged.pricing = merge_pricing(existing.pricing, incoming.pricing)

    apply_release_tags(merged, today)
    return merged


# =============================================================================
# COLLECTION OPERATIONS
# =============================================================================

def dedupe_records(records: Sequence[Record]) -> List[Record]:
    """
    Collapse duplicate ids.

    The last record with a given id wins, placed at the position where that
    id first appeared.
    """
    by_id: Dict[str, Record] = {}
    for record in records:
        if record is None:
            continue
        by_id[record.id] = record
    return list(by_id.values())


@dataclass
class MergeOutcome:
    """Result of folding a batch of incoming records into a catalog."""
    records: List[Record] = field(default_factory=list)
    added: int = 0
    updated: int = 0


def merge_incoming(
    catalog: Sequence[Record],
    incoming: Sequence[Record],
    fuzzy: Optional[bool] = None,
    today: Optional[date] = None,
) -> MergeOutcome:
    """
    Fold incoming records into a copy of catalog.

    Matched records are merged (user flags re-asserted from the catalog
    copy); unmatched records are appended. Duplicates are collapsed last.
    """
    base = [record.copy() for record in catalog]
    outcome = MergeOutcome()

    for candidate in incoming:
        idx = match_existing_index(base, candidate, fuzzy=fuzzy)
        if idx is None:
            base.append(apply_release_tags(candidate.copy(), today))
            outcome.added += 1
            continue

        existing = base[idx]
        merged = merge_records(existing, candidate, today=today)
        base[idx] = preserve_user_flags(merged, existing)
        outcome.updated += 1

    outcome.records = dedupe_records(base)
    logger.info(
        "Merged %d incoming records: %d added, %d updated, %d total",
        len(incoming), outcome.added, outcome.updated, len(outcome.records),
    )
    return outcome


__all__ = [
    "match_existing_index",
    "merge_records",
    "merge_pricing",
    "normalize_pricing",
    "pricing_signature",
    "apply_release_tags",
    "dedupe_records",
    "merge_incoming",
    "MergeOutcome",
]
