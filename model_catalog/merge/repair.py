"""
Repair merges - fold provider output back onto the records that were sent.

Provider replies are untrusted: they may drop rows, blank out values or
invent ids. Everything here starts from a copy of the original record so the
output always has the original id and the original user flags.

  reconcile_chunk(originals, decoded) -> ReconcileResult
      Used by catalog validation for every chunk (single mode is one chunk).
      Fewer decoded rows than originals counts as a lossy reply and only the
      enrichable fields are folded in; otherwise every exchanged field is.

  merge_enriched(original, enriched) -> Record
      Used by the validation job queue after a successful enrichment call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from model_catalog.records.models import (
    Domain,
    Indemnity,
    Hosting,
    LicenseInfo,
    PricingEntry,
    Record,
    preserve_user_flags,
    union_ci,
)
from model_catalog.records.text import is_placeholder

logger = logging.getLogger(__name__)

# Fields a lossy reply may still update.
ENRICHABLE_FIELDS = (
    "name",
    "provider",
    "description",
    "parameters",
    "context_window",
    "release_date",
    "updated_at",
    "tags",
)

# Scalar fields carried by the tabular exchange.
_EXCHANGED_SCALARS = (
    "name",
    "provider",
    "description",
    "source",
    "url",
    "repo",
    "parameters",
    "context_window",
    "release_date",
    "updated_at",
    "downloads",
    "data_provenance",
    "tags",
    "usage_restrictions",
)


def fold_non_empty(original: Record, decoded: Record, fields: Sequence[str] = ENRICHABLE_FIELDS) -> Record:
    """Copy of original where each listed field takes decoded's value unless blank or "Unknown"."""
    merged = original.copy()
    for name in fields:
        value = getattr(decoded, name)
        if not is_placeholder(value):
            setattr(merged, name, list(value) if isinstance(value, list) else value)
    return preserve_user_flags(merged, original)


def _overlay_pricing(
    original: Sequence[PricingEntry], validated: Sequence[PricingEntry]
) -> List[PricingEntry]:
    named = {(p.model or "").strip().lower() for p in validated}
    kept = [
        PricingEntry.from_dict(p.to_dict())
        for p in original
        if p.model and p.model.strip().lower() not in named
    ]
    return [PricingEntry.from_dict(p.to_dict()) for p in validated] + kept


def overlay_validated(original: Record, validated: Record) -> Record:
    """
    Apply a full validated row onto the original.

    Blank cells keep the original value. The license and hosting booleans
    always take the validated value since the table always carries them.
    Validated pricing tiers win; original tiers whose model name the reply
    does not mention are appended after them.
    """
    merged = fold_non_empty(original, validated, _EXCHANGED_SCALARS)

    if validated.domain != Domain.OTHER:
        merged.domain = validated.domain
    if validated.indemnity not in (Indemnity.NONE, Indemnity.UNKNOWN):
        merged.indemnity = validated.indemnity

    lic = validated.license
    merged.license = LicenseInfo(
        name=lic.name or original.license.name,
        type=lic.type if lic.name else original.license.type,
        commercial_use=lic.commercial_use,
        attribution_required=lic.attribution_required,
        share_alike=lic.share_alike,
        copyleft=lic.copyleft,
        url=lic.url or original.license.url,
        notes=lic.notes or original.license.notes,
    )

    merged.hosting = Hosting(
        weights_available=validated.hosting.weights_available,
        api_available=validated.hosting.api_available,
        on_premise_friendly=validated.hosting.on_premise_friendly,
        providers=list(validated.hosting.providers or original.hosting.providers),
    )

    if validated.pricing:
        merged.pricing = _overlay_pricing(original.pricing, validated.pricing)

    return preserve_user_flags(merged, original)


@dataclass
class ReconcileResult:
    """Outcome of folding one decoded chunk back onto its originals."""
    records: List[Record] = field(default_factory=list)
    matched: int = 0
    missing: int = 0
    unexpected: int = 0
    loss_detected: bool = False


def reconcile_chunk(originals: Sequence[Record], decoded: Sequence[Record]) -> ReconcileResult:
    """
    Reconcile a decoded reply with the chunk that was sent.

    The result always holds exactly one record per original, in the
    original order, with the original id. Decoded rows with unknown ids are
    dropped.
    """
    result = ReconcileResult(loss_detected=len(decoded) < len(originals))

    if not decoded:
        result.records = [r.copy() for r in originals]
        result.missing = len(originals)
        return result

    by_id: Dict[str, Record] = {}
    for record in decoded:
        by_id.setdefault(record.id, record)

    original_ids = {r.id for r in originals}
    result.unexpected = sum(1 for rid in by_id if rid not in original_ids)
    if result.unexpected:
        logger.warning("Dropping %d validated rows with unknown ids", result.unexpected)

    for original in originals:
        counterpart = by_id.get(original.id)
        if counterpart is None:
            result.records.append(original.copy())
            result.missing += 1
        elif result.loss_detected:
            result.records.append(fold_non_empty(original, counterpart))
            result.matched += 1
        else:
            result.records.append(overlay_validated(original, counterpart))
            result.matched += 1

    if result.loss_detected:
        logger.info(
            "Repaired lossy reply: %d of %d records returned, %d kept unchanged",
            len(decoded), len(originals), result.missing,
        )
    return result


def merge_enriched(original: Record, enriched: Record) -> Record:
    """
    Merge a per-record enrichment result with the record it was built from.

    Enriched values win where present. License and hosting are merged field
    by field, tags are unioned and the original id and user flags are always
    kept.
    """
    merged = fold_non_empty(original, enriched, _EXCHANGED_SCALARS)
    if enriched.domain != Domain.OTHER:
        merged.domain = enriched.domain
    if enriched.indemnity not in (Indemnity.NONE, Indemnity.UNKNOWN):
        merged.indemnity = enriched.indemnity
    if enriched.pricing:
        merged.pricing = [p for p in enriched.pricing]

    lic_o, lic_e = original.license, enriched.license
    merged.license = LicenseInfo(
        name=lic_e.name or lic_o.name,
        type=lic_e.type if lic_e.name else lic_o.type,
        commercial_use=lic_e.commercial_use or lic_o.commercial_use,
        attribution_required=lic_e.attribution_required or lic_o.attribution_required,
        share_alike=lic_e.share_alike or lic_o.share_alike,
        copyleft=lic_e.copyleft or lic_o.copyleft,
        url=lic_e.url or lic_o.url,
        notes=lic_e.notes or lic_o.notes,
    )

    host_o, host_e = original.hosting, enriched.hosting
    merged.hosting = Hosting(
        weights_available=host_e.weights_available or host_o.weights_available,
        api_available=host_e.api_available or host_o.api_available,
        on_premise_friendly=host_e.on_premise_friendly or host_o.on_premise_friendly,
        providers=union_ci(host_o.providers, host_e.providers),
    )

    merged.tags = union_ci(original.tags, enriched.tags)
    return preserve_user_flags(merged, original)


__all__ = [
    "ENRICHABLE_FIELDS",
    "ReconcileResult",
    "fold_non_empty",
    "overlay_validated",
    "reconcile_chunk",
    "merge_enriched",
]
