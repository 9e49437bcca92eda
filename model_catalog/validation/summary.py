"""Change tracking: diff validated records against their originals."""

from __future__ import annotations

from typing import Dict, Sequence

from model_catalog.records.models import Record
from model_catalog.validation.models import ValidationSummary, ValidationUpdateEvent

# Changes outside the tracked fields are counted under "other".
_OTHER_FIELDS = ("name", "provider", "url", "repo", "updated_at", "data_provenance")


def _pricing_key(record: Record):
    return [p.to_dict() for p in record.pricing]


def track_field_updates(original: Record, updated: Record, summary: ValidationSummary) -> bool:
    """
    Append one event per changed field to summary.

    Only new non-empty values count as updates. Returns True if anything
    changed.
    """
    changed = False

    def push(field_name: str, counter: str, old, new) -> None:
        nonlocal changed
        changed = True
        summary.fields_updated[counter] += 1
        summary.updates.append(ValidationUpdateEvent(
            record_id=original.id,
            record_name=original.name or "Unknown",
            field=field_name,
            old_value=old,
            new_value=new,
        ))

    for name in ("description", "parameters", "context_window", "release_date"):
        new = getattr(updated, name)
        old = getattr(original, name)
        if new and new != old:
            push(name, name, old, new)

    if updated.license.name and updated.license.name != original.license.name:
        push("license", "license", original.license.name, updated.license.name)

    if updated.tags and updated.tags != original.tags:
        push("tags", "tags", list(original.tags), list(updated.tags))

    if updated.pricing and _pricing_key(updated) != _pricing_key(original):
        push("pricing", "pricing", _pricing_key(original), _pricing_key(updated))

    for name in _OTHER_FIELDS:
        new = getattr(updated, name)
        old = getattr(original, name)
        if new and new != old:
            push(name, "other", old, new)

    return changed


def build_summary(
    originals: Sequence[Record],
    updated: Sequence[Record],
    summary: ValidationSummary,
) -> ValidationSummary:
    """Diff every updated record against the original with the same id."""
    by_id: Dict[str, Record] = {r.id: r for r in originals}
    for record in updated:
        original = by_id.get(record.id)
        if original is None:
            continue
        if track_field_updates(original, record, summary):
            summary.models_updated += 1
    return summary


__all__ = ["track_field_updates", "build_summary"]
