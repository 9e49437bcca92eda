"""
Merge package - matching, field merge and loss repair for catalog records.
"""

from model_catalog.merge.engine import (
    MergeOutcome,
    apply_release_tags,
    dedupe_records,
    match_existing_index,
    merge_incoming,
    merge_pricing,
    merge_records,
)
from model_catalog.merge.repair import (
    ENRICHABLE_FIELDS,
    ReconcileResult,
    fold_non_empty,
    merge_enriched,
    overlay_validated,
    reconcile_chunk,
)

__all__ = [
    "MergeOutcome",
    "apply_release_tags",
    "dedupe_records",
    "match_existing_index",
    "merge_incoming",
    "merge_pricing",
    "merge_records",
    "ENRICHABLE_FIELDS",
    "ReconcileResult",
    "fold_non_empty",
    "merge_enriched",
    "overlay_validated",
    "reconcile_chunk",
]
