"""
Model Catalog - Reconciliation and validation core for an AI-model catalog.

Entry points:
- validate_catalog(records, options): whole-catalog validation (hybrid single/batch)
- ValidationQueue: bounded-concurrency per-record enrichment
- merge_incoming(catalog, incoming): import / sync merge

The caller owns the catalog snapshot. Nothing here persists state.
"""

from model_catalog.codec import decode_records, encode_records
from model_catalog.enrichment import ProviderConfig, RecordEnricher
from model_catalog.jobs import JobStatus, ValidationJob, ValidationQueue, ValidationSource
from model_catalog.merge import MergeOutcome, dedupe_records, merge_incoming, merge_records
from model_catalog.records import Record
from model_catalog.validation import (
    CancellationToken,
    ValidationOptions,
    ValidationResult,
    ValidationSummary,
    validate_catalog,
)

__version__ = "0.1.0"

__all__ = [
    "Record",
    "encode_records",
    "decode_records",
    "merge_incoming",
    "merge_records",
    "dedupe_records",
    "MergeOutcome",
    "ValidationQueue",
    "ValidationJob",
    "ValidationSource",
    "JobStatus",
    "RecordEnricher",
    "ProviderConfig",
    "validate_catalog",
    "ValidationOptions",
    "ValidationResult",
    "ValidationSummary",
    "CancellationToken",
]
