"""
Validation package - whole-catalog validation with the hybrid single/batch
strategy, cancellation and change tracking.
"""

from model_catalog.validation.models import (
    CancellationToken,
    StrategyDecision,
    ValidationMode,
    ValidationOptions,
    ValidationResult,
    ValidationSummary,
    ValidationUpdateEvent,
)
from model_catalog.validation.orchestrator import (
    CatalogValidator,
    select_strategy,
    validate_catalog,
)
from model_catalog.validation.summary import build_summary, track_field_updates

__all__ = [
    "CancellationToken",
    "StrategyDecision",
    "ValidationMode",
    "ValidationOptions",
    "ValidationResult",
    "ValidationSummary",
    "ValidationUpdateEvent",
    "CatalogValidator",
    "select_strategy",
    "validate_catalog",
    "build_summary",
    "track_field_updates",
]
