"""
Validation Models - Options, results and cancellation for catalog validation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar

from model_catalog import config
from model_catalog.enrichment.providers import ApiConfig
from model_catalog.errors import ErrorKind, ValidationCancelled
from model_catalog.records.models import Record

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]

# Per-field counters kept in ValidationSummary.fields_updated
TRACKED_FIELDS = (
    "description",
    "parameters",
    "context_window",
    "license",
    "release_date",
    "tags",
    "pricing",
    "other",
)


# =============================================================================
# CANCELLATION
# =============================================================================

class CancellationToken:
    """
    Cooperative cancellation shared by a run and its provider calls.

    cancel() sets the flag and cancels every call started through run(), so
    an in-flight request is aborted rather than awaited. Must be used from
    the event loop thread.
    """

    def __init__(self):
        self._cancelled = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        logger.info("Cancellation requested (%d calls in flight)", len(self._tasks))
        for task in list(self._tasks):
            task.cancel()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ValidationCancelled()

    async def run(self, coro: Awaitable[T]) -> T:
        """Await coro, aborting it with ValidationCancelled on cancel()."""
        if self._cancelled:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise ValidationCancelled()

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise ValidationCancelled() from None
            raise
        finally:
            self._tasks.discard(task)

    async def sleep(self, ms: int, poll_ms: Optional[int] = None) -> None:
        """
        Sleep for ms, checking the flag every poll_ms.

        Raises:
            ValidationCancelled: as soon as cancellation is seen
        """
        poll = max(1, poll_ms or config.CANCEL_POLL_INTERVAL_MS) / 1000.0
        deadline = time.monotonic() + ms / 1000.0
        while True:
            self.raise_if_cancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            await asyncio.sleep(min(poll, remaining))


# =============================================================================
# OPTIONS / STRATEGY
# =============================================================================

class ValidationMode(str, Enum):
    SINGLE = "single"
    BATCH = "batch"


@dataclass
class StrategyDecision:
    """Which mode a run would use, and why."""
    mode: ValidationMode
    estimated_tokens: int
    record_count: int


@dataclass
class ValidationOptions:
    """Per-run settings for validate_catalog()."""
    batch_size: int = config.BATCH_SIZE
    pause_ms: int = config.BATCH_PAUSE_MS
    max_batches: Optional[int] = None
    api_config: Optional[ApiConfig] = None
    preferred_provider: Optional[str] = None
    token_soft_limit: int = config.TOKEN_SOFT_LIMIT
    record_count_soft_limit: int = config.RECORD_COUNT_SOFT_LIMIT
    chars_per_token: int = config.CHARS_PER_TOKEN
    cancel_poll_ms: int = config.CANCEL_POLL_INTERVAL_MS
    only_incomplete: bool = False
    on_progress: Optional[ProgressCallback] = None
    cancel_token: Optional[CancellationToken] = None


# =============================================================================
# SUMMARY / RESULT
# =============================================================================

@dataclass
class ValidationUpdateEvent:
    """One field changed by validation."""
    record_id: str
    record_name: str
    field: str
    old_value: Any
    new_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "record_name": self.record_name,
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }


def _empty_field_counts() -> Dict[str, int]:
    return {name: 0 for name in TRACKED_FIELDS}


@dataclass
class ValidationSummary:
    """What a validation run actually changed."""
    total_models: int = 0
    models_updated: int = 0
    fields_updated: Dict[str, int] = field(default_factory=_empty_field_counts)
    updates: List[ValidationUpdateEvent] = field(default_factory=list)
    errors: int = 0
    web_search_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_models": self.total_models,
            "models_updated": self.models_updated,
            "fields_updated": dict(self.fields_updated),
            "updates": [u.to_dict() for u in self.updates],
            "errors": self.errors,
            "web_search_used": self.web_search_used,
        }


@dataclass
class ValidationResult:
    """
    Outcome of validate_catalog(). Never raised, always returned.

    updated_records is set whenever the run produced data, including partial
    batch runs and cancelled runs.
    """
    success: bool
    updated_records: Optional[List[Record]] = None
    summary: Optional[ValidationSummary] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    cancelled: bool = False


__all__ = [
    "TRACKED_FIELDS",
    "CancellationToken",
    "ValidationMode",
    "StrategyDecision",
    "ValidationOptions",
    "ValidationUpdateEvent",
    "ValidationSummary",
    "ValidationResult",
]
