"""
Job Models - Data models for the in-memory validation job queue.

Jobs live for the lifetime of the process only; nothing here is persisted.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from model_catalog import config
from model_catalog.records.models import Record


class ValidationSource(str, Enum):
    """Hints passed to the enrichment call about where to look."""
    API = "api"
    WEBSEARCH = "websearch"
    SCRAPING = "scraping"


class JobStatus(str, Enum):
    """Job status states."""
    PENDING = "pending"        # Waiting for a free slot (also after a retry)
    PROCESSING = "processing"  # Enrichment call in flight
    COMPLETED = "completed"    # Terminal
    FAILED = "failed"          # Terminal, retries exhausted

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:12]}"


@dataclass
class ValidationJob:
    """One record queued for enrichment."""
    id: str
    record: Record
    sources: List[ValidationSource] = field(default_factory=list)
    status: JobStatus = JobStatus.PENDING

    # Retries
    attempts: int = 0
    max_attempts: int = config.VALIDATION_MAX_ATTEMPTS

    # Results
    error: Optional[str] = None
    result: Optional[Record] = None

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict for status views."""
        return {
            "id": self.id,
            "record": self.record.to_dict(),
            "sources": [s.value for s in self.sources],
            "status": self.status.value,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "error": self.error,
            "result": self.result.to_dict() if self.result else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


__all__ = [
    "ValidationSource",
    "JobStatus",
    "ValidationJob",
    "new_job_id",
]
