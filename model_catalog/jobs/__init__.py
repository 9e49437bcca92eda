"""
Jobs package - in-memory validation job queue.
"""

from model_catalog.jobs.models import JobStatus, ValidationJob, ValidationSource
from model_catalog.jobs.queue import ValidationQueue

__all__ = [
    "JobStatus",
    "ValidationJob",
    "ValidationSource",
    "ValidationQueue",
]
