"""
Runtime defaults for catalog validation.

Values are read once from the environment at import time. They are only
defaults: the queue and the orchestrator take explicit parameters per run,
so changing the environment after a run has started never affects it.
"""

from __future__ import annotations

import logging
import os
from typing import Optional


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Validation job queue
VALIDATION_CONCURRENCY = int(os.getenv("CATALOG_VALIDATION_CONCURRENCY", "2"))
VALIDATION_MAX_ATTEMPTS = int(os.getenv("CATALOG_VALIDATION_MAX_ATTEMPTS", "3"))

# Whole-catalog validation (hybrid single/batch strategy)
BATCH_SIZE = int(os.getenv("CATALOG_VALIDATION_BATCH_SIZE", "50"))
BATCH_PAUSE_MS = int(os.getenv("CATALOG_VALIDATION_PAUSE_MS", "30000"))
TOKEN_SOFT_LIMIT = int(os.getenv("CATALOG_VALIDATION_TOKEN_SOFT_LIMIT", "180000"))
RECORD_COUNT_SOFT_LIMIT = int(os.getenv("CATALOG_VALIDATION_RECORD_SOFT_LIMIT", "250"))
CHARS_PER_TOKEN = int(os.getenv("CATALOG_VALIDATION_CHARS_PER_TOKEN", "4"))
CANCEL_POLL_INTERVAL_MS = int(os.getenv("CATALOG_VALIDATION_CANCEL_POLL_MS", "100"))

# Merge engine
FUZZY_MATCHING_ENABLED = _env_bool("CATALOG_FUZZY_MATCHING")

# Provider layer
USE_MOCK_LLM = _env_bool("USE_MOCK_LLM")

LOG_LEVEL = os.getenv("CATALOG_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts and workers embedding the core."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )


__all__ = [
    "VALIDATION_CONCURRENCY",
    "VALIDATION_MAX_ATTEMPTS",
    "BATCH_SIZE",
    "BATCH_PAUSE_MS",
    "TOKEN_SOFT_LIMIT",
    "RECORD_COUNT_SOFT_LIMIT",
    "CHARS_PER_TOKEN",
    "CANCEL_POLL_INTERVAL_MS",
    "FUZZY_MATCHING_ENABLED",
    "USE_MOCK_LLM",
    "LOG_LEVEL",
    "configure_logging",
]
