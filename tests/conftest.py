"""Shared fixtures and record factories."""

import pytest

from model_catalog.enrichment.providers import ProviderConfig
from model_catalog.records.models import (
    Domain,
    Hosting,
    LicenseInfo,
    LicenseType,
    Record,
)


def make_record(record_id="m1", **overrides):
    """Build a reasonably complete record; override any field by keyword."""
    fields = dict(
        id=record_id,
        name=f"Model {record_id}",
        provider="Acme AI",
        domain=Domain.LLM,
        description="A test model",
        tags=["test"],
        source="Import",
        url=f"https://example.com/{record_id}",
        license=LicenseInfo(name="MIT", type=LicenseType.OSI, commercial_use=True),
        hosting=Hosting(weights_available=True, api_available=False, on_premise_friendly=True),
        parameters="7B",
        context_window="8K",
        release_date="2024-01-15",
    )
    fields.update(overrides)
    return Record(**fields)


@pytest.fixture
def api_config():
    return {"openai": ProviderConfig(enabled=True, api_key="sk-test")}
