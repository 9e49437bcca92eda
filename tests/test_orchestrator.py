"""
Tests for whole-catalog validation: strategy selection, single and batch
runs, loss repair, cancellation and error reporting.

The provider is a MockLLMClient whose replies echo the table it was sent,
optionally edited, so every test exercises the real codec.
"""

import asyncio
import time

from model_catalog.codec import decode_records, encode_records
from model_catalog.enrichment.llm_client import MockLLMClient
from model_catalog.errors import ErrorKind
from model_catalog.records import LicenseInfo
from model_catalog.validation import (
    CatalogValidator,
    ValidationMode,
    ValidationOptions,
    select_strategy,
    validate_catalog,
)

from tests.conftest import make_record


API_CONFIG = {"openai": {"enabled": True, "api_key": "sk-test"}}


def _table(user_prompt):
    body = user_prompt.split(" models):\n", 1)[1]
    return body.split("\n\n**OUTPUT FORMAT:**", 1)[0]


def echo(transform=None, keep=None):
    """Reply callable: decode the sent table, edit rows, encode them again."""
    def reply(system_prompt, user_prompt):
        records = decode_records(_table(user_prompt))
        if keep is not None:
            records = records[:keep]
        for record in records:
            if transform is not None:
                transform(record)
        return "Here is the updated database:\n\n" + encode_records(records)
    return reply


def fill_license(record):
    if not record.license.name:
        record.license.name = "Apache-2.0"


def mark_validated(record):
    record.description = "validated"


def run(records, mock, **option_overrides):
    options = ValidationOptions(api_config=API_CONFIG, pause_ms=0, **option_overrides)
    return asyncio.run(validate_catalog(records, options, client_factory=lambda key, cfg: mock))


# =============================================================================
# Strategy
# =============================================================================


class TestSelectStrategy:

    def test_record_count_boundary(self):
        records = [make_record(str(i)) for i in range(251)]
        assert select_strategy(records[:250]).mode == ValidationMode.SINGLE
        assert select_strategy(records).mode == ValidationMode.BATCH

    def test_token_boundary(self):
        records = [make_record(str(i)) for i in range(3)]
        tokens = select_strategy(records).estimated_tokens

        below_limit = select_strategy(records, token_soft_limit=tokens + 1)
        at_limit = select_strategy(records, token_soft_limit=tokens)
        assert below_limit.mode == ValidationMode.SINGLE
        assert at_limit.mode == ValidationMode.BATCH
        assert at_limit.record_count == 3

    def test_estimate_uses_encoded_length(self):
        records = [make_record("a")]
        coarse = select_strategy(records, chars_per_token=8).estimated_tokens
        fine = select_strategy(records, chars_per_token=2).estimated_tokens
        assert fine > coarse


# =============================================================================
# Single mode
# =============================================================================


class TestSingleMode:

    def test_fills_blanks_and_reports_summary(self):
        records = [
            make_record("a"),
            make_record("b", license=LicenseInfo(name=""), is_favorite=True),
            make_record("c"),
        ]
        mock = MockLLMClient([echo(fill_license)])
        progress = []

        result = run(records, mock, on_progress=lambda cur, total: progress.append((cur, total)))

        assert result.success is True
        assert [r.id for r in result.updated_records] == ["a", "b", "c"]
        assert result.updated_records[1].license.name == "Apache-2.0"
        assert result.updated_records[1].is_favorite is True
        assert result.summary.total_models == 3
        assert result.summary.models_updated == 1
        assert result.summary.fields_updated["license"] == 1
        assert result.summary.updates[0].record_id == "b"
        assert mock.call_count == 1
        assert progress == [(0, 3), (3, 3)]

    def test_input_is_not_mutated(self):
        records = [make_record("a", description=None)]
        run(records, MockLLMClient([echo(mark_validated)]))
        assert records[0].description is None

    def test_lossy_reply_is_repaired(self):
        records = [make_record("a"), make_record("b"), make_record("c")]
        result = run(records, MockLLMClient([echo(mark_validated, keep=2)]))

        assert result.success is True
        assert [r.id for r in result.updated_records] == ["a", "b", "c"]
        assert result.updated_records[0].description == "validated"
        assert result.updated_records[2] == records[2]

    def test_invented_rows_are_dropped(self):
        def add_row(system_prompt, user_prompt):
            rows = decode_records(_table(user_prompt)) + [make_record("invented")]
            return encode_records(rows)

        result = run([make_record("a")], MockLLMClient([add_row]))
        assert [r.id for r in result.updated_records] == ["a"]

    def test_empty_reply_fails(self):
        result = run([make_record("a")], MockLLMClient(["   "]))
        assert result.success is False
        assert result.error_kind == ErrorKind.STRUCTURAL
        assert result.error == "No response from AI provider"
        assert result.updated_records is None

    def test_missing_header_fails(self):
        result = run([make_record("a")], MockLLMClient(["I cannot help with that."]))
        assert result.success is False
        assert result.error_kind == ErrorKind.STRUCTURAL

    def test_header_without_rows_fails(self):
        result = run([make_record("a")], MockLLMClient([encode_records([])]))
        assert result.error_kind == ErrorKind.STRUCTURAL
        assert result.error == "Failed to parse validated models"

    def test_oversized_cell_is_structural(self):
        reply = encode_records([make_record("a", description="x" * 140000)])
        result = run([make_record("a")], MockLLMClient([reply]))
        assert result.success is False
        assert result.error_kind == ErrorKind.STRUCTURAL
        assert result.error.startswith("Failed to parse validated models")

    def test_provider_error_is_classified(self):
        mock = MockLLMClient([RuntimeError("Error code: 429 - Too Many Requests")])
        result = run([make_record("a")], mock)
        assert result.error_kind == ErrorKind.RATE_LIMITED
        assert "429" in result.error


# =============================================================================
# Providers
# =============================================================================


class TestProviderSelection:

    def test_no_provider(self):
        options = ValidationOptions(api_config={"openai": {"enabled": False, "api_key": "sk"}})
        result = asyncio.run(validate_catalog([make_record("a")], options))

        assert result.success is False
        assert result.error_kind == ErrorKind.NO_PROVIDER
        assert result.error == "No API providers configured. Please set up an API provider in Sync settings."

    def test_preferred_provider_is_used(self):
        used = []
        mock = MockLLMClient([echo()])

        def factory(key, cfg):
            used.append(key)
            return mock

        options = ValidationOptions(
            api_config={
                "openai": {"enabled": True, "api_key": "sk"},
                "deepseek": {"enabled": True, "api_key": "ds"},
            },
            preferred_provider="deepseek",
        )
        asyncio.run(validate_catalog([make_record("a")], options, client_factory=factory))
        assert used == ["deepseek"]

    def test_web_search_flag(self):
        options = ValidationOptions(api_config={"perplexity": {"enabled": True, "apiKey": "pk"}})
        mock = MockLLMClient([echo()])
        result = asyncio.run(
            validate_catalog([make_record("a")], options, client_factory=lambda k, c: mock)
        )
        assert result.summary.web_search_used is True


# =============================================================================
# Batch mode
# =============================================================================


class TestBatchMode:

    def test_max_batches_keeps_remainder(self):
        records = [make_record(str(i), description="orig") for i in range(5)]
        mock = MockLLMClient([echo(mark_validated), echo(mark_validated), echo(mark_validated)])

        result = run(records, mock, batch_size=2, max_batches=2, record_count_soft_limit=1)

        assert result.success is True
        assert [r.id for r in result.updated_records] == ["0", "1", "2", "3", "4"]
        assert [r.description for r in result.updated_records] == [
            "validated", "validated", "validated", "validated", "orig",
        ]
        assert mock.call_count == 2
        assert result.summary.models_updated == 4

    def test_every_chunk_is_sent(self):
        records = [make_record(str(i)) for i in range(5)]
        mock = MockLLMClient([echo(), echo(), echo()])
        progress = []

        run(records, mock, batch_size=2, record_count_soft_limit=1,
            on_progress=lambda cur, total: progress.append((cur, total)))

        assert mock.call_count == 3
        assert progress == [(0, 5), (2, 5), (4, 5), (5, 5)]

    def test_chunk_error_keeps_chunk_and_continues(self):
        records = [make_record(str(i), description="orig") for i in range(4)]
        mock = MockLLMClient([
            RuntimeError("HTTP 500 Internal Server Error"),
            echo(mark_validated),
        ])
        result = run(records, mock, batch_size=2, record_count_soft_limit=1)

        assert result.success is True
        assert result.summary.errors == 1
        assert [r.description for r in result.updated_records] == [
            "orig", "orig", "validated", "validated",
        ]

    def test_chunk_without_header_counts_as_error(self):
        records = [make_record(str(i)) for i in range(4)]
        mock = MockLLMClient(["no table here", echo()])
        result = run(records, mock, batch_size=2, record_count_soft_limit=1)

        assert result.summary.errors == 1
        assert len(result.updated_records) == 4

    def test_empty_chunk_reply_keeps_originals(self):
        records = [make_record(str(i), description="orig") for i in range(4)]
        mock = MockLLMClient(["", echo(mark_validated)])
        result = run(records, mock, batch_size=2, record_count_soft_limit=1)

        assert result.summary.errors == 0
        assert [r.description for r in result.updated_records][:2] == ["orig", "orig"]

    def test_lossy_chunk_is_repaired(self):
        records = [make_record(str(i), is_favorite=(i == 2)) for i in range(3)]
        mock = MockLLMClient([echo(mark_validated, keep=1)])
        result = run(records, mock, batch_size=3, record_count_soft_limit=1)

        assert [r.id for r in result.updated_records] == ["0", "1", "2"]
        assert result.updated_records[0].description == "validated"
        assert result.updated_records[1].description == "A test model"
        assert result.updated_records[2].is_favorite is True


# =============================================================================
# Only incomplete
# =============================================================================


class TestOnlyIncomplete:

    def test_only_incomplete_records_are_sent(self):
        records = [
            make_record("a"),
            make_record("b", license=LicenseInfo(name="")),
            make_record("c"),
        ]
        mock = MockLLMClient([echo(fill_license)])
        result = run(records, mock, only_incomplete=True)

        assert '"b"' in mock.last_prompt
        assert '"a"' not in mock.last_prompt
        assert result.summary.total_models == 1
        assert [r.id for r in result.updated_records] == ["a", "b", "c"]
        assert result.updated_records[1].license.name == "Apache-2.0"

    def test_nothing_to_do(self):
        mock = MockLLMClient()
        result = run([make_record("a")], mock, only_incomplete=True)

        assert result.success is True
        assert mock.call_count == 0
        assert [r.id for r in result.updated_records] == ["a"]


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:

    def test_cancel_during_pause_returns_promptly(self):
        records = [make_record(str(i), description="orig") for i in range(5)]
        mock = MockLLMClient([echo(mark_validated)] * 3)
        options = ValidationOptions(
            api_config=API_CONFIG,
            batch_size=2,
            pause_ms=60000,
            cancel_poll_ms=20,
            record_count_soft_limit=1,
        )
        validator = CatalogValidator(options, client_factory=lambda key, cfg: mock)

        async def main():
            task = asyncio.create_task(validator.validate(records))
            await asyncio.sleep(0.2)
            validator.cancel()
            started = time.monotonic()
            result = await task
            return result, time.monotonic() - started

        result, elapsed = asyncio.run(main())

        assert elapsed < 1.0
        assert result.cancelled is True
        assert result.success is False
        assert result.error_kind == ErrorKind.CANCELLED
        assert mock.call_count == 1
        assert [r.id for r in result.updated_records] == ["0", "1", "2", "3", "4"]
        assert [r.description for r in result.updated_records] == [
            "validated", "validated", "orig", "orig", "orig",
        ]
        assert result.summary.errors == 0

    def test_cancel_aborts_in_flight_call(self):
        mock = MockLLMClient([echo()], delay=30)
        validator = CatalogValidator(
            ValidationOptions(api_config=API_CONFIG), client_factory=lambda key, cfg: mock,
        )

        async def main():
            task = asyncio.create_task(validator.validate([make_record("a")]))
            await asyncio.sleep(0.05)
            validator.cancel()
            started = time.monotonic()
            result = await task
            return result, time.monotonic() - started

        result, elapsed = asyncio.run(main())

        assert elapsed < 1.0
        assert result.cancelled is True
        assert [r.id for r in result.updated_records] == ["a"]

    def test_cancelled_before_start(self):
        mock = MockLLMClient([echo()])
        validator = CatalogValidator(
            ValidationOptions(api_config=API_CONFIG, batch_size=1, record_count_soft_limit=0),
            client_factory=lambda key, cfg: mock,
        )
        validator.cancel()

        result = asyncio.run(validator.validate([make_record("a"), make_record("b")]))
        assert result.cancelled is True
        assert mock.call_count == 0
        assert [r.id for r in result.updated_records] == ["a", "b"]
