"""
Catalog Validator - Whole-catalog validation through one or many provider calls.

═══════════════════════════════════════════════════════════════════════════════
ENTRY POINTS
═══════════════════════════════════════════════════════════════════════════════

  await validate_catalog(records, options) -> ValidationResult
      Never raises. Failures come back as success=False with error and
      error_kind; cancellation as cancelled=True.

  select_strategy(records, ...) -> StrategyDecision
      Preview the mode a run would use.

═══════════════════════════════════════════════════════════════════════════════
STRATEGY ("hybrid mode")
═══════════════════════════════════════════════════════════════════════════════

  estimated_tokens = ceil(len(encode_records(records)) / chars_per_token)
  batch  if estimated_tokens >= token_soft_limit or count > record_count_soft_limit
  single otherwise

  Single: one call. No header -> NoTabularHeaderFound, zero rows ->
  EmptyValidationResult; both fail the run.

  Batch: chunks of batch_size, strictly one at a time.
    • cancel checked before each chunk, after each call, during the pause
    • max_batches reached -> remaining chunks appended untouched
    • chunk failure -> original chunk kept, summary.errors += 1, continue
    • pause_ms between chunks, polled every cancel_poll_ms

═══════════════════════════════════════════════════════════════════════════════
GOTCHAS
═══════════════════════════════════════════════════════════════════════════════

  • Every decoded chunk goes through reconcile_chunk(): the output always has
    exactly the ids that were sent and the original user flags, whatever
    the reply contained.
  • On cancel the result still carries every record: validated chunks plus
    the untouched remainder.

═══════════════════════════════════════════════════════════════════════════════
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from model_catalog.codec.tabular import decode_records, encode_records, estimate_tokens
from model_catalog.enrichment.llm_client import LLMClient, get_llm_client
from model_catalog.enrichment.engine import ClientFactory
from model_catalog.enrichment.providers import find_enabled_provider, uses_web_search
from model_catalog.errors import (
    EmptyValidationResult,
    ErrorKind,
    NoProviderConfigured,
    ValidationCancelled,
    classify_exception,
)
from model_catalog.merge.repair import reconcile_chunk
from model_catalog.records.completeness import is_record_incomplete
from model_catalog.records.models import Record
from model_catalog.validation.models import (
    CancellationToken,
    StrategyDecision,
    ValidationMode,
    ValidationOptions,
    ValidationResult,
    ValidationSummary,
)
from model_catalog.validation.prompts import (
    BATCH_SYSTEM_PROMPT,
    SINGLE_SYSTEM_PROMPT,
    create_database_validation_prompt,
)
from model_catalog.validation.summary import build_summary

logger = logging.getLogger(__name__)


def select_strategy(
    records: Sequence[Record],
    token_soft_limit: Optional[int] = None,
    record_count_soft_limit: Optional[int] = None,
    chars_per_token: Optional[int] = None,
) -> StrategyDecision:
    """Choose single or batch mode from the encoded size and record count."""
    defaults = ValidationOptions()
    token_limit = token_soft_limit if token_soft_limit is not None else defaults.token_soft_limit
    count_limit = (
        record_count_soft_limit if record_count_soft_limit is not None
        else defaults.record_count_soft_limit
    )
    cpt = chars_per_token or defaults.chars_per_token

    tokens = estimate_tokens(encode_records(records), cpt)
    batch = tokens >= token_limit or len(records) > count_limit
    return StrategyDecision(
        mode=ValidationMode.BATCH if batch else ValidationMode.SINGLE,
        estimated_tokens=tokens,
        record_count=len(records),
    )


class CatalogValidator:
    """Runs one validation pass over a catalog snapshot."""

    def __init__(
        self,
        options: Optional[ValidationOptions] = None,
        client_factory: ClientFactory = get_llm_client,
    ):
        self.options = options or ValidationOptions()
        self.client_factory = client_factory
        self.cancel_token = self.options.cancel_token or CancellationToken()

    def cancel(self) -> None:
        self.cancel_token.cancel()

    def _progress(self, current: int, total: int) -> None:
        if self.options.on_progress is None:
            return
        try:
            self.options.on_progress(current, total)
        except Exception:
            logger.exception("Progress callback raised")

    # =========================================================================
    # RUN
    # =========================================================================

    async def validate(self, records: Sequence[Record]) -> ValidationResult:
        opts = self.options
        originals = [r.copy() for r in records]

        if opts.only_incomplete:
            positions = [i for i, r in enumerate(originals) if is_record_incomplete(r)]
        else:
            positions = list(range(len(originals)))
        candidates = [originals[i] for i in positions]

        summary = ValidationSummary(total_models=len(candidates))

        if not candidates:
            logger.info("Nothing to validate")
            return ValidationResult(success=True, updated_records=originals, summary=summary)

        validated: Optional[List[Record]] = None
        cancelled = False
        try:
            provider = find_enabled_provider(opts.api_config, opts.preferred_provider)
            if provider is None:
                raise NoProviderConfigured()
            provider_key, provider_config = provider
            summary.web_search_used = uses_web_search(provider_key, provider_config)
            client = self.client_factory(provider_key, provider_config)

            decision = select_strategy(
                candidates,
                opts.token_soft_limit,
                opts.record_count_soft_limit,
                opts.chars_per_token,
            )

            if decision.mode == ValidationMode.BATCH:
                logger.warning(
                    "Hybrid: batch mode, %d models, est ~%d tokens, batch size %d",
                    decision.record_count, decision.estimated_tokens, opts.batch_size,
                )
                validated, cancelled = await self._run_batches(client, candidates, summary)
            else:
                logger.info(
                    "Hybrid: single-request mode, %d models, est ~%d tokens, provider %s",
                    decision.record_count, decision.estimated_tokens, provider_key,
                )
                validated = await self._run_single(client, candidates)

        except ValidationCancelled as exc:
            logger.warning("Validation cancelled by user")
            return ValidationResult(
                success=False,
                updated_records=originals,
                summary=summary,
                error=str(exc),
                error_kind=ErrorKind.CANCELLED,
                cancelled=True,
            )
        except Exception as exc:
            classified = classify_exception(exc)
            logger.error("Validation failed (%s): %s", classified.kind.value, exc)
            return ValidationResult(
                success=False,
                summary=summary,
                error=classified.message,
                error_kind=classified.kind,
            )

        build_summary(candidates, validated, summary)

        final = list(originals)
        for position, record in zip(positions, validated):
            final[position] = record

        if cancelled:
            return ValidationResult(
                success=False,
                updated_records=final,
                summary=summary,
                error=str(ValidationCancelled()),
                error_kind=ErrorKind.CANCELLED,
                cancelled=True,
            )

        logger.info(
            "Validation complete: %d records, %d updated, %d batch errors",
            len(final), summary.models_updated, summary.errors,
        )
        return ValidationResult(success=True, updated_records=final, summary=summary)

    # =========================================================================
    # SINGLE MODE
    # =========================================================================

    async def _run_single(self, client: LLMClient, candidates: List[Record]) -> List[Record]:
        total = len(candidates)
        self._progress(0, total)

        prompt = create_database_validation_prompt(candidates)
        reply = await client.complete(SINGLE_SYSTEM_PROMPT, prompt, cancel_token=self.cancel_token)
        self.cancel_token.raise_if_cancelled()

        if not reply or not reply.strip():
            raise EmptyValidationResult("No response from AI provider")

        decoded = decode_records(reply)
        if not decoded:
            raise EmptyValidationResult()

        reconciled = reconcile_chunk(candidates, decoded)
        logger.info("Validated %d models in a single request", reconciled.matched)
        self._progress(total, total)
        return reconciled.records

    # =========================================================================
    # BATCH MODE
    # =========================================================================

    async def _run_batches(
        self,
        client: LLMClient,
        candidates: List[Record],
        summary: ValidationSummary,
    ) -> Tuple[List[Record], bool]:
        """Returns (records, cancelled). records always covers every candidate."""
        opts = self.options
        token = self.cancel_token
        batch_size = max(1, opts.batch_size)
        chunks = [candidates[i:i + batch_size] for i in range(0, len(candidates), batch_size)]
        total = len(candidates)

        out: List[Record] = []
        processed = 0
        self._progress(0, total)

        def keep_rest(start: int) -> None:
            for chunk in chunks[start:]:
                out.extend(r.copy() for r in chunk)

        for index, chunk in enumerate(chunks):
            batch_num = index + 1

            if token.cancelled:
                logger.warning("Validation cancelled before batch %d", batch_num)
                keep_rest(index)
                return out, True

            if opts.max_batches and index >= opts.max_batches:
                logger.warning("Max batches (%d) reached. Stopping early.", opts.max_batches)
                keep_rest(index)
                break

            logger.info("Processing batch %d/%d (%d models)", batch_num, len(chunks), len(chunk))
            try:
                out.extend(await self._validate_chunk(client, chunk, batch_num))
            except ValidationCancelled:
                logger.warning("Batch %d aborted by user", batch_num)
                keep_rest(index)
                return out, True
            except Exception as exc:
                logger.error("Error processing batch %d: %s", batch_num, exc)
                summary.errors += 1
                out.extend(r.copy() for r in chunk)

            processed += len(chunk)
            self._progress(processed, total)

            if token.cancelled:
                logger.warning("Validation cancelled after batch %d", batch_num)
                keep_rest(index + 1)
                return out, True

            if opts.pause_ms > 0 and batch_num < len(chunks):
                logger.info("Waiting %ds before next batch", round(opts.pause_ms / 1000))
                try:
                    await token.sleep(opts.pause_ms, opts.cancel_poll_ms)
                except ValidationCancelled:
                    logger.warning("Validation cancelled during pause")
                    keep_rest(index + 1)
                    return out, True

        logger.info("Batch processing complete: %d total models", len(out))
        return out, False

    async def _validate_chunk(
        self,
        client: LLMClient,
        chunk: List[Record],
        batch_num: int,
    ) -> List[Record]:
        prompt = create_database_validation_prompt(chunk)
        reply = await client.complete(BATCH_SYSTEM_PROMPT, prompt, cancel_token=self.cancel_token)

        if not reply or not reply.strip():
            logger.warning("No response for batch %d, keeping original models", batch_num)
            return [r.copy() for r in chunk]

        decoded = decode_records(reply)
        if not decoded:
            logger.warning(
                "Batch %d returned 0 models - keeping original %d models", batch_num, len(chunk)
            )
            return [r.copy() for r in chunk]

        if len(decoded) < len(chunk):
            logger.warning(
                "Batch %d lost models! Expected %d, got %d. Merging with originals.",
                batch_num, len(chunk), len(decoded),
            )

        reconciled = reconcile_chunk(chunk, decoded)
        logger.info("Batch %d processed: %d models validated", batch_num, reconciled.matched)
        return reconciled.records


async def validate_catalog(
    records: Sequence[Record],
    options: Optional[ValidationOptions] = None,
    client_factory: ClientFactory = get_llm_client,
) -> ValidationResult:
    """Validate a catalog snapshot. See CatalogValidator."""
    return await CatalogValidator(options, client_factory).validate(records)


__all__ = [
    "CatalogValidator",
    "select_strategy",
    "validate_catalog",
]
