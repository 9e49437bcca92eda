"""
Tests for folding provider output back onto the records that were sent.

Provider replies are untrusted: rows go missing, values come back blank and
ids get invented. None of that may change the set of ids or user flags.
"""

from model_catalog.merge.repair import (
    fold_non_empty,
    merge_enriched,
    overlay_validated,
    reconcile_chunk,
)
from model_catalog.records import Domain, Hosting, LicenseInfo, LicenseType, PricingEntry, Record

from tests.conftest import make_record


# =============================================================================
# reconcile_chunk
# =============================================================================


class TestReconcileChunk:

    def test_lossy_reply_keeps_every_original(self):
        originals = [make_record("a"), make_record("b"), make_record("c")]
        decoded = [
            Record(id="a", description="Better description"),
            Record(id="b", parameters="13B"),
        ]
        result = reconcile_chunk(originals, decoded)

        assert [r.id for r in result.records] == ["a", "b", "c"]
        assert result.loss_detected is True
        assert result.matched == 2
        assert result.missing == 1
        assert result.records[0].description == "Better description"
        assert result.records[0].license.name == "MIT"
        assert result.records[1].parameters == "13B"
        assert result.records[2] == originals[2]

    def test_lossy_reply_only_touches_enrichable_fields(self):
        originals = [make_record("a"), make_record("b")]
        decoded = [Record(id="a", url="https://elsewhere", domain=Domain.TTS)]
        result = reconcile_chunk(originals, decoded)

        assert result.records[0].url == "https://example.com/a"
        assert result.records[0].domain == Domain.LLM

    def test_unknown_ids_are_dropped(self):
        originals = [make_record("a"), make_record("b")]
        decoded = [make_record("a"), make_record("b"), make_record("invented")]
        result = reconcile_chunk(originals, decoded)

        assert [r.id for r in result.records] == ["a", "b"]
        assert result.unexpected == 1
        assert result.loss_detected is False

    def test_empty_reply_returns_copies(self):
        originals = [make_record("a")]
        result = reconcile_chunk(originals, [])
        assert result.records == originals
        assert result.records[0] is not originals[0]
        assert result.missing == 1

    def test_user_flags_are_immune(self):
        originals = [make_record("a", is_favorite=True, is_nsfw_flagged=True, flagged_image_urls=["x"])]
        decoded = [make_record("a", description="Changed")]
        record = reconcile_chunk(originals, decoded).records[0]

        assert record.description == "Changed"
        assert record.is_favorite is True
        assert record.is_nsfw_flagged is True
        assert record.flagged_image_urls == ["x"]

    def test_originals_are_not_mutated(self):
        originals = [make_record("a")]
        reconcile_chunk(originals, [make_record("a", description="Changed")])
        assert originals[0].description == "A test model"


# =============================================================================
# overlay_validated / fold_non_empty
# =============================================================================


class TestOverlayValidated:

    def test_blank_cells_keep_original(self):
        original = make_record("a")
        validated = original.copy()
        validated.description = None
        validated.parameters = "Unknown"

        merged = overlay_validated(original, validated)
        assert merged.description == "A test model"
        assert merged.parameters == "7B"

    def test_booleans_come_from_table(self):
        original = make_record("a")
        validated = original.copy()
        validated.license.commercial_use = False
        validated.hosting.weights_available = False

        merged = overlay_validated(original, validated)
        assert merged.license.commercial_use is False
        assert merged.hosting.weights_available is False

    def test_license_type_kept_without_name(self):
        original = make_record("a")
        validated = Record(id="a", license=LicenseInfo(name="", type=LicenseType.CUSTOM))
        merged = overlay_validated(original, validated)
        assert merged.license.name == "MIT"
        assert merged.license.type == LicenseType.OSI

    def test_extra_pricing_tiers_survive(self):
        original = make_record("a", pricing=[
            PricingEntry(model="API", input=1.0),
            PricingEntry(model="Enterprise", flat=500),
        ])
        validated = Record(id="a", pricing=[PricingEntry(model="API", input=0.8)])

        merged = overlay_validated(original, validated)
        assert [p.model for p in merged.pricing] == ["API", "Enterprise"]
        assert merged.pricing[0].input == 0.8

    def test_every_validated_tier_is_applied(self):
        original = make_record("a", pricing=[
            PricingEntry(model="API", input=1.0),
            PricingEntry(model="Batch", input=0.5),
        ])
        validated = Record(id="a", pricing=[
            PricingEntry(model="API", input=0.8),
            PricingEntry(model="batch", input=0.4),
        ])

        merged = overlay_validated(original, validated)
        assert [(p.model, p.input) for p in merged.pricing] == [("API", 0.8), ("batch", 0.4)]

    def test_license_notes_from_table(self):
        original = make_record("a", license=LicenseInfo(name="MIT", notes="old"))
        updated = overlay_validated(original, Record(id="a", license=LicenseInfo(name="MIT", notes="new")))
        kept = overlay_validated(original, Record(id="a", license=LicenseInfo(name="MIT")))
        assert updated.license.notes == "new"
        assert kept.license.notes == "old"

    def test_fold_non_empty_ignores_placeholders(self):
        original = make_record("a", provider="Acme AI")
        merged = fold_non_empty(original, Record(id="a", provider="Unknown", context_window="128K"))
        assert merged.provider == "Acme AI"
        assert merged.context_window == "128K"


# =============================================================================
# merge_enriched
# =============================================================================


class TestMergeEnriched:

    def test_fills_missing_license(self):
        original = make_record("a", license=LicenseInfo(name=""), is_favorite=True)
        enriched = Record(
            id="ignored",
            license=LicenseInfo(name="Apache-2.0", type=LicenseType.OSI, commercial_use=True),
        )
        merged = merge_enriched(original, enriched)

        assert merged.id == "a"
        assert merged.license.name == "Apache-2.0"
        assert merged.license.type == LicenseType.OSI
        assert merged.license.commercial_use is True
        assert merged.is_favorite is True

    def test_sparse_reply_does_not_blank_fields(self):
        original = make_record("a")
        merged = merge_enriched(original, Record(id="a", release_date="2024-02-01"))

        assert merged.description == "A test model"
        assert merged.domain == Domain.LLM
        assert merged.license.name == "MIT"
        assert merged.hosting.weights_available is True
        assert merged.release_date == "2024-02-01"

    def test_tags_and_providers_union(self):
        original = make_record("a", tags=["chat"], hosting=Hosting(providers=["Together"]))
        enriched = Record(id="a", tags=["Chat", "code"], hosting=Hosting(providers=["Groq"]))
        merged = merge_enriched(original, enriched)

        assert merged.tags == ["chat", "code"]
        assert merged.hosting.providers == ["Together", "Groq"]
