"""Tests for the tabular exchange format."""

import pytest

from model_catalog.codec import (
    TABULAR_COLUMNS,
    decode_records,
    encode_records,
    estimate_tokens,
    find_header_offset,
    split_list,
)
from model_catalog.errors import EmptyValidationResult, NoTabularHeaderFound
from model_catalog.records import Domain, Hosting, LicenseInfo, LicenseType, PricingEntry

from tests.conftest import make_record


HEADER = ",".join(TABULAR_COLUMNS)


class TestEncode:

    def test_header_then_quoted_rows(self):
        text = encode_records([make_record("a")])
        lines = text.split("\n")
        assert lines[0] == HEADER
        assert lines[1].startswith('"a","Model a","Acme AI","LLM"')

    def test_user_flags_and_license_notes_are_exchanged(self):
        record = make_record("a", is_favorite=True, license=LicenseInfo(name="MIT", notes="see file"))
        text = encode_records([record])
        assert "is_favorite" in text.split("\n")[0]
        assert '"see file","true","false",""' in text

    def test_every_pricing_tier_is_encoded(self):
        record = make_record(pricing=[
            PricingEntry(model="API", input=1.5, output=2, currency="USD"),
            PricingEntry(model="Pro", flat=20, unit="month"),
        ])
        text = encode_records([record])
        assert '"API;Pro"' in text
        assert '";20","1.5;","2;","USD;"' in text

    def test_list_separators_inside_items_are_escaped(self):
        text = encode_records([make_record("a", tags=["a;b", "c\\d"])])
        assert '"a\\;b;c\\\\d"' in text

    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("") == 0


class TestRoundTrip:

    def test_commas_quotes_and_newlines_survive(self):
        records = [
            make_record(
                "r1",
                name='The "Best", Model',
                description="Line one,\nline two with \"quotes\"",
                tags=["chat", "multi, lingual"],
            ),
            make_record("r2", provider="Org, Inc."),
        ]
        decoded = decode_records(encode_records(records))

        assert [r.id for r in decoded] == ["r1", "r2"]
        assert decoded[0].name == 'The "Best", Model'
        assert decoded[0].description == "Line one,\nline two with \"quotes\""
        assert decoded[0].tags == ["chat", "multi, lingual"]
        assert decoded[1].provider == "Org, Inc."

    def test_typed_fields_survive(self):
        record = make_record(
            "r1",
            downloads=1200,
            pricing=[PricingEntry(input=0.5, output=1.5, currency="USD", unit="1M tokens")],
        )
        decoded = decode_records(encode_records([record]))[0]

        assert decoded.domain == Domain.LLM
        assert decoded.license.name == "MIT"
        assert decoded.license.type == LicenseType.OSI
        assert decoded.license.commercial_use is True
        assert decoded.hosting.api_available is False
        assert decoded.downloads == 1200
        assert decoded.pricing[0].input == 0.5
        assert decoded.pricing[0].unit == "1M tokens"

    def test_complete_record_is_unchanged(self):
        record = make_record(
            "r1",
            tags=["chat", "code"],
            downloads=42,
            repo="https://hf.co/r1",
            hosting=Hosting(weights_available=True, providers=["Together", "Groq"]),
            usage_restrictions=["no military use"],
        )
        assert decode_records(encode_records([record])) == [record]

    def test_all_pricing_tiers_survive(self):
        tiers = [
            PricingEntry(model="API", input=1.0, output=3.0, currency="USD", unit="1M tokens"),
            PricingEntry(model="Batch", input=0.5, output=1.5, currency="USD", unit="1M tokens"),
        ]
        decoded = decode_records(encode_records([make_record(pricing=tiers)]))[0]
        assert decoded.pricing == tiers

    def test_tier_without_prices_survives(self):
        tier = PricingEntry(model="enterprise", unit="seat", notes="contact sales")
        decoded = decode_records(encode_records([make_record(pricing=[tier])]))[0]
        assert decoded.pricing == [tier]

    def test_user_flags_and_license_notes_survive(self):
        record = make_record(
            is_favorite=True,
            flagged_image_urls=["x"],
            license=LicenseInfo(name="MIT", type=LicenseType.OSI, notes="see file"),
        )
        decoded = decode_records(encode_records([record]))[0]
        assert decoded.is_favorite is True
        assert decoded.flagged_image_urls == ["x"]
        assert decoded.license.notes == "see file"

    def test_separator_inside_list_item_survives(self):
        decoded = decode_records(encode_records([make_record(tags=["a;b", "c"])]))[0]
        assert decoded.tags == ["a;b", "c"]


class TestDecode:

    def test_preamble_before_header_is_ignored(self):
        reply = "Sure! Here is the CSV:\n\n" + encode_records([make_record("a")])
        assert [r.id for r in decode_records(reply)] == ["a"]

    def test_quoted_header_is_found(self):
        text = '"id","name","provider"\n"a","A","Acme"'
        assert find_header_offset(text) == 0
        assert decode_records(text)[0].provider == "Acme"

    def test_missing_header_raises(self):
        with pytest.raises(NoTabularHeaderFound):
            decode_records("I could not complete this request.")

    def test_header_must_lead_with_identity_columns(self):
        text = 'name,id,provider,license_name\n"Beta","b","Org","Apache-2.0"'
        with pytest.raises(NoTabularHeaderFound):
            decode_records(text)

    def test_reordered_and_dropped_columns(self):
        text = 'id,name,provider,tags,license_name\n"b","Beta","Org","x;y","Apache-2.0"'
        record = decode_records(text)[0]
        assert record.license.name == "Apache-2.0"
        assert record.tags == ["x", "y"]
        assert record.description is None

    def test_missing_sub_fields_are_defaulted(self):
        record = decode_records('id,name,provider\n"a","A",""')[0]
        assert record.provider is None
        assert record.license.type == LicenseType.CUSTOM
        assert record.hosting.weights_available is True
        assert record.hosting.api_available is True
        assert record.hosting.on_premise_friendly is True
        assert record.tags == []
        assert record.domain == Domain.OTHER

    def test_row_with_large_column_drift_is_skipped(self):
        text = (
            "id,name,provider,domain,source,url,repo\n"
            '"a","A","Org","LLM","","",""\n'
            '"b","B"\n'
            '"c","C","Org","LLM","",""\n'
        )
        assert [r.id for r in decode_records(text)] == ["a", "c"]

    def test_row_without_identity_is_skipped(self):
        text = 'id,name,provider\n"","","Org"\n"x","","Org"'
        records = decode_records(text)
        assert len(records) == 1
        assert records[0].id == "x"
        assert records[0].name == "x"

    def test_header_only_decodes_to_nothing(self):
        assert decode_records(HEADER) == []

    def test_plain_separators_from_providers_split(self):
        record = decode_records('id,name,provider,hosting_providers\n"a","A","Org","x;y"')[0]
        assert record.hosting.providers == ["x", "y"]
        assert split_list("a\\;b;c\\\\") == ["a;b", "c\\"]

    def test_legacy_single_tier_columns(self):
        text = 'id,name,provider,pricing_input,pricing_output,pricing_currency\n"a","A","Org","1","2","USD"'
        assert decode_records(text)[0].pricing == [PricingEntry(input=1.0, output=2.0, currency="USD")]

    def test_oversized_field_raises_empty_result(self):
        text = encode_records([make_record("a", description="x" * 140000)])
        with pytest.raises(EmptyValidationResult, match="Failed to parse validated models"):
            decode_records(text)
