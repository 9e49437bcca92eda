"""
Tabular Codec - Exchange format between the catalog and a text-generation call.

Records are sent to the provider as comma-separated rows and the provider is
asked to return the same table. A fixed-shape table is much easier to check
than free-form JSON: we can count rows, match ids and spot dropped columns.

═══════════════════════════════════════════════════════════════════════════════
FORMAT
═══════════════════════════════════════════════════════════════════════════════

  Header row: TABULAR_COLUMNS joined by commas (unquoted).
  Data rows:  every cell quoted, internal quotes doubled.
  Lists:      joined with ";" inside a single cell (tags, providers, urls).
              A literal ";" or "\\" inside an item is backslash-escaped.
  Pricing:    one pricing_* column per tier field; tier values are joined
              with ";" in tier order, blanks included ("1.5;" = two tiers).
  User flags: exchanged so the table covers the whole record, but callers
              must re-apply them from the original record after decoding.

═══════════════════════════════════════════════════════════════════════════════
DECODE RULES
═══════════════════════════════════════════════════════════════════════════════

  • Text before the header ("Here is your CSV:") is ignored.
  • Column order is taken from the reply's own header, so re-ordered or
    dropped columns are tolerated.
  • A quoted cell may contain commas and newlines.
  • A row is skipped if its cell count differs from the header by more than
    MAX_COLUMN_DRIFT, or if it has neither id nor name.
  • A pricing tier is rebuilt whenever any of its cells is non-blank.
  • Missing sub-fields are defaulted: license type -> Custom, hosting flags ->
    True, tags -> [].
  • No header at all -> NoTabularHeaderFound (fatal for the request).
  • Unparseable table (e.g. a cell over the csv field limit) ->
    EmptyValidationResult.

═══════════════════════════════════════════════════════════════════════════════
"""

from __future__ import annotations

import csv
import io
import logging
import math
import re
from typing import Dict, List, Optional, Sequence

from model_catalog.errors import EmptyValidationResult, NoTabularHeaderFound
from model_catalog.records.models import (
    Domain,
    Hosting,
    Indemnity,
    LicenseInfo,
    LicenseType,
    PricingEntry,
    Record,
    coerce_bool,
    coerce_float,
    coerce_int,
    coerce_str,
)

logger = logging.getLogger(__name__)

TABULAR_COLUMNS = (
    "id", "name", "provider", "domain", "source", "url", "repo",
    "license_name", "license_type", "commercial_use", "attribution_required",
    "share_alike", "copyleft", "parameters", "context_window", "description",
    "pricing_flat", "pricing_input", "pricing_output", "pricing_currency",
    "pricing_unit", "pricing_notes", "release_date", "updated_at",
    "downloads", "tags", "indemnity", "data_provenance",
    "license_url", "pricing_model", "pricing_url",
    "weights_available", "api_available", "on_premise_friendly",
    "hosting_providers", "usage_restrictions", "license_notes",
    "is_favorite", "is_nsfw_flagged", "flagged_image_urls",
)

# Items containing LIST_SEPARATOR or a backslash are escaped with a backslash.
LIST_SEPARATOR = ";"
MAX_COLUMN_DRIFT = 3

# pricing_* column -> PricingEntry attribute, in tier order.
PRICING_COLUMNS = {
    "pricing_model": "model",
    "pricing_unit": "unit",
    "pricing_input": "input",
    "pricing_output": "output",
    "pricing_flat": "flat",
    "pricing_currency": "currency",
    "pricing_notes": "notes",
    "pricing_url": "url",
}
_NUMERIC_PRICING = ("input", "output", "flat")

# The header must start with id,name,provider (quoted or not) at a line start.
_HEADER_RE = re.compile(
    r'^[ \t]*"?id"?[ \t]*,[ \t]*"?name"?[ \t]*,[ \t]*"?provider"?',
    re.IGNORECASE | re.MULTILINE,
)


# =============================================================================
# LIST CELLS
# =============================================================================

def join_list(items: Sequence[Optional[str]]) -> str:
    """Join items into one cell, escaping separators inside items."""
    escaped = []
    for item in items:
        text = "" if item is None else str(item)
        escaped.append(text.replace("\\", "\\\\").replace(LIST_SEPARATOR, "\\" + LIST_SEPARATOR))
    return LIST_SEPARATOR.join(escaped)


def split_list(cell: Optional[str]) -> List[str]:
    """
    Split a list cell on unescaped separators, keeping blank items.

    Providers usually write plain "a;b" cells; those split as expected.
    """
    if cell is None:
        return []
    items: List[str] = []
    current: List[str] = []
    chars = iter(cell)
    for ch in chars:
        if ch == "\\":
            current.append(next(chars, ""))
        elif ch == LIST_SEPARATOR:
            items.append("".join(current))
            current = []
        else:
            current.append(ch)
    items.append("".join(current))
    return items


def _list_values(cell: Optional[str]) -> List[str]:
    return [item.strip() for item in split_list(cell) if item.strip()]


# =============================================================================
# ENCODE
# =============================================================================

def _fmt_bool(value: bool) -> str:
    return "true" if value else "false"


def _fmt_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _pricing_cells(pricing: Sequence[PricingEntry]) -> Dict[str, str]:
    cells = {}
    for column, attr in PRICING_COLUMNS.items():
        if attr in _NUMERIC_PRICING:
            values = [_fmt_number(getattr(p, attr)) for p in pricing]
        else:
            values = [getattr(p, attr) for p in pricing]
        cells[column] = join_list(values)
    return cells


def _record_to_row(record: Record) -> List[str]:
    cells = {
        "id": record.id,
        "name": record.name,
        "provider": record.provider,
        "domain": record.domain.value,
        "source": record.source,
        "url": record.url,
        "repo": record.repo,
        "license_name": record.license.name,
        "license_type": record.license.type.value,
        "commercial_use": _fmt_bool(record.license.commercial_use),
        "attribution_required": _fmt_bool(record.license.attribution_required),
        "share_alike": _fmt_bool(record.license.share_alike),
        "copyleft": _fmt_bool(record.license.copyleft),
        "parameters": record.parameters,
        "context_window": record.context_window,
        "description": record.description,
        "release_date": record.release_date,
        "updated_at": record.updated_at,
        "downloads": "" if record.downloads is None else str(record.downloads),
        "tags": join_list(record.tags),
        "indemnity": record.indemnity.value,
        "data_provenance": record.data_provenance,
        "license_url": record.license.url,
        "weights_available": _fmt_bool(record.hosting.weights_available),
        "api_available": _fmt_bool(record.hosting.api_available),
        "on_premise_friendly": _fmt_bool(record.hosting.on_premise_friendly),
        "hosting_providers": join_list(record.hosting.providers),
        "usage_restrictions": join_list(record.usage_restrictions),
        "license_notes": record.license.notes,
        "is_favorite": _fmt_bool(record.is_favorite),
        "is_nsfw_flagged": _fmt_bool(record.is_nsfw_flagged),
        "flagged_image_urls": join_list(record.flagged_image_urls),
    }
    cells.update(_pricing_cells(record.pricing))
    return ["" if cells[col] is None else str(cells[col]) for col in TABULAR_COLUMNS]


def encode_records(records: Sequence[Record]) -> str:
    """Encode records as a header row plus one fully-quoted row per record."""
    buf = io.StringIO()
    buf.write(",".join(TABULAR_COLUMNS))
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        buf.write("\n")
        writer.writerow(_record_to_row(record))
    return buf.getvalue().rstrip("\n")


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Coarse token estimate used only to choose a validation strategy."""
    return math.ceil(len(text) / max(1, chars_per_token))


# =============================================================================
# DECODE
# =============================================================================

def find_header_offset(text: str) -> int:
    """Return the offset of the tabular header in text, or -1."""
    if not text:
        return -1
    match = _HEADER_RE.search(text)
    return match.start() if match else -1


def _decode_pricing(values: Dict[str, str]) -> List[PricingEntry]:
    columns = {
        attr: split_list(values.get(column) or "")
        for column, attr in PRICING_COLUMNS.items()
    }
    tier_count = max(len(cells) for cells in columns.values())

    pricing: List[PricingEntry] = []
    for index in range(tier_count):
        fields = {}
        for attr, cells in columns.items():
            text = coerce_str(cells[index]) if index < len(cells) else None
            fields[attr] = coerce_float(text) if attr in _NUMERIC_PRICING else text
        entry = PricingEntry(**fields)
        if not entry.is_empty():
            pricing.append(entry)
    return pricing


def _row_to_record(values: Dict[str, str], row_number: int) -> Record:
    def get(column: str) -> Optional[str]:
        return coerce_str(values.get(column))

    return Record(
        id=get("id") or get("name") or f"model_{row_number}",
        name=get("name") or get("id") or "Unknown",
        provider=get("provider"),
        domain=Domain.parse(get("domain"), Domain.OTHER),
        description=get("description"),
        tags=_list_values(get("tags")),
        source=get("source") or "",
        url=get("url"),
        repo=get("repo"),
        license=LicenseInfo(
            name=get("license_name") or "",
            type=LicenseType.parse(get("license_type"), LicenseType.CUSTOM),
            commercial_use=coerce_bool(get("commercial_use")),
            attribution_required=coerce_bool(get("attribution_required")),
            share_alike=coerce_bool(get("share_alike")),
            copyleft=coerce_bool(get("copyleft")),
            url=get("license_url"),
            notes=get("license_notes"),
        ),
        hosting=Hosting(
            weights_available=coerce_bool(get("weights_available"), True),
            api_available=coerce_bool(get("api_available"), True),
            on_premise_friendly=coerce_bool(get("on_premise_friendly"), True),
            providers=_list_values(get("hosting_providers")),
        ),
        parameters=get("parameters"),
        context_window=get("context_window"),
        pricing=_decode_pricing(values),
        release_date=get("release_date"),
        updated_at=get("updated_at"),
        downloads=coerce_int(get("downloads")),
        is_favorite=coerce_bool(get("is_favorite")),
        is_nsfw_flagged=coerce_bool(get("is_nsfw_flagged")),
        flagged_image_urls=_list_values(get("flagged_image_urls")),
        indemnity=Indemnity.parse(get("indemnity"), Indemnity.NONE),
        data_provenance=get("data_provenance"),
        usage_restrictions=_list_values(get("usage_restrictions")),
    )


def decode_records(text: str) -> List[Record]:
    """
    Decode a provider reply into records.

    Raises:
        NoTabularHeaderFound: if the reply contains no header row at all.
        EmptyValidationResult: if the table after the header cannot be parsed.
    """
    offset = find_header_offset(text)
    if offset == -1:
        raise NoTabularHeaderFound()

    try:
        rows = list(csv.reader(io.StringIO(text[offset:]), skipinitialspace=True))
    except csv.Error as e:
        logger.warning("Tabular reply could not be parsed: %s", e)
        raise EmptyValidationResult(f"Failed to parse validated models: {e}") from e
    if not rows:
        return []

    header = [cell.strip().strip('"').lower() for cell in rows[0]]
    records: List[Record] = []
    skipped = 0

    for row_number, row in enumerate(rows[1:], start=1):
        if not row or not any(cell.strip() for cell in row):
            continue

        if abs(len(row) - len(header)) > MAX_COLUMN_DRIFT:
            logger.debug(
                "Tabular row %d has %d cells, header has %d; skipping",
                row_number, len(row), len(header),
            )
            skipped += 1
            continue

        values = {column: row[i] for i, column in enumerate(header) if i < len(row)}
        if not coerce_str(values.get("id")) and not coerce_str(values.get("name")):
            logger.debug("Tabular row %d has neither id nor name; skipping", row_number)
            skipped += 1
            continue

        records.append(_row_to_record(values, row_number))

    logger.debug(
        "Decoded %d records from tabular reply (%d rows skipped)", len(records), skipped
    )
    return records


__all__ = [
    "TABULAR_COLUMNS",
    "LIST_SEPARATOR",
    "MAX_COLUMN_DRIFT",
    "PRICING_COLUMNS",
    "encode_records",
    "decode_records",
    "estimate_tokens",
    "find_header_offset",
    "join_list",
    "split_list",
]
