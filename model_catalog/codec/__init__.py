"""
Codec Module - Tabular encode/decode of records for provider exchange.
"""

from model_catalog.codec.tabular import (
    LIST_SEPARATOR,
    MAX_COLUMN_DRIFT,
    PRICING_COLUMNS,
    TABULAR_COLUMNS,
    decode_records,
    encode_records,
    estimate_tokens,
    find_header_offset,
    join_list,
    split_list,
)

__all__ = [
    "LIST_SEPARATOR",
    "MAX_COLUMN_DRIFT",
    "PRICING_COLUMNS",
    "TABULAR_COLUMNS",
    "decode_records",
    "encode_records",
    "estimate_tokens",
    "find_header_offset",
    "join_list",
    "split_list",
]
