"""
Meteora DLMM protocol support

Provides:
- Account layouts (decode/encode)
- Bin math
- Account loader (chain reads)
- Pool directory (REST)
"""

from .constants import DLMM_PROGRAM_ID, MAX_BIN_PER_ARRAY, MIN_BIN_ID, MAX_BIN_ID
from .layouts import AccountKind, decode, encode
from .math import (
    price_at_bin,
    ui_price,
    bin_id_to_price,
    price_to_bin_id,
    amounts_from_shares,
    bin_id_to_chunk_index,
    chunk_bounds,
    bin_index_in_chunk,
    chunk_indices_for_range,
    derive_bin_array_address,
)
from .adapter import MeteoraAccountLoader, BinArrayFetch
from .api import MeteoraPoolDirectory

__all__ = [
    "DLMM_PROGRAM_ID",
    "MAX_BIN_PER_ARRAY",
    "MIN_BIN_ID",
    "MAX_BIN_ID",
    "AccountKind",
    "decode",
    "encode",
    "price_at_bin",
    "ui_price",
    "bin_id_to_price",
    "price_to_bin_id",
    "amounts_from_shares",
    "bin_id_to_chunk_index",
    "chunk_bounds",
    "bin_index_in_chunk",
    "chunk_indices_for_range",
    "derive_bin_array_address",
    "MeteoraAccountLoader",
    "BinArrayFetch",
    "MeteoraPoolDirectory",
]
