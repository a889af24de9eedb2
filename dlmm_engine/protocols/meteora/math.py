"""
Meteora DLMM Math Utilities

Provides bin/price conversion, share-to-amount allocation and bin array
(chunk) indexing. Prices use a local Decimal context, never float.
"""

import struct
from decimal import Decimal, Context, ROUND_HALF_EVEN, ROUND_HALF_UP, localcontext
from typing import List, Tuple, Union

from solders.pubkey import Pubkey

from ...errors import ValidationError
from .constants import (
    BASIS_POINT_MAX,
    BIN_ARRAY_SEED,
    DLMM_PROGRAM_ID,
    MAX_BIN_ID,
    MAX_BIN_PER_ARRAY,
    MIN_BIN_ID,
)


# Significant digits for bin price arithmetic
PRICE_PRECISION = 50


def _price_context() -> Context:
    return Context(prec=PRICE_PRECISION, rounding=ROUND_HALF_EVEN, Emin=-999999, Emax=999999)


def _check_bin_step(bin_step: int) -> None:
    if not isinstance(bin_step, int) or isinstance(bin_step, bool) or bin_step <= 0:
        raise ValidationError.invalid("bin_step", bin_step, "must be a positive integer")


def price_at_bin(bin_id: int, bin_step: int) -> Decimal:
    """
    Raw price of a bin

    Formula: price = (1 + bin_step/10000)^bin_id

    Defined for negative bin ids (price < 1). Computed with 50 significant
    digits so rounding does not compound across thousands of bins.

    Args:
        bin_id: Bin ID
        bin_step: Bin step in basis points

    Returns:
        Price of token X in token Y, in raw (smallest-unit) terms
    """
    _check_bin_step(bin_step)
    with localcontext(_price_context()):
        base = Decimal(1) + Decimal(bin_step) / Decimal(BASIS_POINT_MAX)
        return +(base ** bin_id)


def ui_price(raw_price: Decimal, decimals_x: int, decimals_y: int) -> Decimal:
    """
    Convert a raw bin price to a UI price

    Formula: ui_price = raw_price * 10^(decimals_x - decimals_y)
    """
    return raw_price.scaleb(decimals_x - decimals_y)


def bin_id_to_price(
    bin_id: int,
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
) -> Decimal:
    """
    Convert bin ID to UI price

    Formula: price = (1 + bin_step/10000)^bin_id * 10^(decimals_x - decimals_y)

    Args:
        bin_id: Bin ID
        bin_step: Bin step in basis points
        decimals_x: Token X decimals
        decimals_y: Token Y decimals

    Returns:
        Price of token X in terms of token Y
    """
    return ui_price(price_at_bin(bin_id, bin_step), decimals_x, decimals_y)


def price_to_bin_id(
    price: Union[Decimal, int, str],
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
) -> int:
    """
    Convert UI price to the nearest bin ID

    Formula: bin_id = ln(price / 10^(decimals_x - decimals_y)) / ln(1 + bin_step/10000)

    Args:
        price: UI price of token X in terms of token Y (must be > 0)
        bin_step: Bin step in basis points
        decimals_x: Token X decimals
        decimals_y: Token Y decimals

    Returns:
        Bin ID (rounded half up, clamped to the valid bin range)
    """
    _check_bin_step(bin_step)
    if not isinstance(price, Decimal):
        price = Decimal(str(price))
    if not price.is_finite() or price <= 0:
        raise ValidationError.invalid("current_price", price, "must be > 0")

    with localcontext(_price_context()):
        raw_price = price.scaleb(decimals_y - decimals_x)
        base = Decimal(1) + Decimal(bin_step) / Decimal(BASIS_POINT_MAX)
        exact = raw_price.ln() / base.ln()
        bin_id = int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    return max(MIN_BIN_ID, min(MAX_BIN_ID, bin_id))


def amounts_from_shares(
    reserve_x: int,
    reserve_y: int,
    total_shares: int,
    my_shares: int,
) -> Tuple[int, int]:
    """
    Allocate a bin's reserves to a share holder

    Formula: amount = floor(reserve * my_shares / total_shares)

    Integer arithmetic throughout; Python ints do not overflow, so u128
    shares times u64 reserves stay exact.

    Args:
        reserve_x: Bin reserve of token X (raw)
        reserve_y: Bin reserve of token Y (raw)
        total_shares: Bin liquidity supply
        my_shares: Position's share of the bin

    Returns:
        (amount_x, amount_y), (0, 0) when the bin has no shares
    """
    if total_shares <= 0 or my_shares <= 0:
        return 0, 0
    return (
        reserve_x * my_shares // total_shares,
        reserve_y * my_shares // total_shares,
    )


def bin_id_to_chunk_index(bin_id: int, chunk_size: int = MAX_BIN_PER_ARRAY) -> int:
    """
    Calculate bin array index for a given bin ID

    Bin arrays contain 70 consecutive bins:
    - Array 0: bins [0, 69]
    - Array 1: bins [70, 139]
    - Array -1: bins [-70, -1]
    - Array -2: bins [-140, -71]

    Python's floor division rounds toward negative infinity, which is the
    required behavior for negative bin ids.
    """
    return bin_id // chunk_size


def chunk_bounds(index: int, chunk_size: int = MAX_BIN_PER_ARRAY) -> Tuple[int, int]:
    """
    Get lower and upper bin IDs for a bin array

    Returns:
        (lower_bin_id, upper_bin_id), both inclusive
    """
    lower_bin_id = index * chunk_size
    upper_bin_id = lower_bin_id + chunk_size - 1
    return lower_bin_id, upper_bin_id


def bin_index_in_chunk(bin_id: int, chunk_size: int = MAX_BIN_PER_ARRAY) -> int:
    """Offset of a bin inside its bin array, always in [0, chunk_size)"""
    return bin_id - bin_id_to_chunk_index(bin_id, chunk_size) * chunk_size


def chunk_indices_for_range(
    lower_bin_id: int,
    upper_bin_id: int,
    chunk_size: int = MAX_BIN_PER_ARRAY,
) -> List[int]:
    """All bin array indices covering [lower_bin_id, upper_bin_id], ascending"""
    if lower_bin_id > upper_bin_id:
        return []
    first = bin_id_to_chunk_index(lower_bin_id, chunk_size)
    last = bin_id_to_chunk_index(upper_bin_id, chunk_size)
    return list(range(first, last + 1))


def derive_bin_array_address(
    lb_pair: str,
    index: int,
    program_id: str = DLMM_PROGRAM_ID,
) -> str:
    """
    Derive the BinArray PDA

    Seeds: ["bin_array", lb_pair, index as i64 little-endian]
    """
    pda, _ = Pubkey.find_program_address(
        [BIN_ARRAY_SEED, bytes(Pubkey.from_string(lb_pair)), struct.pack("<q", index)],
        Pubkey.from_string(program_id),
    )
    return str(pda)
