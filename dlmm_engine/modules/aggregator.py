"""
Position Aggregator

Walks a position's bin range in ascending order and combines per-bin
liquidity, pending fees and pending rewards into raw totals.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..types import AggregateResult, BinArrayState, LbPairState, PositionState
from ..errors import PartialDataWarning, WarningKind
from ..protocols.meteora.constants import MAX_BIN_PER_ARRAY
from ..protocols.meteora.math import (
    amounts_from_shares,
    bin_id_to_chunk_index,
    bin_index_in_chunk,
    chunk_bounds,
)

logger = logging.getLogger(__name__)


def index_chunks(
    position: PositionState,
    bin_arrays: Iterable[BinArrayState],
    chunk_size: int = MAX_BIN_PER_ARRAY,
) -> Dict[int, BinArrayState]:
    """
    Key chunks by index, dropping any that cannot serve this position

    A chunk of another pair, or with the wrong number of bins, is dropped
    and so counts as missing.
    """
    chunks: Dict[int, BinArrayState] = {}
    for chunk in bin_arrays:
        if chunk.lb_pair != position.lb_pair:
            logger.warning(
                f"Ignoring bin array {chunk.index} of pair {chunk.lb_pair[:8]}... "
                f"for position on {position.lb_pair[:8]}..."
            )
            continue
        if chunk.chunk_size != chunk_size:
            logger.warning(f"Ignoring bin array {chunk.index}: {chunk.chunk_size} bins, expected {chunk_size}")
            continue
        chunks[chunk.index] = chunk
    return chunks


def aggregate_position(
    position: PositionState,
    pair: LbPairState,
    bin_arrays: Iterable[BinArrayState],
    chunk_size: int = MAX_BIN_PER_ARRAY,
    missing_reasons: Optional[Mapping[int, str]] = None,
) -> AggregateResult:
    """
    Aggregate a position over [lower_bin_id, upper_bin_id]

    For each bin, ascending:
    - chunk missing: the bin contributes nothing (amounts, fees, rewards)
    - otherwise: amounts from shares against the bin's reserves, plus the
      position's own pending fee and reward fields

    Reward slots unset on the pair are ignored. Bin array order does not
    matter; chunks are looked up by index.

    Args:
        position: Decoded position
        pair: Decoded pair of the position
        bin_arrays: Available chunks (any order, may be incomplete)
        chunk_size: Bins per chunk
        missing_reasons: Optional chunk index -> reason, for warning details

    Returns:
        AggregateResult with raw totals, missing bins and one warning per
        missing chunk
    """
    chunks = index_chunks(position, bin_arrays, chunk_size)
    reasons = missing_reasons or {}
    result = AggregateResult(position_address=position.address, lb_pair=position.lb_pair)
    missing_by_chunk: Dict[int, List[int]] = {}

    for bin_id in position.bin_ids:
        chunk_index = bin_id_to_chunk_index(bin_id, chunk_size)
        chunk = chunks.get(chunk_index)
        if chunk is None:
            missing_by_chunk.setdefault(chunk_index, []).append(bin_id)
            continue

        slot = position.slot(bin_id)
        bin_state = chunk.bins[bin_index_in_chunk(bin_id, chunk_size)]

        amount_x, amount_y = amounts_from_shares(
            bin_state.amount_x,
            bin_state.amount_y,
            bin_state.liquidity_supply,
            position.liquidity_shares[slot],
        )
        result.total_x += amount_x
        result.total_y += amount_y

        fee = position.fee_infos[slot]
        result.fee_x += fee.fee_x_pending
        result.fee_y += fee.fee_y_pending

        pendings = position.reward_infos[slot].reward_pendings
        for reward_index, mint in enumerate(pair.reward_mints):
            if mint is None or reward_index >= len(pendings):
                continue
            pending = pendings[reward_index]
            if pending > 0:
                result.rewards[mint] = result.rewards.get(mint, 0) + pending

        result.bins_aggregated += 1

    for chunk_index, bins in missing_by_chunk.items():
        lower, upper = chunk_bounds(chunk_index, chunk_size)
        reason = reasons.get(chunk_index, "not available")
        message = (
            f"Bin array {chunk_index} ({lower}..{upper}) {reason}; "
            f"bins {bins[0]}..{bins[-1]} skipped for position {position.address[:8]}..."
        )
        logger.warning(message)
        result.missing_bins.extend(bins)
        result.warnings.append(PartialDataWarning(
            kind=WarningKind.MISSING_BIN_ARRAY,
            message=message,
            details={"chunk_index": chunk_index, "bin_ids": list(bins), "reason": reason},
        ))

    logger.debug(f"Aggregated {position.address[:8]}...: {result}")
    return result
