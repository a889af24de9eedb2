"""
Meteora DLMM Account Loader

Resolves the on-chain accounts a position valuation needs:
- Position and LbPair accounts (fatal when missing)
- Mint metadata for token X, token Y and reward mints (cached)
- BinArray chunks covering a bin range (missing chunks tolerated)
- Positions owned by a wallet (getProgramAccounts)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ...types import BinArrayState, LbPairState, MintInfo, PositionState
from ...infra import RpcClient, decode_account_data
from ...errors import DecodeError, ExternalUnavailable, ResolutionError
from ...config import config as global_config

from .layouts import AccountKind, decode, discriminator_filter, pubkey_filter
from .constants import MAX_BIN_PER_ARRAY, POSITION_LB_PAIR_OFFSET, POSITION_OWNER_OFFSET
from .math import chunk_indices_for_range, derive_bin_array_address

logger = logging.getLogger(__name__)


@dataclass
class BinArrayFetch:
    """
    Outcome of fetching the chunks covering a bin range

    Attributes:
        arrays: Decoded chunks (any order)
        missing: Chunk index -> reason, for chunks not available
    """
    arrays: List[BinArrayState] = field(default_factory=list)
    missing: Dict[int, str] = field(default_factory=dict)


class MeteoraAccountLoader:
    """
    Meteora DLMM account loader

    Usage:
        rpc = RpcClient("https://api.mainnet-beta.solana.com")
        loader = MeteoraAccountLoader(rpc)

        position = await loader.load_position("position_address...")
        pair = await loader.load_pair(position.lb_pair)
        fetch = await loader.load_bin_arrays(pair.address, position.lower_bin_id, position.upper_bin_id)
    """

    name = "meteora"

    def __init__(self, rpc: RpcClient, program_id: Optional[str] = None):
        self._rpc = rpc
        self.program_id = program_id or global_config.meteora.program_id

    # ========== Position / Pair ==========

    async def load_position(self, address: str) -> PositionState:
        """
        Fetch and decode a PositionV2 account

        Raises:
            ResolutionError: Account does not exist
            DecodeError: Account bytes are malformed
            ExternalUnavailable: Chain reader failure
        """
        data = await self._rpc.get_account(address)
        if data is None:
            raise ResolutionError.position_not_found(address)
        return decode(AccountKind.POSITION, data, address=address)

    async def load_pair(self, address: str) -> LbPairState:
        """
        Fetch and decode an LbPair account

        Raises:
            ResolutionError: Account missing or undecodable
            ExternalUnavailable: Chain reader failure
        """
        data = await self._rpc.get_account(address)
        if data is None:
            raise ResolutionError.pair_not_found(address)
        try:
            return decode(AccountKind.LB_PAIR, data, address=address)
        except DecodeError as e:
            logger.warning(f"LbPair {address} failed to decode: {e}")
            raise ResolutionError.pair_not_found(address, e) from e

    # ========== Mints ==========

    async def load_mints(
        self,
        mints: Sequence[str],
        cache: Optional[Dict[str, MintInfo]] = None,
    ) -> Dict[str, MintInfo]:
        """
        Fetch mint metadata for many mints in one batched read

        Mints already in cache are not fetched. Mints that do not exist or do
        not decode are absent from the result; callers decide whether that is
        fatal.

        Args:
            mints: Mint addresses
            cache: Optional session cache, updated in place

        Returns:
            Mapping mint -> MintInfo for every resolvable mint

        Raises:
            ExternalUnavailable: Chain reader failure
        """
        cache = cache if cache is not None else {}
        wanted = list(dict.fromkeys(mints))
        to_fetch = [m for m in wanted if m not in cache]

        if to_fetch:
            blobs = await self._rpc.get_accounts(to_fetch)
            for mint, data in zip(to_fetch, blobs):
                if data is None:
                    logger.warning(f"Mint account not found: {mint}")
                    continue
                try:
                    cache[mint] = decode(AccountKind.MINT, data, address=mint)
                except DecodeError as e:
                    logger.warning(f"Mint {mint} failed to decode: {e}")

        return {m: cache[m] for m in wanted if m in cache}

    # ========== Bin arrays ==========

    async def load_bin_arrays(
        self,
        lb_pair: str,
        lower_bin_id: int,
        upper_bin_id: int,
    ) -> BinArrayFetch:
        """
        Fetch every BinArray chunk covering [lower_bin_id, upper_bin_id]

        Chunk addresses are derived (PDA), fetched in concurrent batches and
        decoded. A chunk that does not exist, fails to decode, or sits in a
        failed batch is reported in missing instead of raising.
        """
        indices = chunk_indices_for_range(lower_bin_id, upper_bin_id, MAX_BIN_PER_ARRAY)
        addresses = [derive_bin_array_address(lb_pair, i, self.program_id) for i in indices]

        fetch = BinArrayFetch()
        settled = await self._rpc.get_accounts_settled(addresses)

        for index, address, outcome in zip(indices, addresses, settled):
            if isinstance(outcome, ExternalUnavailable):
                fetch.missing[index] = f"fetch failed: {outcome.message}"
            elif outcome is None:
                fetch.missing[index] = "not initialized"
            else:
                try:
                    fetch.arrays.append(decode(AccountKind.BIN_ARRAY, outcome, address=address))
                except DecodeError as e:
                    logger.warning(f"BinArray {address} (index {index}) failed to decode: {e}")
                    fetch.missing[index] = f"decode failed: {e.code.value}"

        if fetch.missing:
            logger.debug(f"Bin arrays missing for {lb_pair[:8]}...: {sorted(fetch.missing)}")
        return fetch

    # ========== Owner lookup ==========

    async def find_positions(
        self,
        owner: str,
        pool: Optional[str] = None,
    ) -> List[PositionState]:
        """
        Get positions owned by address using getProgramAccounts

        Accounts that fail to decode are logged and skipped.

        Args:
            owner: Owner wallet address
            pool: Optional LbPair address to filter by

        Returns:
            Decoded positions

        Raises:
            ExternalUnavailable: Chain reader failure
        """
        # Owner is at offset 40 (after 8 byte discriminator + 32 byte lb_pair)
        filters = [
            discriminator_filter(AccountKind.POSITION),
            pubkey_filter(POSITION_OWNER_OFFSET, owner),
        ]
        if pool:
            filters.append(pubkey_filter(POSITION_LB_PAIR_OFFSET, pool))

        accounts = await self._rpc.get_program_accounts(self.program_id, filters=filters)

        positions: List[PositionState] = []
        for account in accounts:
            pubkey = account.get("pubkey", "")
            data = decode_account_data(account.get("account"))
            if data is None:
                continue
            try:
                positions.append(decode(AccountKind.POSITION, data, address=pubkey))
            except DecodeError as e:
                logger.warning(f"Skipping position {pubkey}: {e}")

        logger.info(f"Found {len(positions)} Meteora positions for {owner[:8]}...")
        return positions
