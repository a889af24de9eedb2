"""
Decoded on-chain account state

These mirror the Meteora DLMM account layouts. Per-bin tuples on a position
are aligned to lower_bin_id: index i describes bin lower_bin_id + i.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class FeeInfo:
    """Per-bin fee accrual of a position"""
    fee_x_per_token_complete: int = 0
    fee_y_per_token_complete: int = 0
    fee_x_pending: int = 0
    fee_y_pending: int = 0


@dataclass(frozen=True)
class UserRewardInfo:
    """Per-bin reward accrual of a position, one entry per reward slot"""
    reward_per_token_completes: Tuple[int, ...] = (0, 0)
    reward_pendings: Tuple[int, ...] = (0, 0)


@dataclass(frozen=True)
class PositionState:
    """
    PositionV2 account

    Attributes:
        address: Position account address
        lb_pair: Pair the position belongs to
        owner: Position owner
        lower_bin_id: First bin (inclusive)
        upper_bin_id: Last bin (inclusive)
        liquidity_shares: Share per bin, aligned to lower_bin_id
        fee_infos: Pending fees per bin, aligned to lower_bin_id
        reward_infos: Pending rewards per bin, aligned to lower_bin_id
    """
    address: str
    lb_pair: str
    owner: str
    lower_bin_id: int
    upper_bin_id: int
    liquidity_shares: Tuple[int, ...]
    fee_infos: Tuple[FeeInfo, ...]
    reward_infos: Tuple[UserRewardInfo, ...]
    last_updated_at: int = 0
    total_claimed_fee_x_amount: int = 0
    total_claimed_fee_y_amount: int = 0
    total_claimed_rewards: Tuple[int, ...] = (0, 0)
    operator: Optional[str] = None

    def __post_init__(self):
        width = self.width
        for name in ("liquidity_shares", "fee_infos", "reward_infos"):
            if len(getattr(self, name)) != width:
                raise ValueError(
                    f"{name} has {len(getattr(self, name))} entries, expected {width}"
                )

    def __repr__(self) -> str:
        return f"PositionState({self.address[:8]}..., bins={self.lower_bin_id}..{self.upper_bin_id})"

    @property
    def width(self) -> int:
        return self.upper_bin_id - self.lower_bin_id + 1

    @property
    def bin_ids(self) -> range:
        """All bin ids in ascending order"""
        return range(self.lower_bin_id, self.upper_bin_id + 1)

    def slot(self, bin_id: int) -> int:
        """Index into the per-bin tuples for bin_id"""
        if not self.lower_bin_id <= bin_id <= self.upper_bin_id:
            raise IndexError(f"bin {bin_id} outside {self.lower_bin_id}..{self.upper_bin_id}")
        return bin_id - self.lower_bin_id

    def contains(self, bin_id: int) -> bool:
        return self.lower_bin_id <= bin_id <= self.upper_bin_id


@dataclass(frozen=True)
class LbPairState:
    """
    LbPair account (pool configuration)

    reward_mints holds one entry per reward slot; None marks an unset slot.
    """
    address: str
    token_x_mint: str
    token_y_mint: str
    bin_step: int
    active_id: int
    reserve_x: str = ""
    reserve_y: str = ""
    reward_mints: Tuple[Optional[str], ...] = (None, None)
    oracle: Optional[str] = None
    status: int = 0

    def __repr__(self) -> str:
        return f"LbPairState({self.address[:8]}..., bin_step={self.bin_step}, active_id={self.active_id})"

    @property
    def active_reward_mints(self) -> List[str]:
        return [mint for mint in self.reward_mints if mint is not None]

    @property
    def mints(self) -> List[str]:
        """Token X, token Y and every set reward mint, deduplicated in order"""
        seen: List[str] = []
        for mint in [self.token_x_mint, self.token_y_mint, *self.active_reward_mints]:
            if mint not in seen:
                seen.append(mint)
        return seen


@dataclass(frozen=True)
class BinState:
    """Reserve state of a single bin"""
    amount_x: int = 0
    amount_y: int = 0
    price: int = 0
    liquidity_supply: int = 0


@dataclass(frozen=True)
class BinArrayState:
    """
    BinArray account - a fixed-size chunk of contiguous bins

    Chunk `index` covers bins index * chunk_size .. index * chunk_size + chunk_size - 1
    where chunk_size == len(bins).
    """
    index: int
    lb_pair: str
    bins: Tuple[BinState, ...] = field(default_factory=tuple)
    version: int = 0
    address: Optional[str] = None

    def __repr__(self) -> str:
        return f"BinArrayState(index={self.index}, bins={len(self.bins)})"

    @property
    def chunk_size(self) -> int:
        return len(self.bins)
