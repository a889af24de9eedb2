"""
Type definitions for the DLMM engine
"""

from .common import MintInfo, NATIVE_MINT, DEFAULT_PUBKEY
from .accounts import (
    FeeInfo,
    UserRewardInfo,
    PositionState,
    LbPairState,
    BinState,
    BinArrayState,
)
from .pool import Pool
from .position import AggregateResult, PositionValuation, LpPosition, LpTotalSummary
from .plan import (
    Strategy,
    DepositRequest,
    DepositPlan,
    Balances,
    SwapRequest,
    FundingRequirement,
)
from .result import UnitResult, UnitStatus, QuoteResult

__all__ = [
    # Common types
    "MintInfo",
    "NATIVE_MINT",
    "DEFAULT_PUBKEY",
    # On-chain accounts
    "FeeInfo",
    "UserRewardInfo",
    "PositionState",
    "LbPairState",
    "BinState",
    "BinArrayState",
    # Read path
    "Pool",
    "AggregateResult",
    "PositionValuation",
    "LpPosition",
    "LpTotalSummary",
    # Write path
    "Strategy",
    "DepositRequest",
    "DepositPlan",
    "Balances",
    "SwapRequest",
    "FundingRequirement",
    # Results
    "UnitResult",
    "UnitStatus",
    "QuoteResult",
]
