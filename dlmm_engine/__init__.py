"""
DLMM Engine - Position valuation and deposit planning for Meteora DLMM

Provides:
- Account decoding (PositionV2, LbPair, BinArray, SPL Mint)
- Bin math (bin prices, share amounts, chunk indexing)
- Position aggregation and valuation (USD and native)
- Deposit planning (Spot / Curve / BidAsk) and funding checks
"""

from .client import DlmmClient
from .session import Session
from .types import (
    MintInfo,
    PositionState,
    LbPairState,
    BinArrayState,
    Pool,
    AggregateResult,
    PositionValuation,
    LpPosition,
    LpTotalSummary,
    Strategy,
    DepositRequest,
    DepositPlan,
    Balances,
    SwapRequest,
    FundingRequirement,
    UnitResult,
    UnitStatus,
    QuoteResult,
)
from .errors import (
    DlmmEngineError,
    DecodeError,
    ResolutionError,
    ValidationError,
    ExternalUnavailable,
    ConfigurationError,
    PartialDataWarning,
    WarningKind,
    ErrorCode,
)
from .modules import (
    aggregate_position,
    value_position,
    plan_deposit,
    PlanCoordinator,
    FundingChecker,
    ValuationService,
    PositionService,
)

__all__ = [
    # Client
    "DlmmClient",
    "Session",
    # Types
    "MintInfo",
    "PositionState",
    "LbPairState",
    "BinArrayState",
    "Pool",
    "AggregateResult",
    "PositionValuation",
    "LpPosition",
    "LpTotalSummary",
    "Strategy",
    "DepositRequest",
    "DepositPlan",
    "Balances",
    "SwapRequest",
    "FundingRequirement",
    "UnitResult",
    "UnitStatus",
    "QuoteResult",
    # Errors
    "DlmmEngineError",
    "DecodeError",
    "ResolutionError",
    "ValidationError",
    "ExternalUnavailable",
    "ConfigurationError",
    "PartialDataWarning",
    "WarningKind",
    "ErrorCode",
    # Core
    "aggregate_position",
    "value_position",
    "plan_deposit",
    "PlanCoordinator",
    "FundingChecker",
    "ValuationService",
    "PositionService",
]

__version__ = "0.1.0"
