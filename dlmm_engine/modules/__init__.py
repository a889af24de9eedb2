"""
Core modules

- aggregator: Per-bin totals of a position
- valuation: UI amounts and monetary values
- positions: Display-ready positions and list summary
- planner: Deposit plans (pure + latest-wins coordinator)
- funding: Swap requirement for a deposit plan
"""

from .aggregator import aggregate_position, index_chunks
from .valuation import ValuationService, PriceFetch, to_ui_amount, value_position, value_claimed_fees
from .planner import PlanCoordinator, plan_deposit, validate_request, normalize_widths
from .funding import FundingChecker, swap_source_amount, to_raw_amount
from .positions import PositionService, PositionList, format_price_range

__all__ = [
    "aggregate_position",
    "index_chunks",
    "ValuationService",
    "PriceFetch",
    "to_ui_amount",
    "value_position",
    "value_claimed_fees",
    "PlanCoordinator",
    "plan_deposit",
    "validate_request",
    "normalize_widths",
    "FundingChecker",
    "swap_source_amount",
    "to_raw_amount",
    "PositionService",
    "PositionList",
    "format_price_range",
]
