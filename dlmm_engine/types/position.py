"""
Position type definitions (aggregates, valuations and display records)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from ..errors import PartialDataWarning


@dataclass
class AggregateResult:
    """
    Raw totals of one position across its bin range

    All amounts are raw integers (smallest units). Bins whose chunk was
    missing contributed nothing and are listed in missing_bins.
    """
    position_address: str
    lb_pair: str
    total_x: int = 0
    total_y: int = 0
    fee_x: int = 0
    fee_y: int = 0
    rewards: Dict[str, int] = field(default_factory=dict)
    bins_aggregated: int = 0
    missing_bins: List[int] = field(default_factory=list)
    warnings: List[PartialDataWarning] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing_bins

    def __str__(self) -> str:
        return (
            f"AggregateResult(x={self.total_x}, y={self.total_y}, "
            f"fee_x={self.fee_x}, fee_y={self.fee_y}, missing={len(self.missing_bins)})"
        )


@dataclass
class PositionValuation:
    """
    UI amounts and monetary value of one position

    UI strings are rounded down at each token's decimals. Monetary values are
    Decimal, rounded down to the configured places. A mint without a price
    contributes 0 and is listed in missing_prices.
    """
    total_x_ui: str
    total_y_ui: str
    fee_x_ui: str
    fee_y_ui: str
    rewards_ui: Dict[str, str] = field(default_factory=dict)
    rewards_raw: Dict[str, int] = field(default_factory=dict)
    liquidity_value_usd: Decimal = Decimal(0)
    unclaimed_fees_usd: Decimal = Decimal(0)
    unclaimed_rewards_usd: Decimal = Decimal(0)
    total_value_usd: Decimal = Decimal(0)
    total_value_native: Optional[Decimal] = None
    missing_prices: List[str] = field(default_factory=list)
    warnings: List[PartialDataWarning] = field(default_factory=list)

    @property
    def is_fully_priced(self) -> bool:
        return not self.missing_prices


@dataclass
class LpPosition:
    """
    Display-ready LP position

    Attributes:
        address: Position account address
        pair_address: LbPair address
        owner: Position owner
        lower_bin_id: Lower bin ID
        upper_bin_id: Upper bin ID
        bin_step: Pair bin step
        active_bin_id: Pair active bin at fetch time
        token_x_mint / token_y_mint: Pair mints
        token_x_decimals / token_y_decimals: Mint decimals
        total_x_amount / total_y_amount: Raw token amounts
        pending_fee_x / pending_fee_y: Raw unclaimed fees
        pending_rewards: Raw unclaimed rewards by mint
        price_range: "min - max" UI price string
        valuation: UI amounts and monetary values
        claimed_fees_usd: Value of fees already claimed
        is_in_range: Active bin inside [lower, upper]
        is_incomplete: Some contribution was degraded
        warnings: Degraded contributions
    """
    address: str
    pair_address: str
    owner: str
    lower_bin_id: int
    upper_bin_id: int
    bin_step: int
    active_bin_id: int
    token_x_mint: str
    token_y_mint: str
    token_x_decimals: int
    token_y_decimals: int
    total_x_amount: int
    total_y_amount: int
    pending_fee_x: int
    pending_fee_y: int
    pending_rewards: Dict[str, int]
    price_range: str
    valuation: PositionValuation
    claimed_fees_usd: Decimal = Decimal(0)
    is_in_range: bool = False
    is_incomplete: bool = False
    warnings: List[PartialDataWarning] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"LpPosition({self.address[:8]}..., bins={self.lower_bin_id}..{self.upper_bin_id})"

    @property
    def total_value_usd(self) -> Decimal:
        return self.valuation.total_value_usd

    @property
    def total_value_native(self) -> Optional[Decimal]:
        return self.valuation.total_value_native

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary (amounts as strings)"""
        v = self.valuation
        return {
            "address": self.address,
            "pair_address": self.pair_address,
            "owner": self.owner,
            "lower_bin_id": self.lower_bin_id,
            "upper_bin_id": self.upper_bin_id,
            "bin_step": self.bin_step,
            "active_bin_id": self.active_bin_id,
            "token_x_mint": self.token_x_mint,
            "token_y_mint": self.token_y_mint,
            "token_x_decimals": self.token_x_decimals,
            "token_y_decimals": self.token_y_decimals,
            "total_x_amount": str(self.total_x_amount),
            "total_y_amount": str(self.total_y_amount),
            "pending_fee_x": str(self.pending_fee_x),
            "pending_fee_y": str(self.pending_fee_y),
            "pending_rewards": [
                {"mint": mint, "amount": str(amount)} for mint, amount in self.pending_rewards.items()
            ],
            "total_x_amount_ui": v.total_x_ui,
            "total_y_amount_ui": v.total_y_ui,
            "pending_fee_x_ui": v.fee_x_ui,
            "pending_fee_y_ui": v.fee_y_ui,
            "pending_rewards_ui": [
                {"mint": mint, "amount": amount} for mint, amount in v.rewards_ui.items()
            ],
            "price_range": self.price_range,
            "total_value_usd": str(v.total_value_usd),
            "total_value_native": None if v.total_value_native is None else str(v.total_value_native),
            "unclaimed_fees_usd": str(v.unclaimed_fees_usd),
            "unclaimed_rewards_usd": str(v.unclaimed_rewards_usd),
            "claimed_fees_usd": str(self.claimed_fees_usd),
            "missing_prices": list(v.missing_prices),
            "is_in_range": self.is_in_range,
            "is_incomplete": self.is_incomplete,
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class LpTotalSummary:
    """
    Totals across a position list

    total_unclaimed_fees_usd includes pending rewards.
    """
    total_positions: int = 0
    in_range_positions: int = 0
    incomplete_positions: int = 0
    failed_positions: int = 0
    total_liquidity_value_usd: Decimal = Decimal(0)
    total_unclaimed_fees_usd: Decimal = Decimal(0)
    total_claimed_fees_usd: Decimal = Decimal(0)

    @classmethod
    def from_positions(cls, positions: List[LpPosition], failed: int = 0) -> "LpTotalSummary":
        summary = cls(total_positions=len(positions), failed_positions=failed)
        for pos in positions:
            v = pos.valuation
            if pos.is_in_range:
                summary.in_range_positions += 1
            if pos.is_incomplete:
                summary.incomplete_positions += 1
            summary.total_liquidity_value_usd += v.liquidity_value_usd
            summary.total_unclaimed_fees_usd += v.unclaimed_fees_usd + v.unclaimed_rewards_usd
            summary.total_claimed_fees_usd += pos.claimed_fees_usd
        return summary

    def to_dict(self) -> dict:
        return {
            "total_positions": self.total_positions,
            "in_range_positions": self.in_range_positions,
            "incomplete_positions": self.incomplete_positions,
            "failed_positions": self.failed_positions,
            "total_liquidity_value_usd": str(self.total_liquidity_value_usd),
            "total_unclaimed_fees_usd": str(self.total_unclaimed_fees_usd),
            "total_claimed_fees_usd": str(self.total_claimed_fees_usd),
        }
