"""
Deposit planning type definitions
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from ..errors import PartialDataWarning
from .common import NATIVE_MINT
from .result import QuoteResult


class Strategy(Enum):
    """
    Liquidity distribution shape of a new position

    SPOT: Uniform, narrowest range
    CURVE: Concentrated around the active bin, wider range
    BID_ASK: Weighted to the edges, widest range
    """
    SPOT = "Spot"
    CURVE = "Curve"
    BID_ASK = "BidAsk"

    @classmethod
    def parse(cls, value: Union["Strategy", str]) -> Optional["Strategy"]:
        """Case-insensitive lookup by value or name, None if unknown"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().replace("_", "").replace("-", "").lower()
        for strategy in cls:
            if key in (strategy.value.lower(), strategy.name.replace("_", "").lower()):
                return strategy
        return None


@dataclass(frozen=True)
class DepositRequest:
    """
    Planner input

    Attributes:
        pool_address: LbPair address
        token_x_mint: Pair token X
        token_y_mint: Pair token Y
        decimals_x: Token X decimals
        decimals_y: Token Y decimals
        bin_step: Pair bin step (bps)
        current_price: UI price of token X in token Y
        target_value: Total deposit value in the native (quote) asset
        native_ratio_percent: Share of the value deposited as native asset [0, 100]
        strategy: Strategy or its name
        active_bin_id: Pool's active bin if known, else derived from current_price
        native_mint: Native asset mint
    """
    pool_address: str
    token_x_mint: str
    token_y_mint: str
    decimals_x: int
    decimals_y: int
    bin_step: int
    current_price: Decimal
    target_value: Decimal
    native_ratio_percent: Decimal
    strategy: Union[Strategy, str]
    active_bin_id: Optional[int] = None
    native_mint: str = NATIVE_MINT

    @property
    def native_is_x(self) -> bool:
        return self.token_x_mint == self.native_mint

    @property
    def token_mint(self) -> str:
        """The non-native side of the pair"""
        return self.token_y_mint if self.native_is_x else self.token_x_mint

    @property
    def native_side_mint(self) -> str:
        """The native side, token Y when neither side is native"""
        return self.token_x_mint if self.native_is_x else self.token_y_mint


@dataclass(frozen=True)
class DepositPlan:
    """
    Bin interval and token quantities for a new position

    min_price / max_price are raw bin prices (priceAtBin); the *_ui variants
    are scaled by 10^(decimals_x - decimals_y). amount_x / amount_y are UI
    amounts, not yet rounded to token decimals.
    """
    request: DepositRequest
    strategy: Strategy
    active_bin_id: int
    min_bin_id: int
    max_bin_id: int
    min_price: Decimal
    max_price: Decimal
    min_price_ui: Decimal
    max_price_ui: Decimal
    amount_x: Decimal
    amount_y: Decimal
    token_price_in_native: Decimal

    @property
    def width(self) -> int:
        """Number of bins including both ends"""
        return self.max_bin_id - self.min_bin_id + 1

    @property
    def native_amount(self) -> Decimal:
        return self.amount_x if self.request.native_is_x else self.amount_y

    @property
    def token_amount(self) -> Decimal:
        return self.amount_y if self.request.native_is_x else self.amount_x

    @property
    def native_decimals(self) -> int:
        return self.request.decimals_x if self.request.native_is_x else self.request.decimals_y

    @property
    def token_decimals(self) -> int:
        return self.request.decimals_y if self.request.native_is_x else self.request.decimals_x

    @property
    def price_range(self) -> str:
        return f"{self.min_price_ui} - {self.max_price_ui}"

    def to_dict(self) -> dict:
        return {
            "pool_address": self.request.pool_address,
            "strategy": self.strategy.value,
            "active_bin_id": self.active_bin_id,
            "min_bin_id": self.min_bin_id,
            "max_bin_id": self.max_bin_id,
            "min_price": str(self.min_price),
            "max_price": str(self.max_price),
            "min_price_ui": str(self.min_price_ui),
            "max_price_ui": str(self.max_price_ui),
            "amount_x": str(self.amount_x),
            "amount_y": str(self.amount_y),
            "token_price_in_native": str(self.token_price_in_native),
            "target_value": str(self.request.target_value),
            "native_ratio_percent": str(self.request.native_ratio_percent),
        }


@dataclass(frozen=True)
class Balances:
    """Current raw holdings of both deposit assets"""
    native_raw: int
    token_raw: int


@dataclass(frozen=True)
class SwapRequest:
    """
    Auxiliary swap needed to fund a deposit

    Attributes:
        source_mint: Asset with surplus
        source_amount: Raw amount to sell
        dest_mint: Asset with shortfall
        dest_amount_needed: Exact raw shortfall
    """
    source_mint: str
    source_amount: int
    dest_mint: str
    dest_amount_needed: int

    def to_dict(self) -> dict:
        return {
            "source_mint": self.source_mint,
            "source_amount": str(self.source_amount),
            "dest_mint": self.dest_mint,
            "dest_amount_needed": str(self.dest_amount_needed),
        }


@dataclass
class FundingRequirement:
    """
    Required vs. available raw amounts for a deposit plan

    needs_swap is True only when exactly one side is short and the other has
    a surplus. quote is None when no swap is needed or the router had no
    answer (quote_unavailable). can_fund is False when the holdings cannot
    cover the plan even after a swap.
    """
    native_mint: str
    token_mint: str
    required_native: int
    required_token: int
    available_native: int
    available_token: int
    needs_swap: bool = False
    can_fund: bool = True
    swap_request: Optional[SwapRequest] = None
    quote: Optional[QuoteResult] = None
    quote_unavailable: bool = False
    warnings: List[PartialDataWarning] = field(default_factory=list)

    @property
    def native_shortfall(self) -> int:
        return max(self.required_native - self.available_native, 0)

    @property
    def token_shortfall(self) -> int:
        return max(self.required_token - self.available_token, 0)

    @property
    def native_surplus(self) -> int:
        return max(self.available_native - self.required_native, 0)

    @property
    def token_surplus(self) -> int:
        return max(self.available_token - self.required_token, 0)

    def to_dict(self) -> dict:
        return {
            "needs_swap": self.needs_swap,
            "can_fund": self.can_fund,
            "required_assets": {
                "native_lamports": str(self.required_native),
                "target_token_lamports": str(self.required_token),
                "token_mint": self.token_mint,
            },
            "current_balances": {
                "native_lamports": str(self.available_native),
                "target_token_lamports": str(self.available_token),
            },
            "swap_request": None if self.swap_request is None else self.swap_request.to_dict(),
            "swap_quote": None if self.quote is None else self.quote.to_dict(),
            "quote_unavailable": self.quote_unavailable,
            "warnings": [w.to_dict() for w in self.warnings],
        }
