"""
Deposit Planner

Turns a target value, a native/token split and a strategy into a bin
interval and token quantities for a new position.

plan_deposit() is pure: identical requests yield equal plans, invalid input
raises ValidationError instead of being clamped. PlanCoordinator wraps it
for interactive use (debounced, latest-wins).
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, Mapping, Optional, Union

from ..types import DepositPlan, DepositRequest, Strategy, UnitResult
from ..errors import ConfigurationError, ValidationError
from ..infra import LatestOnlyRunner, log_prefix
from ..protocols.meteora.constants import MAX_BIN_PER_POSITION, MIN_BIN_ID, MAX_BIN_ID
from ..protocols.meteora.math import PRICE_PRECISION, price_at_bin, price_to_bin_id, ui_price
from ..config import config as global_config

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


def _to_decimal(field_name: str, value) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)) and not isinstance(value, bool):
        try:
            result = Decimal(str(value))
        except ArithmeticError:
            raise ValidationError.invalid(field_name, value, "not a number")
    else:
        raise ValidationError.invalid(field_name, value, "not a number")
    if not result.is_finite():
        raise ValidationError.invalid(field_name, value, "must be finite")
    return result


def normalize_widths(widths: Optional[Mapping[Union[Strategy, str], int]] = None) -> Dict[Strategy, int]:
    """
    Resolve the {strategy: rangeWidthBins} surface

    Missing strategies fall back to the configured defaults.

    Raises:
        ConfigurationError: Unknown strategy name or width outside [0, 69]
    """
    resolved: Dict[Strategy, int] = {
        Strategy.parse(name): width for name, width in global_config.planner.range_widths.items()
    }
    for name, width in (widths or {}).items():
        strategy = Strategy.parse(name)
        if strategy is None:
            raise ConfigurationError.invalid("range_widths", f"unknown strategy {name!r}")
        resolved[strategy] = width

    for strategy, width in resolved.items():
        if not isinstance(width, int) or not 0 <= width <= MAX_BIN_PER_POSITION - 1:
            raise ConfigurationError.invalid(
                "range_widths",
                f"{strategy.value} width {width!r} must be an integer in [0, {MAX_BIN_PER_POSITION - 1}]",
            )
    return resolved


def validate_request(request: DepositRequest) -> Strategy:
    """
    Check a deposit request, returning its parsed strategy

    Raises:
        ValidationError: First invalid field found
    """
    strategy = Strategy.parse(request.strategy)
    if strategy is None:
        raise ValidationError.invalid(
            "strategy", request.strategy, "must be one of Spot, Curve, BidAsk"
        )

    ratio = _to_decimal("native_ratio_percent", request.native_ratio_percent)
    if ratio < 0 or ratio > HUNDRED:
        raise ValidationError.invalid("native_ratio_percent", request.native_ratio_percent, "must be within [0, 100]")

    target = _to_decimal("target_value", request.target_value)
    if target <= 0:
        raise ValidationError.invalid("target_value", request.target_value, "must be > 0")

    price = _to_decimal("current_price", request.current_price)
    if price <= 0:
        raise ValidationError.invalid("current_price", request.current_price, "must be > 0")

    if not isinstance(request.bin_step, int) or request.bin_step <= 0:
        raise ValidationError.invalid("bin_step", request.bin_step, "must be a positive integer")

    for name in ("decimals_x", "decimals_y"):
        decimals = getattr(request, name)
        if not isinstance(decimals, int) or decimals < 0:
            raise ValidationError.invalid(name, decimals, "must be a non-negative integer")

    if request.active_bin_id is not None and not MIN_BIN_ID <= request.active_bin_id <= MAX_BIN_ID:
        raise ValidationError.invalid(
            "active_bin_id", request.active_bin_id, f"must be within [{MIN_BIN_ID}, {MAX_BIN_ID}]"
        )

    return strategy


def plan_deposit(
    request: DepositRequest,
    widths: Optional[Mapping[Union[Strategy, str], int]] = None,
) -> DepositPlan:
    """
    Compute the bin interval and token amounts for a deposit

    - active bin: request.active_bin_id, else derived from current_price
    - W = widths[strategy] bins besides the active bin
    - token Y sits below the active bin and token X above it; the Y side
      gets round_half_up(W * y_share) bins, the X side the rest
    - native value = target * ratio / 100, token value the remainder,
      converted at the price of the token in the native asset

    Args:
        request: Deposit inputs
        widths: Optional {strategy: rangeWidthBins} overrides

    Returns:
        DepositPlan

    Raises:
        ValidationError: Invalid request
        ConfigurationError: Invalid widths
    """
    strategy = validate_request(request)
    width = normalize_widths(widths)[strategy]

    ratio = _to_decimal("native_ratio_percent", request.native_ratio_percent)
    target = _to_decimal("target_value", request.target_value)
    price = _to_decimal("current_price", request.current_price)

    if request.active_bin_id is not None:
        active_bin_id = request.active_bin_id
    else:
        active_bin_id = price_to_bin_id(price, request.bin_step, request.decimals_x, request.decimals_y)

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION

        native_share = ratio / HUNDRED
        y_share = (HUNDRED - ratio) / HUNDRED if request.native_is_x else native_share
        y_bins = int((Decimal(width) * y_share).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        x_bins = width - y_bins

        min_bin_id = max(MIN_BIN_ID, active_bin_id - y_bins)
        max_bin_id = min(MAX_BIN_ID, active_bin_id + x_bins)

        min_price = price_at_bin(min_bin_id, request.bin_step)
        max_price = price_at_bin(max_bin_id, request.bin_step)

        # current_price is X in Y
        token_price_in_native = Decimal(1) / price if request.native_is_x else price
        native_amount = target * native_share
        token_amount = (target - native_amount) / token_price_in_native

    if request.native_is_x:
        amount_x, amount_y = native_amount, token_amount
    else:
        amount_x, amount_y = token_amount, native_amount

    plan = DepositPlan(
        request=request,
        strategy=strategy,
        active_bin_id=active_bin_id,
        min_bin_id=min_bin_id,
        max_bin_id=max_bin_id,
        min_price=min_price,
        max_price=max_price,
        min_price_ui=ui_price(min_price, request.decimals_x, request.decimals_y),
        max_price_ui=ui_price(max_price, request.decimals_x, request.decimals_y),
        amount_x=amount_x,
        amount_y=amount_y,
        token_price_in_native=token_price_in_native,
    )
    logger.debug(
        f"{log_prefix()}{strategy.value} plan for {request.pool_address[:8]}...: "
        f"bins {min_bin_id}..{max_bin_id} around {active_bin_id}"
    )
    return plan


class PlanCoordinator:
    """
    Debounced, latest-wins deposit planning

    A burst of submit() calls computes one plan, for the last request.
    Earlier callers receive None. Invalid input yields a failed UnitResult
    rather than an exception.

    Usage:
        coordinator = PlanCoordinator()
        result = await coordinator.submit(request)
        if result is not None and result.is_success:
            plan = result.value
    """

    def __init__(
        self,
        widths: Optional[Mapping[Union[Strategy, str], int]] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.widths = normalize_widths(widths)
        if debounce_seconds is None:
            debounce_seconds = global_config.planner.debounce_seconds
        self._runner: LatestOnlyRunner[UnitResult[DepositPlan]] = LatestOnlyRunner("plan", debounce_seconds)
        self.computations = 0

    @property
    def latest(self) -> Optional[UnitResult[DepositPlan]]:
        """Result of the most recent adopted submission"""
        return self._runner.latest

    @property
    def generation(self) -> int:
        return self._runner.generation

    async def _compute(self, request: DepositRequest) -> UnitResult[DepositPlan]:
        self.computations += 1
        unit_id = f"plan-{self._runner.generation}"
        try:
            return UnitResult.success(plan_deposit(request, self.widths), unit_id=unit_id)
        except ValidationError as e:
            logger.warning(f"{log_prefix()}Deposit plan rejected: {e.message}")
            return UnitResult.failed(e, unit_id=unit_id)

    async def submit(self, request: DepositRequest) -> Optional[UnitResult[DepositPlan]]:
        """
        Submit new planner input, superseding any pending submission

        Returns:
            UnitResult for this request, or None if a newer request superseded it
        """
        return await self._runner.run(lambda: self._compute(request))

    def cancel(self) -> None:
        self._runner.cancel()

    def reset(self) -> None:
        """Cancel pending work and forget the latest plan"""
        self._runner.reset()
