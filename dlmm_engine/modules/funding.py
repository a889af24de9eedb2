"""
Funding Checker

Compares the raw amounts a deposit plan needs against current holdings and,
when exactly one side is short, sizes an auxiliary swap and asks the router
for a quote. A missing quote is reported, never invented.
"""

import logging
from decimal import Decimal, ROUND_CEILING, ROUND_DOWN, localcontext
from typing import List, Optional, Protocol

from ..types import Balances, DepositPlan, FundingRequirement, QuoteResult, SwapRequest
from ..errors import ExternalUnavailable, PartialDataWarning, WarningKind
from ..infra import log_prefix
from ..protocols.meteora.math import PRICE_PRECISION

logger = logging.getLogger(__name__)


class SwapRouter(Protocol):
    async def quote(self, source_mint: str, source_amount: int, dest_mint: str) -> Optional[QuoteResult]:
        ...


def to_raw_amount(ui_amount: Decimal, decimals: int, rounding: str = ROUND_DOWN) -> int:
    """UI amount -> raw integer amount"""
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        return int(ui_amount.scaleb(decimals).to_integral_value(rounding=rounding))


def swap_source_amount(plan: DepositPlan, dest_is_token: bool, shortfall: int) -> int:
    """
    Raw amount of the surplus asset worth `shortfall` of the short asset

    Converted at the plan's token price in the native asset, rounded up.
    """
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        if dest_is_token:
            # native needed to buy the missing token
            needed_ui = Decimal(shortfall).scaleb(-plan.token_decimals) * plan.token_price_in_native
            return to_raw_amount(needed_ui, plan.native_decimals, ROUND_CEILING)
        needed_ui = Decimal(shortfall).scaleb(-plan.native_decimals) / plan.token_price_in_native
        return to_raw_amount(needed_ui, plan.token_decimals, ROUND_CEILING)


class FundingChecker:
    """
    Decides whether a deposit plan needs an auxiliary swap

    Usage:
        checker = FundingChecker(JupiterQuoteAPI())
        requirement = await checker.check(plan, Balances(native_raw=..., token_raw=...))
        if requirement.needs_swap and requirement.quote is None:
            ...  # router had no answer
    """

    def __init__(self, router: SwapRouter):
        self._router = router

    def requirement(self, plan: DepositPlan, balances: Balances) -> FundingRequirement:
        """Required vs. available amounts and the swap to request, without calling the router"""
        request = plan.request
        req = FundingRequirement(
            native_mint=request.native_side_mint,
            token_mint=request.token_mint,
            required_native=to_raw_amount(plan.native_amount, plan.native_decimals),
            required_token=to_raw_amount(plan.token_amount, plan.token_decimals),
            available_native=balances.native_raw,
            available_token=balances.token_raw,
        )

        native_short = req.native_shortfall > 0
        token_short = req.token_shortfall > 0

        if native_short and token_short:
            req.can_fund = False
            return req
        if not native_short and not token_short:
            return req

        req.needs_swap = True
        if token_short:
            source_amount = swap_source_amount(plan, True, req.token_shortfall)
            req.swap_request = SwapRequest(
                source_mint=req.native_mint,
                source_amount=source_amount,
                dest_mint=req.token_mint,
                dest_amount_needed=req.token_shortfall,
            )
            req.can_fund = source_amount <= req.native_surplus
        else:
            source_amount = swap_source_amount(plan, False, req.native_shortfall)
            req.swap_request = SwapRequest(
                source_mint=req.token_mint,
                source_amount=source_amount,
                dest_mint=req.native_mint,
                dest_amount_needed=req.native_shortfall,
            )
            req.can_fund = source_amount <= req.token_surplus
        return req

    async def check(self, plan: DepositPlan, balances: Balances) -> FundingRequirement:
        """
        Check funding for a plan

        The router is called only when a swap is needed. Router failure or
        no route sets quote_unavailable with a warning.

        Args:
            plan: Deposit plan
            balances: Current raw holdings

        Returns:
            FundingRequirement
        """
        req = self.requirement(plan, balances)
        if not req.needs_swap:
            if not req.can_fund:
                logger.info(
                    f"{log_prefix()}Both assets short for deposit: native {req.native_shortfall}, "
                    f"token {req.token_shortfall}"
                )
            return req

        swap = req.swap_request
        warnings: List[PartialDataWarning] = []
        quote: Optional[QuoteResult] = None
        reason = "no route"
        try:
            quote = await self._router.quote(swap.source_mint, swap.source_amount, swap.dest_mint)
        except ExternalUnavailable as e:
            reason = e.message

        if quote is None:
            message = (
                f"No swap quote for {swap.source_amount} {swap.source_mint[:8]}... -> "
                f"{swap.dest_mint[:8]}...: {reason}"
            )
            logger.warning(f"{log_prefix()}{message}")
            req.quote_unavailable = True
            warnings.append(PartialDataWarning(
                kind=WarningKind.QUOTE_UNAVAILABLE,
                message=message,
                details=swap.to_dict(),
            ))
        else:
            req.quote = quote
            if quote.to_amount < swap.dest_amount_needed:
                message = (
                    f"Quoted output {quote.to_amount} is below the shortfall {swap.dest_amount_needed}"
                )
                logger.warning(f"{log_prefix()}{message}")
                warnings.append(PartialDataWarning(
                    kind=WarningKind.QUOTE_BELOW_SHORTFALL,
                    message=message,
                    details={"to_amount": str(quote.to_amount), "needed": str(swap.dest_amount_needed)},
                ))

        req.warnings.extend(warnings)
        return req
