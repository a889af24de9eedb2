"""
Valuation Service

Converts raw aggregate totals into UI amount strings and monetary values.

Rules:
- UI amounts are exact Decimal divisions, rounded down (never up)
- A mint without a price contributes 0 and is reported, never fatal
- Monetary values are Decimal, quantized down to value_places digits
- Native value = USD value / native asset USD price
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from ..types import AggregateResult, LbPairState, MintInfo, PositionState, PositionValuation
from ..errors import ExternalUnavailable, PartialDataWarning, WarningKind
from ..config import config as global_config

logger = logging.getLogger(__name__)

# Working precision for value arithmetic (u128 totals need ~39 digits)
VALUE_PRECISION = 80


class PriceOracle(Protocol):
    async def get_prices(self, mints: Sequence[str]) -> Dict[str, Decimal]:
        ...


def to_ui_amount(raw: int, decimals: int, places: Optional[int] = None) -> str:
    """
    Format a raw amount at display scale, rounded down

    Args:
        raw: Raw amount (smallest units)
        decimals: Token decimals
        places: Fractional digits to keep (default: decimals)

    Returns:
        Fixed-point string, e.g. to_ui_amount(1_234_567, 6) == "1.234567"
    """
    places = decimals if places is None else places
    with localcontext() as ctx:
        ctx.prec = VALUE_PRECISION
        value = Decimal(raw).scaleb(-decimals)
        return format(value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN), "f")


def quantize_value(value: Decimal, places: int) -> Decimal:
    """Round a monetary value down to places fractional digits"""
    with localcontext() as ctx:
        ctx.prec = VALUE_PRECISION
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)


def _display_places(decimals: int, display_decimals: Optional[int]) -> int:
    if display_decimals is None:
        return decimals
    return min(decimals, display_decimals)


class _Valuer:
    """Accumulates priced contributions and tracks missing prices"""

    def __init__(self, prices: Mapping[str, Decimal]):
        self._prices = prices
        self.missing: List[str] = []
        self.warnings: List[PartialDataWarning] = []

    def price(self, mint: str) -> Decimal:
        price = self._prices.get(mint)
        if price is None:
            if mint not in self.missing:
                self.missing.append(mint)
                message = f"No price for {mint}; its contribution counts as 0"
                logger.warning(message)
                self.warnings.append(PartialDataWarning(
                    kind=WarningKind.MISSING_PRICE,
                    message=message,
                    details={"mint": mint},
                ))
            return Decimal(0)
        return price

    def value(self, raw: int, mint: MintInfo) -> Decimal:
        if raw == 0:
            return Decimal(0)
        return mint.ui_amount(raw) * self.price(mint.address)


def value_position(
    totals: AggregateResult,
    pair: LbPairState,
    mints: Mapping[str, MintInfo],
    prices: Mapping[str, Decimal],
    native_mint: Optional[str] = None,
    value_places: Optional[int] = None,
    display_decimals: Optional[int] = None,
) -> PositionValuation:
    """
    Value one position's aggregate totals

    Token X and Y mints must be present in mints. A reward mint without
    metadata is not fatal: its raw amount is kept, left unvalued, and a
    MISSING_REWARD_MINT warning is added.

    Args:
        totals: Raw aggregate totals
        pair: Pair of the position
        mints: Mint metadata (token X and Y required, reward mints optional)
        prices: USD price per mint; absent = missing
        native_mint: Native asset mint (default from config)
        value_places: Fractional digits of monetary values (default from config)
        display_decimals: Optional cap on UI fractional digits (default from config)

    Returns:
        PositionValuation; raw reward amounts are reported even when unpriced
    """
    native_mint = native_mint or global_config.valuation.native_mint
    value_places = global_config.valuation.value_places if value_places is None else value_places
    if display_decimals is None:
        display_decimals = global_config.valuation.display_decimals

    mint_x = mints[pair.token_x_mint]
    mint_y = mints[pair.token_y_mint]
    valuer = _Valuer(prices)

    def ui(raw: int, mint: MintInfo) -> str:
        return to_ui_amount(raw, mint.decimals, _display_places(mint.decimals, display_decimals))

    with localcontext() as ctx:
        ctx.prec = VALUE_PRECISION

        liquidity_value = valuer.value(totals.total_x, mint_x) + valuer.value(totals.total_y, mint_y)
        fees_value = valuer.value(totals.fee_x, mint_x) + valuer.value(totals.fee_y, mint_y)

        rewards_value = Decimal(0)
        rewards_ui: Dict[str, str] = {}
        extra_warnings: List[PartialDataWarning] = []
        for mint_address, raw in totals.rewards.items():
            reward_mint = mints.get(mint_address)
            if reward_mint is None:
                message = f"No mint metadata for reward {mint_address}; raw amount {raw} left unvalued"
                logger.warning(message)
                extra_warnings.append(PartialDataWarning(
                    kind=WarningKind.MISSING_REWARD_MINT,
                    message=message,
                    details={"mint": mint_address, "raw_amount": str(raw)},
                ))
                continue
            rewards_ui[mint_address] = ui(raw, reward_mint)
            rewards_value += valuer.value(raw, reward_mint)

        total_value = liquidity_value + fees_value + rewards_value

        native_price = prices.get(native_mint)
        if native_price is None or native_price <= 0:
            valuer.price(native_mint)  # records the missing native price
            total_native = None
        else:
            total_native = quantize_value(total_value / native_price, value_places)

    return PositionValuation(
        total_x_ui=ui(totals.total_x, mint_x),
        total_y_ui=ui(totals.total_y, mint_y),
        fee_x_ui=ui(totals.fee_x, mint_x),
        fee_y_ui=ui(totals.fee_y, mint_y),
        rewards_ui=rewards_ui,
        rewards_raw=dict(totals.rewards),
        liquidity_value_usd=quantize_value(liquidity_value, value_places),
        unclaimed_fees_usd=quantize_value(fees_value, value_places),
        unclaimed_rewards_usd=quantize_value(rewards_value, value_places),
        total_value_usd=quantize_value(total_value, value_places),
        total_value_native=total_native,
        missing_prices=list(valuer.missing),
        warnings=valuer.warnings + extra_warnings,
    )


def value_claimed_fees(
    position: PositionState,
    pair: LbPairState,
    mints: Mapping[str, MintInfo],
    prices: Mapping[str, Decimal],
    value_places: Optional[int] = None,
) -> Decimal:
    """USD value of the fees a position has already claimed (missing prices count as 0)"""
    value_places = global_config.valuation.value_places if value_places is None else value_places
    mint_x = mints[pair.token_x_mint]
    mint_y = mints[pair.token_y_mint]
    with localcontext() as ctx:
        ctx.prec = VALUE_PRECISION
        value = (
            mint_x.ui_amount(position.total_claimed_fee_x_amount) * prices.get(mint_x.address, Decimal(0))
            + mint_y.ui_amount(position.total_claimed_fee_y_amount) * prices.get(mint_y.address, Decimal(0))
        )
    return quantize_value(value, value_places)


@dataclass
class PriceFetch:
    """Prices obtained for one valuation pass"""
    prices: Dict[str, Decimal] = field(default_factory=dict)
    warnings: List[PartialDataWarning] = field(default_factory=list)


class ValuationService:
    """
    Prices and values positions

    Usage:
        service = ValuationService(JupiterPriceAPI())
        fetch = await service.fetch_prices([mint_x, mint_y], cache=session.prices)
        valuation = service.value(totals, pair, mints, fetch.prices)
    """

    def __init__(
        self,
        oracle: PriceOracle,
        native_mint: Optional[str] = None,
        value_places: Optional[int] = None,
        display_decimals: Optional[int] = None,
    ):
        self._oracle = oracle
        self.native_mint = native_mint or global_config.valuation.native_mint
        self.value_places = global_config.valuation.value_places if value_places is None else value_places
        self.display_decimals = display_decimals

    async def fetch_prices(
        self,
        mints: Sequence[str],
        cache: Optional[Dict[str, Decimal]] = None,
    ) -> PriceFetch:
        """
        Get USD prices for mints plus the native asset

        One batched oracle request covers every mint not already cached. An
        oracle failure leaves those prices missing and adds a warning; it
        never raises.

        Args:
            mints: Mints to price
            cache: Optional session price cache, updated in place

        Returns:
            PriceFetch with the prices found (cached + fetched)
        """
        cache = cache if cache is not None else {}
        wanted = list(dict.fromkeys([*mints, self.native_mint]))
        to_fetch = [m for m in wanted if m not in cache]
        result = PriceFetch()

        if to_fetch:
            try:
                fetched = await self._oracle.get_prices(to_fetch)
            except ExternalUnavailable as e:
                logger.warning(f"Price oracle unavailable, {len(to_fetch)} prices missing: {e}")
                result.warnings.append(PartialDataWarning(
                    kind=WarningKind.ORACLE_UNAVAILABLE,
                    message=f"Price oracle unavailable: {e.message}",
                    details={"mints": list(to_fetch)},
                ))
                fetched = {}
            for mint in to_fetch:
                if mint in fetched:
                    cache[mint] = fetched[mint]

        result.prices = {m: cache[m] for m in wanted if m in cache}
        return result

    def value(
        self,
        totals: AggregateResult,
        pair: LbPairState,
        mints: Mapping[str, MintInfo],
        prices: Mapping[str, Decimal],
    ) -> PositionValuation:
        return value_position(
            totals,
            pair,
            mints,
            prices,
            native_mint=self.native_mint,
            value_places=self.value_places,
            display_decimals=self.display_decimals,
        )

    def value_claimed_fees(
        self,
        position: PositionState,
        pair: LbPairState,
        mints: Mapping[str, MintInfo],
        prices: Mapping[str, Decimal],
    ) -> Decimal:
        return value_claimed_fees(position, pair, mints, prices, self.value_places)
