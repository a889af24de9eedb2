"""
Position Service

Read path for LP positions: resolve accounts, aggregate bins, value the
totals and build display-ready LpPosition records plus a list summary.

Every position is its own unit of work. A missing pair or mint fails only
that position (ResolutionError); missing bin arrays or prices degrade it to
a partial result marked incomplete.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..types import LbPairState, LpPosition, LpTotalSummary, MintInfo, PositionState, UnitResult
from ..errors import DlmmEngineError, ResolutionError
from ..infra import LatestOnlyRunner, log_prefix
from ..protocols.meteora.adapter import MeteoraAccountLoader
from ..protocols.meteora.math import PRICE_PRECISION, bin_id_to_price
from .aggregator import aggregate_position
from .valuation import PriceFetch, ValuationService

if TYPE_CHECKING:
    from ..session import Session

logger = logging.getLogger(__name__)


def _round_down(value: Decimal, places: int) -> str:
    with localcontext() as ctx:
        # Integer digits count against precision in quantize
        ctx.prec = max(PRICE_PRECISION, value.adjusted() + places + 2)
        return format(value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN), "f")


def format_price_range(
    lower_bin_id: int,
    upper_bin_id: int,
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
) -> str:
    """
    "min - max" UI price string of a bin range

    Both ends are rounded down to max(decimals_x, decimals_y) places.
    """
    places = max(decimals_x, decimals_y)
    low = bin_id_to_price(lower_bin_id, bin_step, decimals_x, decimals_y)
    high = bin_id_to_price(upper_bin_id, bin_step, decimals_x, decimals_y)
    return f"{_round_down(low, places)} - {_round_down(high, places)}"


@dataclass
class PositionList:
    """
    Positions of one owner

    Attributes:
        owner: Wallet address
        results: One UnitResult per position found (failed ones included)
        summary: Totals over the positions that could be valued
    """
    owner: str
    results: List[UnitResult[LpPosition]] = field(default_factory=list)
    summary: LpTotalSummary = field(default_factory=LpTotalSummary)

    @property
    def positions(self) -> List[LpPosition]:
        return [r.value for r in self.results if r.value is not None]

    @property
    def failed(self) -> List[UnitResult[LpPosition]]:
        return [r for r in self.results if r.is_failed]

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "positions": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }


class PositionService:
    """
    Builds LpPosition records

    Usage:
        service = PositionService(loader, ValuationService(JupiterPriceAPI()), session)
        result = await service.get_position("position_address...")
        listing = await service.refresh("owner_wallet...")
    """

    def __init__(
        self,
        loader: MeteoraAccountLoader,
        valuation: ValuationService,
        session: Optional["Session"] = None,
    ):
        self._loader = loader
        self._valuation = valuation
        self._session = session
        self._prices: Dict[str, Decimal] = {}
        self._mints: Dict[str, MintInfo] = {}
        self._refresh_runner: LatestOnlyRunner[PositionList] = LatestOnlyRunner("refresh")

    @property
    def price_cache(self) -> Dict[str, Decimal]:
        return self._session.prices if self._session is not None else self._prices

    @property
    def mint_cache(self) -> Dict[str, MintInfo]:
        return self._session.mints if self._session is not None else self._mints

    @property
    def latest_refresh(self) -> Optional[PositionList]:
        return self._refresh_runner.latest

    # ========== Single position ==========

    async def get_position(self, address: str) -> UnitResult[LpPosition]:
        """
        Load and value one position

        Returns:
            UnitResult: SUCCESS, PARTIAL (with warnings) or FAILED
        """
        try:
            position = await self._loader.load_position(address)
        except DlmmEngineError as e:
            logger.warning(f"{log_prefix()}Position {address} unavailable: {e}")
            return UnitResult.failed(e, unit_id=address)
        return await self.build_position(position)

    async def build_position(
        self,
        position: PositionState,
        pair: Optional[LbPairState] = None,
        mints: Optional[Mapping[str, MintInfo]] = None,
        prices: Optional[PriceFetch] = None,
    ) -> UnitResult[LpPosition]:
        """
        Value a decoded position

        Mint metadata, bin arrays and prices are fetched concurrently once the
        pair is known; aggregation starts after all of them settle. Callers
        valuing many positions pass mints and prices loaded once for all of
        them, and only the bin arrays are fetched here.

        Args:
            position: Decoded position
            pair: Its pair, if already loaded
            mints: Mint metadata covering the pair's mints, if already loaded
            prices: Prices covering the pair's mints, if already fetched

        Returns:
            UnitResult for the position
        """
        try:
            if pair is None:
                pair = await self._loader.load_pair(position.lb_pair)

            bin_arrays = self._loader.load_bin_arrays(pair.address, position.lower_bin_id, position.upper_bin_id)
            if mints is None or prices is None:
                (mints, prices), fetch = await asyncio.gather(self._load_metadata(pair.mints), bin_arrays)
            else:
                fetch = await bin_arrays
            for mint in (pair.token_x_mint, pair.token_y_mint):
                if mint not in mints:
                    raise ResolutionError.mint_not_found(mint)

            totals = aggregate_position(position, pair, fetch.arrays, missing_reasons=fetch.missing)
            valuation = self._valuation.value(totals, pair, mints, prices.prices)
            claimed = self._valuation.value_claimed_fees(position, pair, mints, prices.prices)

            mint_x = mints[pair.token_x_mint]
            mint_y = mints[pair.token_y_mint]
            warnings = totals.warnings + prices.warnings + valuation.warnings

            lp = LpPosition(
                address=position.address,
                pair_address=pair.address,
                owner=position.owner,
                lower_bin_id=position.lower_bin_id,
                upper_bin_id=position.upper_bin_id,
                bin_step=pair.bin_step,
                active_bin_id=pair.active_id,
                token_x_mint=pair.token_x_mint,
                token_y_mint=pair.token_y_mint,
                token_x_decimals=mint_x.decimals,
                token_y_decimals=mint_y.decimals,
                total_x_amount=totals.total_x,
                total_y_amount=totals.total_y,
                pending_fee_x=totals.fee_x,
                pending_fee_y=totals.fee_y,
                pending_rewards=dict(totals.rewards),
                price_range=format_price_range(
                    position.lower_bin_id, position.upper_bin_id, pair.bin_step, mint_x.decimals, mint_y.decimals
                ),
                valuation=valuation,
                claimed_fees_usd=claimed,
                is_in_range=position.contains(pair.active_id),
                is_incomplete=bool(warnings),
                warnings=warnings,
            )
        except DlmmEngineError as e:
            logger.warning(f"{log_prefix()}Position {position.address} failed: {e}")
            return UnitResult.failed(e, unit_id=position.address)

        return UnitResult.of(lp, warnings, unit_id=position.address)

    async def _load_metadata(self, mints: Sequence[str]) -> Tuple[Dict[str, MintInfo], PriceFetch]:
        """Mint metadata and prices for mints, one batched read and one oracle request"""
        loaded, prices = await asyncio.gather(
            self._loader.load_mints(mints, cache=self.mint_cache),
            self._valuation.fetch_prices(mints, cache=self.price_cache),
        )
        return loaded, prices

    # ========== Owner listing ==========

    async def list_positions(self, owner: str, pool: Optional[str] = None) -> PositionList:
        """
        Load and value every position of an owner

        Each pair is loaded once, and mint metadata and prices for all pairs
        are fetched in one pass. A pair that cannot be resolved fails only the
        positions on it.

        Raises:
            ExternalUnavailable: The owner lookup itself failed
        """
        states = await self._loader.find_positions(owner, pool)
        pair_addresses = list(dict.fromkeys(p.lb_pair for p in states))

        loaded = await asyncio.gather(
            *(self._loader.load_pair(a) for a in pair_addresses),
            return_exceptions=True,
        )
        pairs: Dict[str, Union[LbPairState, BaseException]] = dict(zip(pair_addresses, loaded))

        resolved = [p for p in pairs.values() if isinstance(p, LbPairState)]
        metadata: Union[Tuple[Dict[str, MintInfo], PriceFetch], DlmmEngineError, None] = None
        if resolved:
            try:
                metadata = await self._load_metadata(list(dict.fromkeys(m for p in resolved for m in p.mints)))
            except DlmmEngineError as e:
                logger.warning(f"{log_prefix()}Mint metadata for {owner[:8]}... unavailable: {e}")
                metadata = e

        async def build(state: PositionState) -> UnitResult[LpPosition]:
            pair = pairs[state.lb_pair]
            if isinstance(pair, DlmmEngineError):
                return UnitResult.failed(pair, unit_id=state.address)
            if isinstance(pair, BaseException):
                raise pair
            if isinstance(metadata, DlmmEngineError):
                return UnitResult.failed(metadata, unit_id=state.address)
            mints, prices = metadata
            return await self.build_position(state, pair, mints, prices)

        results = list(await asyncio.gather(*(build(s) for s in states)))
        return self._listing(owner, results)

    @staticmethod
    def _listing(owner: str, results: Sequence[UnitResult[LpPosition]]) -> PositionList:
        positions = [r.value for r in results if r.value is not None]
        failed = sum(1 for r in results if r.is_failed)
        summary = LpTotalSummary.from_positions(positions, failed=failed)
        logger.info(
            f"{log_prefix()}Positions for {owner[:8]}...: {summary.total_positions} valued, "
            f"{summary.incomplete_positions} incomplete, {failed} failed"
        )
        return PositionList(owner=owner, results=list(results), summary=summary)

    async def refresh(self, owner: str, pool: Optional[str] = None) -> Optional[PositionList]:
        """
        Re-triggerable list refresh

        Starting a refresh cancels the one in flight; only the most recently
        started refresh is adopted (latest_refresh). Superseded callers get None.
        """
        return await self._refresh_runner.run(lambda: self.list_positions(owner, pool))

    def cancel_refresh(self) -> None:
        self._refresh_runner.cancel()
