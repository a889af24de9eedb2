"""
DlmmClient - Entry point for position valuation and deposit planning

Wires the chain reader, price oracle, swap router and pool directory into the
core modules and exposes them through one async facade.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Union

from .config import config as global_config
from .infra import RpcClient, RpcClientConfig
from .protocols.jupiter import JupiterPriceAPI, JupiterQuoteAPI
from .protocols.meteora import MeteoraAccountLoader, MeteoraPoolDirectory, bin_id_to_price
from .session import Session
from .types import (
    Balances,
    DepositPlan,
    DepositRequest,
    FundingRequirement,
    LbPairState,
    LpPosition,
    Pool,
    Strategy,
    UnitResult,
)
from .errors import ResolutionError

if TYPE_CHECKING:
    from .modules.positions import PositionList, PositionService
    from .modules.valuation import ValuationService
    from .modules.funding import FundingChecker

logger = logging.getLogger(__name__)


class DlmmClient:
    """
    DLMM valuation and planning client

    Provides:
    - positions: Position loading, valuation and list refresh
    - valuation: Price fetching and valuation
    - funding: Swap requirement for deposit plans
    - session: Caches and the deposit plan coordinator

    Usage:
        async with DlmmClient("https://api.mainnet-beta.solana.com") as client:
            listing = await client.list_positions("owner_wallet...")
            request = await client.build_deposit_request(pool, Decimal("10"), Decimal("50"), "Spot")
            result = await client.plan_deposit(request)
    """

    def __init__(
        self,
        rpc_url: Union[str, List[str], None] = None,
        rpc_config: Optional[RpcClientConfig] = None,
        rpc: Optional[RpcClient] = None,
        price_api: Optional[JupiterPriceAPI] = None,
        quote_api: Optional[JupiterQuoteAPI] = None,
        directory: Optional[MeteoraPoolDirectory] = None,
        session: Optional[Session] = None,
    ):
        """
        Initialize DlmmClient

        Args:
            rpc_url: RPC endpoint URL or list of URLs for fallback (default from config)
            rpc_config: Optional RPC configuration
            rpc: Prebuilt chain reader (overrides rpc_url)
            price_api: Price oracle
            quote_api: Swap router
            directory: Pool directory
            session: Session context (a new one by default)
        """
        self._rpc = rpc if rpc is not None else RpcClient(rpc_url or global_config.rpc.url, config=rpc_config)
        self._loader = MeteoraAccountLoader(self._rpc)
        self._price_api = price_api if price_api is not None else JupiterPriceAPI()
        self._quote_api = quote_api if quote_api is not None else JupiterQuoteAPI()
        self._directory = directory if directory is not None else MeteoraPoolDirectory()
        self._session = session if session is not None else Session()

        # Lazy-loaded modules
        self._valuation: Optional["ValuationService"] = None
        self._positions: Optional["PositionService"] = None
        self._funding: Optional["FundingChecker"] = None

    @property
    def rpc(self) -> RpcClient:
        """Access to chain reader"""
        return self._rpc

    @property
    def loader(self) -> MeteoraAccountLoader:
        return self._loader

    @property
    def session(self) -> Session:
        return self._session

    @property
    def valuation(self) -> "ValuationService":
        if self._valuation is None:
            from .modules.valuation import ValuationService
            self._valuation = ValuationService(self._price_api)
        return self._valuation

    @property
    def positions(self) -> "PositionService":
        """
        Position module

        Provides:
        - get_position(address): One position
        - list_positions(owner): All positions of a wallet with summary
        - refresh(owner): Latest-wins list refresh
        """
        if self._positions is None:
            from .modules.positions import PositionService
            self._positions = PositionService(self._loader, self.valuation, self._session)
        return self._positions

    @property
    def funding(self) -> "FundingChecker":
        if self._funding is None:
            from .modules.funding import FundingChecker
            self._funding = FundingChecker(self._quote_api)
        return self._funding

    # ========== Read path ==========

    async def get_position(self, address: str) -> UnitResult[LpPosition]:
        return await self.positions.get_position(address)

    async def list_positions(self, owner: str, pool: Optional[str] = None) -> "PositionList":
        return await self.positions.list_positions(owner, pool)

    async def refresh_positions(self, owner: str, pool: Optional[str] = None) -> Optional["PositionList"]:
        return await self.positions.refresh(owner, pool)

    async def search_pools(self, token_mint: str, quote_mint: Optional[str] = None) -> List[Pool]:
        """Pools pairing token_mint with the quote asset, by liquidity"""
        return await self._directory.search_pools(token_mint, quote_mint or global_config.valuation.native_mint)

    # ========== Write path ==========

    async def select_pool(self, pool_address: str) -> LbPairState:
        """
        Load a pool and make it the session's current pool

        Raises:
            ResolutionError: Pool account missing
        """
        pair = await self._loader.load_pair(pool_address)
        self._session.select_pool(pair.address, pair.mints)
        return pair

    async def build_deposit_request(
        self,
        pool_address: str,
        target_value: Decimal,
        native_ratio_percent: Decimal,
        strategy: Union[Strategy, str],
    ) -> DepositRequest:
        """
        Planner input for a pool at its current active bin

        Raises:
            ResolutionError: Pool or its mints missing
        """
        pair = await self.select_pool(pool_address)
        mints = await self._loader.load_mints([pair.token_x_mint, pair.token_y_mint], cache=self._session.mints)
        for mint in (pair.token_x_mint, pair.token_y_mint):
            if mint not in mints:
                raise ResolutionError.mint_not_found(mint)

        decimals_x = mints[pair.token_x_mint].decimals
        decimals_y = mints[pair.token_y_mint].decimals
        return DepositRequest(
            pool_address=pair.address,
            token_x_mint=pair.token_x_mint,
            token_y_mint=pair.token_y_mint,
            decimals_x=decimals_x,
            decimals_y=decimals_y,
            bin_step=pair.bin_step,
            current_price=bin_id_to_price(pair.active_id, pair.bin_step, decimals_x, decimals_y),
            target_value=target_value,
            native_ratio_percent=native_ratio_percent,
            strategy=strategy,
            active_bin_id=pair.active_id,
            native_mint=global_config.valuation.native_mint,
        )

    async def plan_deposit(self, request: DepositRequest) -> Optional[UnitResult[DepositPlan]]:
        """Debounced, latest-wins planning (None when superseded)"""
        return await self._session.planner.submit(request)

    async def get_balances(self, owner: str, plan: DepositPlan) -> Balances:
        """
        Raw holdings of both deposit assets

        The native asset balance is the wallet's lamports.
        """
        native_raw, token_raw = await asyncio.gather(
            self._rpc.get_balance(owner),
            self._rpc.get_token_balance(owner, plan.request.token_mint),
        )
        return Balances(native_raw=native_raw, token_raw=token_raw)

    async def check_funding(
        self,
        plan: DepositPlan,
        owner: Optional[str] = None,
        balances: Optional[Balances] = None,
    ) -> FundingRequirement:
        """
        Funding requirement for a plan, from given balances or the owner's holdings

        Raises:
            ValueError: Neither owner nor balances given
        """
        if balances is None:
            if owner is None:
                raise ValueError("owner or balances required")
            balances = await self.get_balances(owner, plan)
        return await self.funding.check(plan, balances)

    # ========== Lifecycle ==========

    async def close(self):
        """Close client connections and release resources"""
        if self._positions is not None:
            self._positions.cancel_refresh()
        self._session.planner.cancel()
        await self._price_api.close()
        await self._quote_api.close()
        await self._directory.close()
        await self._rpc.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"DlmmClient(endpoint={self._rpc.endpoint}, session={self._session})"
