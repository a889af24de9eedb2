"""
Session context

Explicit per-interaction state passed to the core operations:
- price and mint-metadata read caches
- the selected pool and token set (changing either clears the caches)
- the deposit plan coordinator (latest-wins)
"""

import logging
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Optional

from .types import MintInfo
from .modules.planner import PlanCoordinator

logger = logging.getLogger(__name__)


class Session:
    """
    Session-scoped caches and planner state

    Caches have a single writer per key: entries are only written when the
    fetch that produced them completes.

    Usage:
        session = Session()
        session.select_pool(pool_address, [mint_x, mint_y])
        result = await session.planner.submit(request)
    """

    def __init__(self, planner: Optional[PlanCoordinator] = None):
        self.prices: Dict[str, Decimal] = {}
        self.mints: Dict[str, MintInfo] = {}
        self.pool: Optional[str] = None
        self.token_set: FrozenSet[str] = frozenset()
        self.planner = planner if planner is not None else PlanCoordinator()

    def invalidate(self) -> None:
        """Drop all cached prices and mint metadata"""
        if self.prices or self.mints:
            logger.debug(f"Clearing session caches ({len(self.prices)} prices, {len(self.mints)} mints)")
        self.prices.clear()
        self.mints.clear()

    def set_token_set(self, mints: Iterable[str]) -> bool:
        """
        Track the mints in use; clears the caches when the set changes

        Returns:
            True if the token set changed
        """
        token_set = frozenset(mints)
        if token_set == self.token_set:
            return False
        self.token_set = token_set
        self.invalidate()
        return True

    def select_pool(self, pool_address: str, mints: Optional[Iterable[str]] = None) -> bool:
        """
        Switch to a pool

        A different pool clears the caches and cancels pending planning, so no
        plan for the previous pool can be adopted afterwards.

        Returns:
            True if the pool changed
        """
        if pool_address == self.pool:
            if mints is not None:
                self.set_token_set(mints)
            return False

        logger.info(f"Selecting pool {pool_address}")
        self.pool = pool_address
        self.invalidate()
        self.planner.reset()
        if mints is not None:
            self.token_set = frozenset(mints)
        return True

    def __repr__(self) -> str:
        return f"Session(pool={self.pool}, prices={len(self.prices)}, mints={len(self.mints)})"
