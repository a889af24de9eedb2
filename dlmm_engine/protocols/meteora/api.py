"""
Meteora DLMM API Client

Async REST client for the Meteora pool directory.
"""

import logging
from typing import List, Optional

import httpx

from ...types import NATIVE_MINT, Pool
from ...config import config as global_config
from ...errors import ExternalUnavailable

logger = logging.getLogger(__name__)


class MeteoraPoolDirectory:
    """
    Meteora DLMM pool directory

    Usage:
        directory = MeteoraPoolDirectory()
        pools = await directory.search_pools("DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263")
        best = pools[0]  # highest liquidity
    """

    def __init__(
        self,
        timeout: float = None,
        api_url: str = None,
    ):
        """
        Initialize pool directory client

        Args:
            timeout: Request timeout in seconds (default from config)
            api_url: Meteora DLMM API base URL (default from config)
        """
        self._timeout = timeout if timeout is not None else global_config.meteora.timeout
        self._api_url = (api_url if api_url is not None else global_config.meteora.api_url).rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"accept": "application/json"},
            )
        return self._client

    async def search_pools(
        self,
        token_mint: str,
        quote_mint: str = NATIVE_MINT,
    ) -> List[Pool]:
        """
        List DLMM pools pairing token_mint with quote_mint

        Args:
            token_mint: Target token mint
            quote_mint: Counter asset mint (default wrapped SOL)

        Returns:
            Pools sorted by liquidity, highest first

        Raises:
            ExternalUnavailable: Directory unreachable or malformed response
        """
        url = f"{self._api_url}/pair/all_by_groups"
        params = {"include_pool_token_pairs": f"{token_mint}-{quote_mint}"}

        try:
            response = await self._get_client().get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Meteora pool search failed: {e}")
            raise ExternalUnavailable.directory(f"HTTP {e.response.status_code}", e) from e
        except httpx.RequestError as e:
            logger.warning(f"Meteora pool search error: {e}")
            raise ExternalUnavailable.directory(str(e) or type(e).__name__, e) from e
        except ValueError as e:
            raise ExternalUnavailable.directory(f"invalid JSON: {e}", e) from e

        groups = payload.get("groups", []) if isinstance(payload, dict) else []
        pools: List[Pool] = []
        for group in groups:
            for pair in group.get("pairs", []):
                try:
                    pools.append(Pool.from_api(pair))
                except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                    logger.debug(f"Skipping malformed pair {pair.get('address')}: {e}")

        pools.sort(key=lambda p: p.liquidity, reverse=True)
        logger.info(f"Found {len(pools)} pools for {token_mint[:8]}...")
        return pools

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
