"""
Jupiter API Client

Async REST clients for the Jupiter price oracle and swap quote router.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Sequence

import httpx

from ...types import QuoteResult
from ...config import config as global_config
from ...errors import ExternalUnavailable

logger = logging.getLogger(__name__)


class _JupiterHttp:
    """Lazily created shared httpx.AsyncClient"""

    def __init__(self, timeout: float):
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class JupiterPriceAPI(_JupiterHttp):
    """
    Jupiter price oracle (price v2)

    Usage:
        api = JupiterPriceAPI()
        prices = await api.get_prices(["So111...", "EPjF..."])
        sol_usd = prices.get("So111...")
    """

    def __init__(
        self,
        timeout: float = None,
        price_url: str = None,
    ):
        """
        Initialize Jupiter price client

        Args:
            timeout: Request timeout in seconds (default from config)
            price_url: Price API URL (default from config)
        """
        super().__init__(timeout if timeout is not None else global_config.jupiter.timeout)
        self._price_url = price_url if price_url is not None else global_config.jupiter.price_url

    async def get_prices(
        self,
        mints: Sequence[str],
        vs_token: Optional[str] = None,
    ) -> Dict[str, Decimal]:
        """
        Get unit prices for many mints in one request

        Args:
            mints: Token mint addresses
            vs_token: Quote mint (default USD)

        Returns:
            Mapping mint -> price; mints without a price are absent

        Raises:
            ExternalUnavailable: Oracle unreachable or malformed response
        """
        ids = list(dict.fromkeys(m for m in mints if m))
        if not ids:
            return {}

        params = {"ids": ",".join(ids)}
        if vs_token:
            params["vsToken"] = vs_token

        try:
            response = await self._get_client().get(self._price_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Jupiter price request failed: {e}")
            raise ExternalUnavailable.oracle(f"HTTP {e.response.status_code}", e) from e
        except httpx.RequestError as e:
            logger.warning(f"Jupiter price request error: {e}")
            raise ExternalUnavailable.oracle(str(e) or type(e).__name__, e) from e
        except ValueError as e:
            raise ExternalUnavailable.oracle(f"invalid JSON: {e}", e) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ExternalUnavailable.oracle("response has no data mapping")

        prices: Dict[str, Decimal] = {}
        for mint in ids:
            entry = data.get(mint)
            if not entry or entry.get("price") is None:
                continue
            try:
                price = Decimal(str(entry["price"]))
            except InvalidOperation:
                logger.warning(f"Ignoring unparsable price for {mint}: {entry['price']!r}")
                continue
            if price.is_finite() and price >= 0:
                prices[mint] = price

        logger.debug(f"Jupiter returned {len(prices)}/{len(ids)} prices")
        return prices


class JupiterQuoteAPI(_JupiterHttp):
    """
    Jupiter swap quote router

    Usage:
        api = JupiterQuoteAPI()
        quote = await api.quote("So111...", 1_000_000_000, "EPjF...")
        if quote is None:
            pass  # no route
    """

    def __init__(
        self,
        timeout: float = None,
        quote_url: str = None,
        slippage_bps: int = None,
    ):
        """
        Initialize Jupiter quote client

        Args:
            timeout: Request timeout in seconds (default from config)
            quote_url: Quote API URL (default from config)
            slippage_bps: Default slippage tolerance (default from config)
        """
        super().__init__(timeout if timeout is not None else global_config.jupiter.timeout)
        self._quote_url = quote_url if quote_url is not None else global_config.jupiter.quote_url
        self._slippage_bps = slippage_bps if slippage_bps is not None else global_config.jupiter.slippage_bps

    async def quote(
        self,
        source_mint: str,
        source_amount: int,
        dest_mint: str,
        slippage_bps: Optional[int] = None,
    ) -> Optional[QuoteResult]:
        """
        Get swap quote from Jupiter (ExactIn)

        Args:
            source_mint: Input token mint address
            source_amount: Amount in smallest units
            dest_mint: Output token mint address
            slippage_bps: Slippage tolerance in basis points

        Returns:
            QuoteResult, or None when Jupiter has no route

        Raises:
            ExternalUnavailable: Router unreachable or failing
        """
        slippage_bps = self._slippage_bps if slippage_bps is None else slippage_bps
        params = {
            "inputMint": source_mint,
            "outputMint": dest_mint,
            "amount": str(source_amount),
            "slippageBps": slippage_bps,
            "swapMode": "ExactIn",
        }

        try:
            response = await self._get_client().get(self._quote_url, params=params)
            if response.status_code in (400, 404):
                # No route / unknown token
                logger.info(f"Jupiter has no route {source_mint[:8]}... -> {dest_mint[:8]}...: {response.text}")
                return None
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Jupiter quote failed: {e}")
            raise ExternalUnavailable.router(f"HTTP {e.response.status_code}", e) from e
        except httpx.RequestError as e:
            logger.warning(f"Jupiter quote error: {e}")
            raise ExternalUnavailable.router(str(e) or type(e).__name__, e) from e
        except ValueError as e:
            raise ExternalUnavailable.router(f"invalid JSON: {e}", e) from e

        if not isinstance(data, dict) or not data.get("outAmount"):
            return None

        try:
            in_amount = int(data.get("inAmount", source_amount))
            out_amount = int(data["outAmount"])
            price_impact = Decimal(str(data.get("priceImpactPct") or 0))

            # Get route info
            route_plan = data.get("routePlan") or []
            route = [step.get("swapInfo", {}).get("label", "") for step in route_plan]

            if data.get("otherAmountThreshold") is not None:
                min_out = int(data["otherAmountThreshold"])
            else:
                slippage_factor = Decimal(1) - Decimal(slippage_bps) / Decimal(10000)
                min_out = int(Decimal(out_amount) * slippage_factor)
        except (ValueError, TypeError, AttributeError, ArithmeticError) as e:
            logger.warning(f"Jupiter returned a malformed quote: {e}")
            raise ExternalUnavailable.router(f"malformed quote: {e}", e) from e

        return QuoteResult(
            from_token=source_mint,
            to_token=dest_mint,
            from_amount=in_amount,
            to_amount=out_amount,
            price_impact=price_impact,
            route=route,
            min_to_amount=min_out,
            slippage_bps=slippage_bps,
            raw_response=data,
        )
