"""
Async RPC Client for Solana

Provides the chain reader used by the engine:
- Multiple endpoint fallback
- Optional transport-level retry (off by default)
- Rate limit handling
- Request timeout management
- Batched, order-preserving multi-account reads
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from ..errors import ConfigurationError, ExternalUnavailable
from ..config import config as global_config

logger = logging.getLogger(__name__)


@dataclass
class RpcClientConfig:
    """
    RPC client runtime configuration

    Allows per-client overrides while pulling defaults from the global config
    (dlmm_engine.config.RpcConfig).

    Usage:
        # Use all defaults from environment
        client = RpcClient(endpoint)

        # Override specific settings
        config = RpcClientConfig(timeout_seconds=60, max_batch_size=50)
        client = RpcClient(endpoint, config=config)
    """
    timeout_seconds: float = None
    max_retries: int = None
    retry_delay_seconds: float = None
    commitment: str = None
    max_batch_size: int = None
    max_concurrent_requests: int = None

    def __post_init__(self):
        """Apply defaults from global config for any unset values"""
        if self.timeout_seconds is None:
            self.timeout_seconds = global_config.rpc.timeout_seconds
        if self.max_retries is None:
            self.max_retries = global_config.rpc.max_retries
        if self.retry_delay_seconds is None:
            self.retry_delay_seconds = global_config.rpc.retry_delay_seconds
        if self.commitment is None:
            self.commitment = global_config.rpc.commitment
        if self.max_batch_size is None:
            self.max_batch_size = global_config.rpc.max_batch_size
        if self.max_concurrent_requests is None:
            self.max_concurrent_requests = global_config.rpc.max_concurrent_requests
        if self.max_retries < 1:
            raise ConfigurationError.invalid("max_retries", "must be >= 1")
        if self.max_batch_size < 1:
            raise ConfigurationError.invalid("max_batch_size", "must be >= 1")
        if self.max_concurrent_requests < 1:
            raise ConfigurationError.invalid("max_concurrent_requests", "must be >= 1")


def decode_account_data(account: Optional[Dict[str, Any]]) -> Optional[bytes]:
    """
    Extract raw bytes from a base64-encoded account info dict

    Returns:
        Account data, or None when the account does not exist
    """
    if not account:
        return None
    data = account.get("data", [])
    if isinstance(data, list) and len(data) > 0:
        return base64.b64decode(data[0])
    if isinstance(data, str):
        return base64.b64decode(data)
    return None


class RpcClient:
    """
    Async Solana RPC client

    Supports:
    - Multiple RPC endpoints with automatic fallback
    - Rate limit handling with backoff
    - Configurable timeouts
    - getMultipleAccounts batching bounded by a semaphore

    Usage:
        async with RpcClient("https://api.mainnet-beta.solana.com") as rpc:
            data = await rpc.get_account("AccountAddress...")
            blobs = await rpc.get_accounts(["A...", "B..."])
    """

    def __init__(
        self,
        endpoint: Union[str, List[str]],
        config: Optional[RpcClientConfig] = None,
    ):
        """
        Initialize RPC client

        Args:
            endpoint: RPC endpoint URL or list of URLs (for fallback)
            config: RPC configuration options
        """
        self._endpoints = [endpoint] if isinstance(endpoint, str) else list(endpoint)
        self._endpoints = [e for e in self._endpoints if e]
        if not self._endpoints:
            raise ConfigurationError.missing("RPC endpoint")

        self._config = config or RpcClientConfig()
        self._current_endpoint_idx = 0
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    @property
    def endpoint(self) -> str:
        """Current active endpoint"""
        return self._endpoints[self._current_endpoint_idx]

    @property
    def commitment(self) -> str:
        """Default commitment level"""
        return self._config.commitment

    @property
    def config(self) -> RpcClientConfig:
        return self._config

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def _rotate_endpoint(self):
        """Rotate to next endpoint on failure"""
        if len(self._endpoints) > 1:
            self._current_endpoint_idx = (self._current_endpoint_idx + 1) % len(self._endpoints)
            logger.info(f"Rotating to RPC endpoint: {self.endpoint}")

    async def call(
        self,
        method: str,
        params: List[Any],
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Make JSON-RPC call

        Args:
            method: RPC method name
            params: RPC parameters
            timeout: Optional timeout override

        Returns:
            RPC result

        Raises:
            ExternalUnavailable: On RPC failure (after trying every endpoint)
        """
        client = self._get_client()
        self._request_id += 1
        body = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        timeout_val = timeout or self._config.timeout_seconds

        last_error: Optional[ExternalUnavailable] = None
        endpoints_tried = 0
        max_endpoints = len(self._endpoints)

        while endpoints_tried < max_endpoints:
            for attempt in range(self._config.max_retries):
                try:
                    response = await client.post(
                        self.endpoint,
                        json=body,
                        timeout=timeout_val,
                    )

                    # Handle rate limiting
                    if response.status_code == 429:
                        logger.warning(f"Rate limited by {self.endpoint}")
                        last_error = ExternalUnavailable.rate_limited(self.endpoint)
                    else:
                        response.raise_for_status()
                        result = response.json()

                        # Check for RPC error
                        if "error" in result:
                            error = result["error"]
                            error_msg = error.get("message", str(error))
                            rpc_error = ExternalUnavailable(
                                f"RPC error: {error_msg}",
                                endpoint=self.endpoint,
                            )
                            # Preserve RPC error code in details for debugging
                            rpc_error.details["rpc_error_code"] = error.get("code")
                            rpc_error.details["rpc_error_data"] = error.get("data")
                            raise rpc_error

                        return result.get("result")

                except httpx.TimeoutException:
                    last_error = ExternalUnavailable.timeout(self.endpoint, timeout_val)
                    logger.warning(f"RPC timeout (attempt {attempt + 1}): {self.endpoint}")

                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 429:
                        last_error = ExternalUnavailable.rate_limited(self.endpoint)
                    else:
                        last_error = ExternalUnavailable(
                            f"HTTP error {e.response.status_code}",
                            endpoint=self.endpoint,
                            original_error=e,
                        )
                    logger.warning(f"RPC HTTP error (attempt {attempt + 1}): {e}")

                except httpx.RequestError as e:
                    last_error = ExternalUnavailable.connection_failed(self.endpoint, e)
                    logger.warning(f"RPC connection error (attempt {attempt + 1}): {e}")

                except ExternalUnavailable:
                    raise

                except ValueError as e:
                    # Malformed JSON body
                    last_error = ExternalUnavailable(
                        f"Invalid RPC response: {e}",
                        endpoint=self.endpoint,
                        original_error=e,
                    )

                # Wait before retry
                if attempt < self._config.max_retries - 1:
                    await asyncio.sleep(self._config.retry_delay_seconds * (attempt + 1))

            # All attempts failed, try next endpoint
            self._rotate_endpoint()
            endpoints_tried += 1

        # All endpoints failed
        raise last_error or ExternalUnavailable("All RPC endpoints failed")

    async def get_account_info(
        self,
        address: str,
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Get account information

        Args:
            address: Account address (base58)
            encoding: Data encoding ("base64", "jsonParsed", etc.)
            commitment: Commitment level

        Returns:
            Account info or None if not found
        """
        params = [
            address,
            {
                "encoding": encoding,
                "commitment": commitment or self.commitment,
            },
        ]
        result = await self.call("getAccountInfo", params)
        return result.get("value") if result else None

    async def get_account(self, address: str) -> Optional[bytes]:
        """Raw account bytes, None if the account does not exist"""
        return decode_account_data(await self.get_account_info(address))

    async def get_multiple_accounts(
        self,
        addresses: List[str],
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> List[Optional[Dict[str, Any]]]:
        """
        Get multiple account information in one call (single batch)

        Args:
            addresses: List of account addresses
            encoding: Data encoding
            commitment: Commitment level

        Returns:
            List of account info (None for accounts not found)
        """
        params = [
            addresses,
            {
                "encoding": encoding,
                "commitment": commitment or self.commitment,
            },
        ]
        result = await self.call("getMultipleAccounts", params)
        values = result.get("value", []) if result else []
        if len(values) != len(addresses):
            raise ExternalUnavailable(
                f"getMultipleAccounts returned {len(values)} entries for {len(addresses)} addresses",
                endpoint=self.endpoint,
            )
        return values

    async def get_accounts_settled(
        self,
        addresses: Sequence[str],
    ) -> List[Union[bytes, None, ExternalUnavailable]]:
        """
        Fetch many accounts, tolerating failed batches

        Addresses are split into batches of max_batch_size, issued
        concurrently (at most max_concurrent_requests in flight) and joined
        before returning. Order matches the input.

        Returns:
            Per address: bytes, None (not found), or the error of its batch
        """
        addresses = list(addresses)
        if not addresses:
            return []

        size = self._config.max_batch_size
        batches = [addresses[i:i + size] for i in range(0, len(addresses), size)]
        semaphore = asyncio.Semaphore(self._config.max_concurrent_requests)

        async def fetch(batch: List[str]) -> List[Optional[bytes]]:
            async with semaphore:
                accounts = await self.get_multiple_accounts(batch)
            return [decode_account_data(account) for account in accounts]

        logger.debug(f"Fetching {len(addresses)} accounts in {len(batches)} batches")
        settled = await asyncio.gather(*(fetch(b) for b in batches), return_exceptions=True)

        results: List[Union[bytes, None, ExternalUnavailable]] = []
        for batch, outcome in zip(batches, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, ExternalUnavailable):
                    raise outcome
                logger.warning(f"Account batch of {len(batch)} failed: {outcome}")
                results.extend([outcome] * len(batch))
            else:
                results.extend(outcome)
        return results

    async def get_accounts(self, addresses: Sequence[str]) -> List[Optional[bytes]]:
        """
        Fetch many accounts (batched, order-preserving)

        Raises:
            ExternalUnavailable: If any batch failed
        """
        results = await self.get_accounts_settled(addresses)
        for item in results:
            if isinstance(item, ExternalUnavailable):
                raise item
        return results

    async def get_balance(
        self,
        address: str,
        commitment: Optional[str] = None,
    ) -> int:
        """
        Get SOL balance in lamports

        Args:
            address: Account address

        Returns:
            Balance in lamports
        """
        params = [address, {"commitment": commitment or self.commitment}]
        result = await self.call("getBalance", params)
        return result.get("value", 0) if result else 0

    async def get_token_accounts_by_owner(
        self,
        owner: str,
        mint: str,
        commitment: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get token accounts of one mint owned by address (jsonParsed)

        Args:
            owner: Owner address
            mint: Mint filter

        Returns:
            List of token account info
        """
        params = [
            owner,
            {"mint": mint},
            {
                "encoding": "jsonParsed",
                "commitment": commitment or self.commitment,
            },
        ]
        result = await self.call("getTokenAccountsByOwner", params)
        return result.get("value", []) if result else []

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Sum of raw token amounts across the owner's accounts for mint"""
        total = 0
        for account in await self.get_token_accounts_by_owner(owner, mint):
            info = account.get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
            amount = info.get("tokenAmount", {}).get("amount")
            if amount is not None:
                total += int(amount)
        return total

    async def get_program_accounts(
        self,
        program_id: str,
        filters: Optional[List[Dict[str, Any]]] = None,
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get all accounts owned by a program

        Args:
            program_id: Program ID (base58)
            filters: Optional filters (memcmp, dataSize)
            encoding: Data encoding
            commitment: Commitment level

        Returns:
            List of account info dicts with pubkey and account fields

        Example filters:
            [
                {"memcmp": {"offset": 0, "bytes": "base58_data"}},
                {"dataSize": 200}
            ]
        """
        config: Dict[str, Any] = {
            "encoding": encoding,
            "commitment": commitment or self.commitment,
        }
        if filters:
            config["filters"] = filters

        result = await self.call("getProgramAccounts", [program_id, config])
        return result or []

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
