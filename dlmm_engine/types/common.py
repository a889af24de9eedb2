"""
Common type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


# Wrapped SOL mint, the native asset of every valuation
NATIVE_MINT = "So11111111111111111111111111111111111111112"

# Solana's all-zero pubkey, used on-chain for unset slots
DEFAULT_PUBKEY = "11111111111111111111111111111111"


@dataclass(frozen=True)
class MintInfo:
    """
    SPL mint metadata

    Attributes:
        address: Mint address (base58)
        decimals: Number of decimal places
        supply: Raw total supply
        is_initialized: Mint initialized flag
        mint_authority: Optional mint authority
        freeze_authority: Optional freeze authority
    """
    address: str
    decimals: int
    supply: int = 0
    is_initialized: bool = True
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None

    def __repr__(self) -> str:
        return f"MintInfo({self.address[:8]}..., decimals={self.decimals})"

    def ui_amount(self, raw_amount: int) -> Decimal:
        """
        Convert raw amount to UI amount with full precision

        Args:
            raw_amount: Raw token amount (smallest units)

        Returns:
            UI amount as Decimal (exact, no rounding)
        """
        return Decimal(raw_amount).scaleb(-self.decimals)
