"""
Pool directory type definitions
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass
class Pool:
    """
    DLMM pool as listed by the pool directory

    Attributes:
        address: LbPair address (base58)
        name: Pair name (e.g., "BONK-SOL")
        token_x_mint: Base token mint
        token_y_mint: Quote token mint
        bin_step: Bin step in basis points
        base_fee_bps: Base fee in basis points
        current_price: Current UI price of token X in token Y
        liquidity: Pool liquidity in USD
        trade_volume_24h: 24h trade volume in USD
        active_bin_id: Active bin ID when known (from chain)
    """
    address: str
    name: str
    token_x_mint: str
    token_y_mint: str
    bin_step: int
    base_fee_bps: Decimal = Decimal(0)
    current_price: Decimal = Decimal(0)
    liquidity: Decimal = Decimal(0)
    trade_volume_24h: Decimal = Decimal(0)
    active_bin_id: Optional[int] = None

    # Additional metadata
    metadata: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.name} (bin_step={self.bin_step})"

    def __repr__(self) -> str:
        return f"Pool({self.name}, {self.address[:8]}...)"

    def has_mint(self, mint: str) -> bool:
        return mint in (self.token_x_mint, self.token_y_mint)

    @classmethod
    def from_api(cls, data: dict) -> "Pool":
        """Build from a directory API pair entry"""
        return cls(
            address=data["address"],
            name=data.get("name") or f"{data['mint_x'][:4]}-{data['mint_y'][:4]}",
            token_x_mint=data["mint_x"],
            token_y_mint=data["mint_y"],
            bin_step=int(data["bin_step"]),
            base_fee_bps=Decimal(str(data.get("base_fee_percentage") or "0")) * 100,
            current_price=Decimal(str(data.get("current_price") or "0")),
            liquidity=Decimal(str(data.get("liquidity") or "0")),
            trade_volume_24h=Decimal(str(data.get("trade_volume_24h") or "0")),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary"""
        return {
            "address": self.address,
            "name": self.name,
            "token_x_mint": self.token_x_mint,
            "token_y_mint": self.token_y_mint,
            "bin_step": self.bin_step,
            "base_fee_bps": str(self.base_fee_bps),
            "current_price": str(self.current_price),
            "liquidity": str(self.liquidity),
            "trade_volume_24h": str(self.trade_volume_24h),
            "active_bin_id": self.active_bin_id,
        }
