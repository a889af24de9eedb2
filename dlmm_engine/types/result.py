"""
Result type definitions for units of work and quotes
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from ..errors import DlmmEngineError, PartialDataWarning


T = TypeVar("T")


class UnitStatus(Enum):
    """Outcome of one unit of work (one position, one plan computation)"""
    SUCCESS = "success"
    PARTIAL = "partial"  # Value present, some contributions degraded
    FAILED = "failed"


@dataclass
class UnitResult(Generic[T]):
    """
    Typed per-unit result

    Attributes:
        status: Unit status
        value: Computed value (None when failed)
        error: Fatal error if failed
        warnings: Degraded contributions (partial results)
        unit_id: Identifier of the unit (position address, plan generation...)
    """
    status: UnitStatus
    value: Optional[T] = None
    error: Optional[DlmmEngineError] = None
    warnings: List[PartialDataWarning] = field(default_factory=list)
    unit_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == UnitStatus.SUCCESS

    @property
    def is_partial(self) -> bool:
        return self.status == UnitStatus.PARTIAL

    @property
    def is_failed(self) -> bool:
        return self.status == UnitStatus.FAILED

    @property
    def recoverable(self) -> bool:
        """Whether the caller may retry (external collaborator failures only)"""
        return self.error is not None and self.error.recoverable

    @classmethod
    def of(cls, value: T, warnings: Optional[List[PartialDataWarning]] = None, **kwargs) -> "UnitResult[T]":
        """SUCCESS when no warnings, PARTIAL otherwise"""
        warnings = list(warnings or [])
        status = UnitStatus.PARTIAL if warnings else UnitStatus.SUCCESS
        return cls(status=status, value=value, warnings=warnings, **kwargs)

    @classmethod
    def success(cls, value: T, **kwargs) -> "UnitResult[T]":
        """Create successful result"""
        return cls(status=UnitStatus.SUCCESS, value=value, **kwargs)

    @classmethod
    def failed(cls, error: DlmmEngineError, **kwargs) -> "UnitResult[T]":
        """Create failed result"""
        return cls(status=UnitStatus.FAILED, error=error, **kwargs)

    def to_dict(self) -> dict:
        value: Any = self.value
        if value is not None and hasattr(value, "to_dict"):
            value = value.to_dict()
        return {
            "status": self.status.value,
            "unit_id": self.unit_id,
            "value": value,
            "error": None if self.error is None else {
                "code": self.error.code.value,
                "message": self.error.message,
                "recoverable": self.error.recoverable,
            },
            "warnings": [w.to_dict() for w in self.warnings],
        }

    def __str__(self) -> str:
        if self.is_failed:
            return f"UnitResult(FAILED, error={self.error})"
        return f"UnitResult({self.status.value}, warnings={len(self.warnings)})"


@dataclass
class QuoteResult:
    """
    Swap quote result

    Attributes:
        from_token: Input token mint
        to_token: Output token mint
        from_amount: Input amount (raw)
        to_amount: Output amount (raw)
        price_impact: Price impact as decimal (0.01 = 1%)
        route: Route description (AMM labels)
        min_to_amount: Minimum output after slippage
        slippage_bps: Applied slippage in basis points
        raw_response: Raw API response data
    """
    from_token: str
    to_token: str
    from_amount: int
    to_amount: int
    price_impact: Decimal = Decimal(0)
    route: List[str] = field(default_factory=list)
    min_to_amount: Optional[int] = None
    slippage_bps: int = 50
    raw_response: Optional[dict] = None

    @property
    def route_description(self) -> str:
        return " -> ".join(self.route) if self.route else "direct"

    def to_dict(self) -> dict:
        return {
            "from_token": self.from_token,
            "to_token": self.to_token,
            "from_amount": str(self.from_amount),
            "to_amount": str(self.to_amount),
            "min_to_amount": None if self.min_to_amount is None else str(self.min_to_amount),
            "price_impact": str(self.price_impact),
            "route": list(self.route),
            "slippage_bps": self.slippage_bps,
        }

    def __str__(self) -> str:
        return f"Quote({self.from_amount} -> {self.to_amount}, route={self.route_description})"
