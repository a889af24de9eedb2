"""
Exception definitions for the DLMM engine
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """
    Unified error codes

    1xxx - Decode errors
    2xxx - Resolution errors
    3xxx - Validation errors
    4xxx - External collaborator errors
    9xxx - Configuration errors
    """
    # Decode errors (fatal for one account)
    DECODE_TOO_SHORT = "1001"
    DECODE_BAD_DISCRIMINATOR = "1002"
    DECODE_FIELD_OUT_OF_RANGE = "1003"

    # Resolution errors (fatal for one position)
    POSITION_NOT_FOUND = "2001"
    PAIR_NOT_FOUND = "2002"
    MINT_NOT_FOUND = "2003"

    # Validation errors (fatal for one computation)
    VALIDATION_FAILED = "3001"

    # External collaborators (recoverable by the caller)
    CHAIN_UNAVAILABLE = "4001"
    CHAIN_TIMEOUT = "4002"
    CHAIN_RATE_LIMITED = "4003"
    ORACLE_UNAVAILABLE = "4101"
    ROUTER_UNAVAILABLE = "4201"
    DIRECTORY_UNAVAILABLE = "4301"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class DlmmEngineError(Exception):
    """
    Base exception for all engine errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the caller may retry the operation
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the caller should retry the operation"""
        return self.recoverable


class DecodeError(DlmmEngineError):
    """
    Malformed account bytes - fatal for that account only

    Raised when:
    - Buffer is shorter than the layout requires
    - Discriminator does not match the expected account kind
    - A decoded field violates its range invariant
    """

    TOO_SHORT = ErrorCode.DECODE_TOO_SHORT
    BAD_DISCRIMINATOR = ErrorCode.DECODE_BAD_DISCRIMINATOR
    FIELD_OUT_OF_RANGE = ErrorCode.DECODE_FIELD_OUT_OF_RANGE

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        kind: Optional[str] = None,
        field_name: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            details={"kind": kind, "field": field_name},
        )
        self.kind = kind
        self.field_name = field_name

    @classmethod
    def too_short(cls, kind: str, need: int, got: int) -> "DecodeError":
        return cls(
            f"{kind} account too short: need {need} bytes, got {got}",
            ErrorCode.DECODE_TOO_SHORT,
            kind=kind,
        )

    @classmethod
    def bad_discriminator(cls, kind: str, got: bytes) -> "DecodeError":
        return cls(
            f"{kind} account has wrong discriminator: {got.hex()}",
            ErrorCode.DECODE_BAD_DISCRIMINATOR,
            kind=kind,
        )

    @classmethod
    def field_out_of_range(cls, kind: str, field_name: str, reason: str) -> "DecodeError":
        return cls(
            f"{kind}.{field_name} out of range: {reason}",
            ErrorCode.DECODE_FIELD_OUT_OF_RANGE,
            kind=kind,
            field_name=field_name,
        )


class ResolutionError(DlmmEngineError):
    """
    Required account missing - fatal for that position

    Raised when:
    - Position account does not exist
    - LbPair account does not exist or cannot be decoded
    - Token X/Y mint metadata is unavailable
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PAIR_NOT_FOUND,
        address: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=original_error,
            details={"address": address},
        )
        self.address = address

    @classmethod
    def position_not_found(cls, address: str) -> "ResolutionError":
        return cls(
            f"Position not found: {address}",
            ErrorCode.POSITION_NOT_FOUND,
            address=address,
        )

    @classmethod
    def pair_not_found(cls, address: str, error: Optional[Exception] = None) -> "ResolutionError":
        return cls(
            f"LbPair not resolvable: {address}",
            ErrorCode.PAIR_NOT_FOUND,
            address=address,
            original_error=error,
        )

    @classmethod
    def mint_not_found(cls, address: str, error: Optional[Exception] = None) -> "ResolutionError":
        return cls(
            f"Mint metadata not resolvable: {address}",
            ErrorCode.MINT_NOT_FOUND,
            address=address,
            original_error=error,
        )


class ValidationError(DlmmEngineError):
    """
    Invalid planner input - fatal for that computation only

    The message names the offending field so it can be shown as-is.
    """

    def __init__(self, message: str, field_name: Optional[str] = None, value: Any = None):
        super().__init__(
            message,
            ErrorCode.VALIDATION_FAILED,
            recoverable=False,
            details={"field": field_name, "value": None if value is None else str(value)},
        )
        self.field_name = field_name
        self.value = value

    @classmethod
    def invalid(cls, field_name: str, value: Any, reason: str) -> "ValidationError":
        return cls(f"Invalid {field_name} {value!r}: {reason}", field_name=field_name, value=value)


class ExternalUnavailable(DlmmEngineError):
    """
    External collaborator failure - recoverable by the calling layer

    Raised when the chain reader, price oracle, swap router or pool
    directory cannot be reached or answers with an error.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CHAIN_UNAVAILABLE,
        service: str = "chain",
        endpoint: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details={"service": service, "endpoint": endpoint},
        )
        self.service = service
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Optional[Exception] = None) -> "ExternalUnavailable":
        return cls(
            f"Failed to connect to RPC endpoint: {endpoint}",
            ErrorCode.CHAIN_UNAVAILABLE,
            endpoint=endpoint,
            original_error=error,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "ExternalUnavailable":
        return cls(
            f"RPC request timed out after {timeout_seconds}s",
            ErrorCode.CHAIN_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "ExternalUnavailable":
        return cls(
            "RPC rate limit exceeded",
            ErrorCode.CHAIN_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def oracle(cls, reason: str, error: Optional[Exception] = None) -> "ExternalUnavailable":
        return cls(
            f"Price oracle unavailable: {reason}",
            ErrorCode.ORACLE_UNAVAILABLE,
            service="oracle",
            original_error=error,
        )

    @classmethod
    def router(cls, reason: str, error: Optional[Exception] = None) -> "ExternalUnavailable":
        return cls(
            f"Swap router unavailable: {reason}",
            ErrorCode.ROUTER_UNAVAILABLE,
            service="router",
            original_error=error,
        )

    @classmethod
    def directory(cls, reason: str, error: Optional[Exception] = None) -> "ExternalUnavailable":
        return cls(
            f"Pool directory unavailable: {reason}",
            ErrorCode.DIRECTORY_UNAVAILABLE,
            service="directory",
            original_error=error,
        )


class ConfigurationError(DlmmEngineError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)


class WarningKind(Enum):
    """Kinds of degraded, non-fatal contributions"""
    MISSING_BIN_ARRAY = "missing_bin_array"
    MISSING_PRICE = "missing_price"
    MISSING_REWARD_MINT = "missing_reward_mint"
    ORACLE_UNAVAILABLE = "oracle_unavailable"
    QUOTE_UNAVAILABLE = "quote_unavailable"
    QUOTE_BELOW_SHORTFALL = "quote_below_shortfall"


@dataclass(frozen=True)
class PartialDataWarning:
    """
    A degraded contribution - never raised, always collected

    Attributes:
        kind: What was missing
        message: Human-readable description
        details: Context (bin ids, mint, chunk index...)
    """
    kind: WarningKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "details": dict(self.details)}
