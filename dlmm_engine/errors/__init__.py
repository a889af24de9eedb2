"""
Error definitions for the DLMM engine
"""

from .exceptions import (
    ErrorCode,
    DlmmEngineError,
    DecodeError,
    ResolutionError,
    ValidationError,
    ExternalUnavailable,
    ConfigurationError,
    WarningKind,
    PartialDataWarning,
)

__all__ = [
    "ErrorCode",
    "DlmmEngineError",
    "DecodeError",
    "ResolutionError",
    "ValidationError",
    "ExternalUnavailable",
    "ConfigurationError",
    "WarningKind",
    "PartialDataWarning",
]
