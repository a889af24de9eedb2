"""
Infrastructure layer for the DLMM engine

Provides:
- RpcClient: Async chain reader with endpoint fallback and batching
- LatestOnlyRunner: Debounced, cancellable latest-wins execution
- CorrelationContext: Correlation IDs for log tracing
"""

from .rpc import RpcClient, RpcClientConfig, decode_account_data
from .coalesce import (
    LatestOnlyRunner,
    CorrelationContext,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
    log_prefix,
)

__all__ = [
    "RpcClient",
    "RpcClientConfig",
    "decode_account_data",
    "LatestOnlyRunner",
    "CorrelationContext",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "log_prefix",
]
