"""Core errors and shared utilities."""

from tollgate.core.errors import (
    ConfigError,
    DuplicateToolError,
    InvocationError,
    LedgerUnreachableError,
    NotPricedError,
    ParseError,
    PaymentError,
    ProtocolError,
    RegistryError,
    RegistryFrozenError,
    StorageError,
    TollgateError,
    ToolNotFoundError,
)
from tollgate.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "ConfigError",
    "DuplicateToolError",
    "InvocationError",
    "LedgerUnreachableError",
    "NotPricedError",
    "ParseError",
    "PaymentError",
    "ProtocolError",
    "RegistryError",
    "RegistryFrozenError",
    "RetryConfig",
    "StorageError",
    "TollgateError",
    "ToolNotFoundError",
    "is_retryable",
    "retry_with_backoff",
]
