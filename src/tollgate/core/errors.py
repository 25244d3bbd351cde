"""Exception hierarchy for tollgate.

Every module imports from here. The hierarchy is:

    TollgateError
    ├── RegistryError
    │   ├── DuplicateToolError(name)
    │   ├── ToolNotFoundError(name)
    │   └── RegistryFrozenError
    ├── PaymentError
    │   ├── NotPricedError(tool_name)
    │   └── LedgerUnreachableError
    ├── ProtocolError(code)
    │   └── ParseError
    ├── InvocationError
    ├── ConfigError
    └── StorageError

Protocol outcomes (payment required, rejected proofs, replays) are not
raised; the invoker returns them as ``Outcome`` values.
"""

from __future__ import annotations

# JSON-RPC 2.0 reserved codes
PARSE_ERROR_CODE = -32700
INVALID_REQUEST_CODE = -32600
INTERNAL_ERROR_CODE = -32603


class TollgateError(Exception):
    """Base exception for all tollgate errors."""


# ─── Registry Errors ──────────────────────────────────────────


class RegistryError(TollgateError):
    """Base for tool registry errors."""


class DuplicateToolError(RegistryError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class ToolNotFoundError(RegistryError):
    """No tool registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}")


class RegistryFrozenError(RegistryError):
    """Registration attempted after the registry was frozen."""


# ─── Payment Errors ───────────────────────────────────────────


class PaymentError(TollgateError):
    """Base for payment plumbing errors."""


class NotPricedError(PaymentError):
    """A payment requirement was requested for a free tool."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool is not priced: {tool_name}")


class LedgerUnreachableError(PaymentError):
    """The ledger could not be queried (network, timeout, 5xx)."""


# ─── Protocol Errors ──────────────────────────────────────────


class ProtocolError(TollgateError):
    """Malformed RPC envelope. Carries the JSON-RPC error code."""

    def __init__(self, message: str, code: int = INVALID_REQUEST_CODE) -> None:
        self.code = code
        super().__init__(message)


class ParseError(ProtocolError):
    """Request body is not valid JSON."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=PARSE_ERROR_CODE)


# ─── Invocation Errors ────────────────────────────────────────


class InvocationError(TollgateError):
    """Illegal invocation state transition."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(TollgateError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(TollgateError):
    """Replay store or database error."""
