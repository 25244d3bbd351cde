"""tollgate - payment-gated tool invocation over JSON-RPC."""

__version__ = "0.3.0"
