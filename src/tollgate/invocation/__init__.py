"""Invocation engine and outcome types."""

from tollgate.invocation.engine import ToolInvoker, strip_payment
from tollgate.invocation.machine import (
    InvocationContext,
    InvocationState,
    InvocationStateMachine,
)
from tollgate.invocation.outcome import (
    CallId,
    CallRequest,
    ErrorKind,
    Failure,
    Outcome,
    PaymentRequired,
    Success,
)

__all__ = [
    "CallId",
    "CallRequest",
    "ErrorKind",
    "Failure",
    "InvocationContext",
    "InvocationState",
    "InvocationStateMachine",
    "Outcome",
    "PaymentRequired",
    "Success",
    "ToolInvoker",
    "strip_payment",
]
