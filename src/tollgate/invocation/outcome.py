"""Call requests and invocation outcomes.

``invoke`` never raises for protocol results. Callers branch on the
outcome type: ``Success``, ``PaymentRequired`` or ``Failure``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tollgate.payments.proof import PaymentProof
    from tollgate.payments.requirements import PaymentRequirement
    from tollgate.tools.base import ToolResult

CallId = str | int


class ErrorKind(enum.Enum):
    """Failure taxonomy. Payment-required is deliberately not a member."""

    TOOL_NOT_FOUND = "tool_not_found"
    NOT_PRICED = "not_priced"
    PAYMENT_REJECTED = "payment_rejected"
    PROOF_ALREADY_USED = "proof_already_used"
    VERIFIER_UNAVAILABLE = "verifier_unavailable"
    HANDLER_ERROR = "handler_error"
    PROTOCOL_ERROR = "protocol_error"


@dataclass(frozen=True, slots=True)
class CallRequest:
    """One attempt at calling a tool.

    A retry with payment is a new ``CallRequest``, not this one mutated.
    """

    id: CallId
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    payment_proof: PaymentProof | None = None


@dataclass(frozen=True, slots=True)
class Success:
    result: ToolResult

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class PaymentRequired:
    """Normal protocol branch: pay, then retry with a proof."""

    requirement: PaymentRequirement

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Failure:
    kind: ErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        """Only verifier outages should be retried automatically."""
        return self.kind is ErrorKind.VERIFIER_UNAVAILABLE


Outcome = Success | PaymentRequired | Failure
