"""Invocation state machine — states, context, transitions.

Pure logic module. No IO (no ledger calls, no handler execution).
The invoker performs the work; this module validates that each step
is a legal transition and records the path taken by one call.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tollgate.core.errors import InvocationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tollgate.invocation.outcome import CallId


class InvocationState(enum.Enum):
    """States one call request moves through."""

    RECEIVED = "received"
    UNPRICED = "unpriced"
    PRICE_CHECK = "price_check"
    NO_PROOF_SUPPLIED = "no_proof_supplied"
    PAYMENT_REQUIRED = "payment_required"
    PROOF_SUPPLIED = "proof_supplied"
    VERIFYING = "verifying"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    VERIFIER_UNAVAILABLE = "verifier_unavailable"
    EXECUTING = "executing"
    COMPLETED = "completed"
    HANDLER_FAILED = "handler_failed"
    # Pre-payment exits: unknown tool, replayed proof, cached replay
    FAILED = "failed"
    REPLAYED = "replayed"


_VALID_TRANSITIONS: dict[InvocationState, frozenset[InvocationState]] = {
    InvocationState.RECEIVED: frozenset(
        {InvocationState.UNPRICED, InvocationState.PRICE_CHECK}
    ),
    InvocationState.UNPRICED: frozenset(
        {InvocationState.COMPLETED, InvocationState.HANDLER_FAILED}
    ),
    InvocationState.PRICE_CHECK: frozenset(
        {InvocationState.NO_PROOF_SUPPLIED, InvocationState.PROOF_SUPPLIED}
    ),
    InvocationState.NO_PROOF_SUPPLIED: frozenset({InvocationState.PAYMENT_REQUIRED}),
    InvocationState.PROOF_SUPPLIED: frozenset(
        {InvocationState.VERIFYING, InvocationState.REPLAYED}
    ),
    InvocationState.VERIFYING: frozenset(
        {
            InvocationState.ACCEPTED,
            InvocationState.REJECTED,
            InvocationState.VERIFIER_UNAVAILABLE,
        }
    ),
    InvocationState.ACCEPTED: frozenset({InvocationState.EXECUTING}),
    InvocationState.EXECUTING: frozenset(
        {InvocationState.COMPLETED, InvocationState.HANDLER_FAILED}
    ),
}

# FAILED can be reached from any non-terminal state (handled separately).
_TERMINAL_STATES: frozenset[InvocationState] = frozenset(
    {
        InvocationState.PAYMENT_REQUIRED,
        InvocationState.REJECTED,
        InvocationState.VERIFIER_UNAVAILABLE,
        InvocationState.COMPLETED,
        InvocationState.HANDLER_FAILED,
        InvocationState.FAILED,
        InvocationState.REPLAYED,
    }
)


@dataclass
class InvocationContext:
    """Mutable record of one call's progress."""

    call_id: CallId
    tool_name: str
    state: InvocationState = InvocationState.RECEIVED
    path: list[InvocationState] = field(
        default_factory=lambda: [InvocationState.RECEIVED]
    )
    error: str | None = None


class InvocationStateMachine:
    """Validates and applies invocation state transitions."""

    def __init__(self, context: InvocationContext) -> None:
        self._ctx = context

    @property
    def context(self) -> InvocationContext:
        return self._ctx

    @property
    def state(self) -> InvocationState:
        return self._ctx.state

    @property
    def is_terminal(self) -> bool:
        return self._ctx.state in _TERMINAL_STATES

    def can_transition(self, to: InvocationState) -> bool:
        """Check if a transition is valid without raising."""
        if self._ctx.state in _TERMINAL_STATES:
            return False
        if to == InvocationState.FAILED:
            return True
        return to in _VALID_TRANSITIONS.get(self._ctx.state, frozenset())

    def transition(self, to: InvocationState) -> None:
        """Move to ``to``.

        Raises:
            InvocationError: If the transition is not allowed.
        """
        current = self._ctx.state
        if current in _TERMINAL_STATES:
            msg = f"Cannot transition from terminal state {current.value}"
            raise InvocationError(msg)
        if not self.can_transition(to):
            msg = f"Invalid transition: {current.value} -> {to.value}"
            raise InvocationError(msg)
        self._ctx.state = to
        self._ctx.path.append(to)

    def fail(self, error: str) -> None:
        """Transition to FAILED with an error message."""
        self.transition(InvocationState.FAILED)
        self._ctx.error = error

    def valid_transitions(self) -> Sequence[InvocationState]:
        """Return the list of currently valid transitions."""
        if self._ctx.state in _TERMINAL_STATES:
            return []
        candidates = list(_VALID_TRANSITIONS.get(self._ctx.state, frozenset()))
        candidates.append(InvocationState.FAILED)
        return candidates
