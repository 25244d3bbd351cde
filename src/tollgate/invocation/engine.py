"""Tool invoker: drives one call request to an outcome.

Flow for a priced tool::

    received -> price_check -> no_proof_supplied -> payment_required
                            -> proof_supplied -> verifying -> accepted
                                                 -> executing -> completed

Free tools go straight from ``received`` to ``unpriced`` and never touch
the issuer, the replay store or the verifier.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tollgate.core.errors import StorageError
from tollgate.invocation.machine import (
    InvocationContext,
    InvocationState,
    InvocationStateMachine,
)
from tollgate.invocation.outcome import (
    ErrorKind,
    Failure,
    PaymentRequired,
    Success,
)
from tollgate.payments.proof import PAYMENT_ARGUMENT
from tollgate.payments.replay import (
    InMemoryReplayStore,
    ResultCache,
    call_fingerprint,
)
from tollgate.payments.requirements import issue
from tollgate.payments.verifier import VerificationStatus
from tollgate.tools.base import ToolResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tollgate.invocation.outcome import CallId, CallRequest, Outcome
    from tollgate.payments.proof import PaymentProof
    from tollgate.payments.replay import Claim, ReplayStore
    from tollgate.payments.requirements import PaymentRequirement
    from tollgate.payments.verifier import LedgerVerifier
    from tollgate.tools.base import ToolDescriptor
    from tollgate.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_TIMEOUT = 10.0

_VERIFIER_UNAVAILABLE = "Payment verifier unavailable; resend the same request later"
_STORE_UNAVAILABLE = "Replay store unavailable; resend the same request later"


@dataclass
class _LockEntry:
    lock: asyncio.Lock
    waiters: int = 0


@dataclass(frozen=True, slots=True)
class _Settlement:
    status: VerificationStatus
    claim: Claim | None = None
    reason: str = _VERIFIER_UNAVAILABLE


def strip_payment(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return business arguments without the reserved payment field."""
    if PAYMENT_ARGUMENT not in arguments:
        return arguments
    return {k: v for k, v in arguments.items() if k != PAYMENT_ARGUMENT}


class ToolInvoker:
    """Sole entry point for transports: ``invoke(CallRequest) -> Outcome``."""

    def __init__(
        self,
        registry: ToolRegistry,
        verifier: LedgerVerifier,
        replay_store: ReplayStore | None = None,
        result_cache: ResultCache | None = None,
        verify_timeout: float = DEFAULT_VERIFY_TIMEOUT,
    ) -> None:
        self._registry = registry
        self._verifier = verifier
        self._store: ReplayStore = (
            replay_store if replay_store is not None else InMemoryReplayStore()
        )
        self._cache = result_cache if result_cache is not None else ResultCache()
        self._verify_timeout = verify_timeout
        self._signature_locks: dict[str, _LockEntry] = {}

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def invoke(self, request: CallRequest) -> Outcome:
        """Run one call request to a terminal outcome."""
        outcome, _ = await self.invoke_traced(request)
        return outcome

    async def invoke_traced(
        self, request: CallRequest
    ) -> tuple[Outcome, InvocationContext]:
        """Like :meth:`invoke`, also returning the state path taken."""
        ctx = InvocationContext(call_id=request.id, tool_name=request.tool_name)
        sm = InvocationStateMachine(ctx)

        tool = self._registry.lookup(request.tool_name)
        if tool is None:
            message = f"Tool not found: {request.tool_name}"
            sm.fail(message)
            return Failure(ErrorKind.TOOL_NOT_FOUND, message), ctx

        arguments = strip_payment(request.arguments)

        if not tool.priced:
            sm.transition(InvocationState.UNPRICED)
            return await self._execute(sm, tool, arguments), ctx

        sm.transition(InvocationState.PRICE_CHECK)
        proof = request.payment_proof
        if proof is None:
            sm.transition(InvocationState.NO_PROOF_SUPPLIED)
            requirement = issue(tool)
            sm.transition(InvocationState.PAYMENT_REQUIRED)
            logger.debug("Payment required for %s (call %r)", tool.name, request.id)
            return PaymentRequired(requirement), ctx

        sm.transition(InvocationState.PROOF_SUPPLIED)
        async with self._signature_lock(proof.signature):
            outcome = await self._paid_call(sm, request, tool, proof, arguments)
        return outcome, ctx

    # ── Paid path ─────────────────────────────────────────────

    async def _paid_call(
        self,
        sm: InvocationStateMachine,
        request: CallRequest,
        tool: ToolDescriptor,
        proof: PaymentProof,
        arguments: dict[str, Any],
    ) -> Outcome:
        fingerprint = call_fingerprint(tool.name, arguments)
        try:
            held = await self._store.claim_of(proof.signature)
        except StorageError:
            logger.warning(
                "Replay store lookup failed for %s", proof.signature, exc_info=True
            )
            sm.fail(_STORE_UNAVAILABLE)
            return Failure(ErrorKind.VERIFIER_UNAVAILABLE, _STORE_UNAVAILABLE)

        if held is not None:
            if not held.matches(request.id, fingerprint):
                return self._replayed_proof(sm, request, proof)
            cached = self._cache.get(proof.signature, request.id, fingerprint)
            if cached is not None:
                sm.transition(InvocationState.REPLAYED)
                logger.info(
                    "Returning cached result for resent call %r to %s",
                    request.id,
                    tool.name,
                )
                return cached

        requirement = issue(tool)
        sm.transition(InvocationState.VERIFYING)
        # Shielded so an abandoned call still records a verified signature.
        settle = asyncio.ensure_future(
            self._verify_and_claim(proof, requirement, request.id, fingerprint)
        )
        settlement = await asyncio.shield(settle)
        status = settlement.status

        if status is VerificationStatus.UNREACHABLE:
            sm.transition(InvocationState.VERIFIER_UNAVAILABLE)
            return Failure(ErrorKind.VERIFIER_UNAVAILABLE, settlement.reason)
        if status is not VerificationStatus.VERIFIED:
            sm.transition(InvocationState.REJECTED)
            logger.warning(
                "Payment proof %s for %s rejected: %s",
                proof.signature,
                tool.name,
                status.value,
            )
            return Failure(
                ErrorKind.PAYMENT_REJECTED,
                f"Payment proof rejected ({status.value})",
            )

        claim = settlement.claim
        if claim is not None and not claim.matches(request.id, fingerprint):
            return self._replayed_proof(sm, request, proof)

        sm.transition(InvocationState.ACCEPTED)
        sm.transition(InvocationState.EXECUTING)
        outcome = await self._execute(sm, tool, arguments)
        if isinstance(outcome, Success):
            self._cache.put(proof.signature, request.id, outcome, fingerprint)
            logger.info(
                "Paid call %r to %s completed (%s %s from %s)",
                request.id,
                tool.name,
                requirement.amount,
                requirement.currency,
                proof.payer,
            )
        return outcome

    async def _verify_and_claim(
        self,
        proof: PaymentProof,
        requirement: PaymentRequirement,
        call_id: CallId,
        fingerprint: str,
    ) -> _Settlement:
        """Verify, then record the signature. Never raises."""
        try:
            status = await asyncio.wait_for(
                self._verifier.verify(proof, requirement),
                timeout=self._verify_timeout,
            )
        except TimeoutError:
            logger.warning(
                "Verification of %s timed out after %.1fs",
                proof.signature,
                self._verify_timeout,
            )
            return _Settlement(VerificationStatus.UNREACHABLE)
        except Exception:
            logger.warning("Verifier raised for %s", proof.signature, exc_info=True)
            return _Settlement(VerificationStatus.UNREACHABLE)

        if status is VerificationStatus.UNREACHABLE:
            logger.warning("Ledger unreachable while verifying %s", proof.signature)
        if status is not VerificationStatus.VERIFIED:
            return _Settlement(status)

        try:
            claim = await self._store.check_and_set(
                proof.signature, call_id, fingerprint
            )
        except StorageError:
            logger.warning(
                "Could not record verified proof %s", proof.signature, exc_info=True
            )
            return _Settlement(
                VerificationStatus.UNREACHABLE, reason=_STORE_UNAVAILABLE
            )
        return _Settlement(status, claim)

    def _replayed_proof(
        self,
        sm: InvocationStateMachine,
        request: CallRequest,
        proof: PaymentProof,
    ) -> Failure:
        message = f"Payment proof already used: {proof.signature}"
        sm.fail(message)
        logger.warning("Replay of %s rejected for call %r", proof.signature, request.id)
        return Failure(ErrorKind.PROOF_ALREADY_USED, message)

    # ── Execution ─────────────────────────────────────────────

    async def _execute(
        self,
        sm: InvocationStateMachine,
        tool: ToolDescriptor,
        arguments: dict[str, Any],
    ) -> Outcome:
        try:
            result = await tool.handler.execute(arguments)
            if not isinstance(result, ToolResult):
                msg = f"Handler returned {type(result).__name__}, expected ToolResult"
                raise TypeError(msg)
        except Exception as exc:
            logger.exception("Tool %s failed", tool.name)
            sm.transition(InvocationState.HANDLER_FAILED)
            return Failure(ErrorKind.HANDLER_ERROR, f"Tool execution error: {exc}")
        sm.transition(InvocationState.COMPLETED)
        return Success(result)

    @asynccontextmanager
    async def _signature_lock(self, signature: str) -> AsyncIterator[None]:
        """Serialize calls carrying the same proof within this process."""
        entry = self._signature_locks.get(signature)
        if entry is None:
            entry = self._signature_locks[signature] = _LockEntry(asyncio.Lock())
        entry.waiters += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.waiters -= 1
            if entry.waiters == 0:
                del self._signature_locks[signature]
