"""Ledger verifiers — confirm a payment proof against a requirement.

The invoker only depends on the :class:`LedgerVerifier` protocol.
Three implementations ship here:

- :class:`StaticVerifier` answers with a fixed status (tests, demos).
- :class:`LedgerBackedVerifier` checks proofs against an
  :class:`InMemoryLedger` of settled transfers.
- :class:`HttpLedgerVerifier` asks a remote ledger query service.

``UNREACHABLE`` means "could not ask", never "the payment is bad".
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from tollgate.core.errors import LedgerUnreachableError

if TYPE_CHECKING:
    from tollgate.payments.proof import PaymentProof
    from tollgate.payments.requirements import PaymentRequirement

logger = logging.getLogger(__name__)


class VerificationStatus(enum.Enum):
    """Result of checking one proof against one requirement."""

    VERIFIED = "verified"
    INSUFFICIENT = "insufficient"
    INVALID = "invalid"
    UNREACHABLE = "unreachable"


@runtime_checkable
class LedgerVerifier(Protocol):
    """Protocol that ledger verifiers must satisfy."""

    async def verify(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> VerificationStatus:
        """Check ``proof`` against ``requirement``.

        May perform network I/O. Implementations should report ledger
        outages as ``UNREACHABLE`` rather than raising.
        """
        ...


# ── Static stub ──────────────────────────────────────────────────


class StaticVerifier:
    """Answers every verification with the same status."""

    def __init__(self, status: VerificationStatus = VerificationStatus.VERIFIED) -> None:
        self.status = status
        self.calls: list[tuple[PaymentProof, PaymentRequirement]] = []

    async def verify(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> VerificationStatus:
        self.calls.append((proof, requirement))
        return self.status


# ── Local ledger ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Transfer:
    """A settled transfer as recorded by the ledger."""

    amount: int
    asset_address: str
    recipient: str
    network: str
    payer: str
    reversed: bool = False


@dataclass
class InMemoryLedger:
    """Settled transfers keyed by signature."""

    transfers: dict[str, Transfer] = field(default_factory=dict)

    def record(self, signature: str, transfer: Transfer) -> None:
        self.transfers[signature] = transfer

    def reverse(self, signature: str) -> None:
        transfer = self.transfers[signature]
        self.transfers[signature] = Transfer(
            amount=transfer.amount,
            asset_address=transfer.asset_address,
            recipient=transfer.recipient,
            network=transfer.network,
            payer=transfer.payer,
            reversed=True,
        )

    def find(self, signature: str) -> Transfer | None:
        return self.transfers.get(signature)


def check_transfer(
    transfer: Transfer | None,
    proof: PaymentProof,
    requirement: PaymentRequirement,
) -> VerificationStatus:
    """Apply the settlement rules to a ledger lookup."""
    if transfer is None or transfer.reversed:
        return VerificationStatus.INVALID
    if (
        transfer.asset_address != requirement.asset.address
        or transfer.network != requirement.network
        or transfer.recipient != requirement.recipient
    ):
        return VerificationStatus.INVALID
    if transfer.payer != proof.payer:
        return VerificationStatus.INVALID
    if transfer.amount < requirement.amount or proof.amount < requirement.amount:
        return VerificationStatus.INSUFFICIENT
    return VerificationStatus.VERIFIED


class LedgerBackedVerifier:
    """Verifies proofs against an :class:`InMemoryLedger`."""

    def __init__(self, ledger: InMemoryLedger | None = None) -> None:
        self.ledger = ledger or InMemoryLedger()

    async def verify(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> VerificationStatus:
        if not proof.signature:
            return VerificationStatus.INVALID
        return check_transfer(self.ledger.find(proof.signature), proof, requirement)


# ── Remote ledger service ────────────────────────────────────────

_STATUS_BY_NAME = {status.value: status for status in VerificationStatus}


class HttpLedgerVerifier:
    """Queries a remote ledger service over HTTP.

    ``POST {base_url}/verify`` with ``{"paymentProof", "paymentRequirement"}``
    and expects ``{"status": "verified" | "insufficient" | "invalid"}``.
    Transport failures, timeouts and 5xx responses are ``UNREACHABLE``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def verify(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> VerificationStatus:
        try:
            payload = await self._query(proof, requirement)
        except LedgerUnreachableError as exc:
            logger.warning("Ledger unreachable for %s: %s", proof.signature, exc)
            return VerificationStatus.UNREACHABLE
        if payload is None:
            return VerificationStatus.INVALID

        status = _STATUS_BY_NAME.get(str(payload.get("status", "")).lower())
        if status is None or status is VerificationStatus.UNREACHABLE:
            logger.warning("Ledger returned unexpected payload: %r", payload)
            return VerificationStatus.INVALID
        return status

    async def _query(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> dict[str, Any] | None:
        """POST the verification request. None means a 4xx rejection."""
        body = {
            "paymentProof": proof.to_dict(),
            "paymentRequirement": requirement.to_dict(),
        }
        try:
            response = await self._client.post(f"{self._url}/verify", json=body)
        except httpx.HTTPError as exc:
            raise LedgerUnreachableError(str(exc)) from exc

        if response.status_code >= 500:
            msg = f"Ledger service returned {response.status_code}"
            raise LedgerUnreachableError(msg)
        if response.status_code >= 400:
            return None

        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"Ledger service returned invalid JSON: {exc}"
            raise LedgerUnreachableError(msg) from exc
        if not isinstance(payload, dict):
            return {}
        return payload
