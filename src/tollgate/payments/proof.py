"""Caller-supplied evidence of a settled transfer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class PaymentProof:
    """Opaque capability token forwarded to the ledger verifier.

    ``signature`` is the ledger-specific transfer reference and the
    anti-replay key. Nothing else in the proof is interpreted outside
    the verifier.
    """

    signature: str
    amount: int
    payer: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "timestamp": self.timestamp.isoformat(),
            "amount": self.amount,
            "payer": self.payer,
        }

# Reserved argument name carrying the proof in ``tools/call`` arguments.
PAYMENT_ARGUMENT = "_payment"
