"""TollgateClient -- async caller for the tollgate HTTP transport.

Drives the caller's half of the protocol: call, receive a payment
requirement, obtain a proof out-of-band, retry as a new call carrying
the proof. Only verifier outages are retried automatically.

Usage::

    async def pay(requirement):
        print(format_payment_request(requirement))
        return await wallet.pay(requirement)   # PaymentProof or None

    async with TollgateClient("http://localhost:8000") as client:
        outcome = await client.call_with_payment(
            "place-pizza-order", {"placeId": "place-123"}, pay
        )
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx

from tollgate.core.errors import LedgerUnreachableError
from tollgate.core.retry import RetryConfig, retry_with_backoff
from tollgate.invocation.outcome import CallRequest, Failure, PaymentRequired
from tollgate.rpc.codec import decode_response, encode_request

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tollgate.invocation.outcome import Outcome
    from tollgate.payments.proof import PaymentProof
    from tollgate.payments.requirements import PaymentRequirement

    PayCallback = Callable[[PaymentRequirement], Awaitable[PaymentProof | None]]

logger = logging.getLogger(__name__)


class TollgateAPIError(Exception):
    """Non-JSON-RPC error from the tollgate HTTP transport."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


def _format_units(amount: int, decimals: int) -> str:
    text = f"{Decimal(amount).scaleb(-decimals):.{decimals}f}" if decimals else str(amount)
    if "." not in text:
        return text
    whole, _, frac = text.partition(".")
    frac = frac.rstrip("0").ljust(2, "0")
    return f"{whole}.{frac}"


def format_payment_request(requirement: PaymentRequirement, decimals: int = 6) -> str:
    """User-presentable payment request, built from the requirement alone."""
    amount = _format_units(requirement.amount, decimals)
    lines = [
        f"Amount: {amount} {requirement.currency}",
        f"Recipient: {requirement.recipient}",
        f"Network: {requirement.network}",
    ]
    if requirement.description:
        lines.insert(0, requirement.description)
    return "\n".join(lines)


class TollgateClient:
    """Client for the tollgate ``/rpc`` endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._retry = retry or RetryConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self._base_url, timeout=timeout
        )

    async def __aenter__(self) -> TollgateClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def new_call_id() -> str:
        return uuid.uuid4().hex

    async def send(self, request: CallRequest) -> Outcome:
        """POST one call request and decode the envelope."""
        response = await self._client.post(
            f"{self._base_url}/rpc", json=encode_request(request)
        )
        if response.status_code >= 400:
            raise TollgateAPIError(response.status_code, response.text)
        return decode_response(response.json())

    async def send_retrying(self, request: CallRequest) -> Outcome:
        """Send, resending the identical request while the verifier is down."""
        unavailable: list[Failure] = []

        async def attempt() -> Outcome:
            outcome = await self.send(request)
            if isinstance(outcome, Failure) and outcome.retryable:
                unavailable.append(outcome)
                raise LedgerUnreachableError(outcome.message)
            return outcome

        def on_retry(attempt_no: int, delay: float, error: Exception) -> None:
            logger.info(
                "Verifier unavailable for call %r, retry %d in %.1fs",
                request.id,
                attempt_no,
                delay,
            )

        try:
            return await retry_with_backoff(attempt, self._retry, on_retry=on_retry)
        except LedgerUnreachableError:
            return unavailable[-1]

    async def call(
        self,
        tool: str,
        arguments: dict[str, Any] | None = None,
        proof: PaymentProof | None = None,
    ) -> Outcome:
        """Single attempt with a fresh call id."""
        request = CallRequest(
            id=self.new_call_id(),
            tool_name=tool,
            arguments=dict(arguments or {}),
            payment_proof=proof,
        )
        return await self.send(request)

    async def call_with_payment(
        self,
        tool: str,
        arguments: dict[str, Any] | None,
        pay: PayCallback,
    ) -> Outcome:
        """Call, pay if asked, and retry with the proof.

        ``pay`` returning None means the user declined; the
        ``PaymentRequired`` outcome is returned unchanged.
        """
        outcome = await self.call(tool, arguments)
        if not isinstance(outcome, PaymentRequired):
            return outcome

        proof = await pay(outcome.requirement)
        if proof is None:
            return outcome

        paid = CallRequest(
            id=self.new_call_id(),
            tool_name=tool,
            arguments=dict(arguments or {}),
            payment_proof=proof,
        )
        return await self.send_retrying(paid)
