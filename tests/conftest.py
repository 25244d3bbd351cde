"""Shared test fixtures for tollgate."""

from __future__ import annotations

from typing import Any

import pytest

from tests.fixtures.tools import (
    RECIPIENT,
    USDC_MINT,
    RecordingHandler,
    ScriptedVerifier,
)
from tollgate.invocation.engine import ToolInvoker
from tollgate.invocation.outcome import CallRequest
from tollgate.payments.proof import PaymentProof
from tollgate.tools.base import FREE, Asset, Price, ToolDescriptor
from tollgate.tools.registry import ToolRegistry


@pytest.fixture
def make_price() -> Any:
    """Factory fixture for Price with sensible defaults."""

    def _make(**overrides: Any) -> Price:
        defaults: dict[str, Any] = {
            "amount": 15_000_000,
            "asset": Asset(address=USDC_MINT),
            "currency": "USDC",
            "recipient": RECIPIENT,
            "network": "solana-devnet",
            "description": "Order a pizza",
        }
        defaults.update(overrides)
        return Price(**defaults)

    return _make


@pytest.fixture
def make_proof() -> Any:
    """Factory fixture for PaymentProof."""

    def _make(**overrides: Any) -> PaymentProof:
        defaults: dict[str, Any] = {
            "signature": "sig-1",
            "amount": 15_000_000,
            "payer": "W",
        }
        defaults.update(overrides)
        return PaymentProof(**defaults)

    return _make


@pytest.fixture
def free_handler() -> RecordingHandler:
    return RecordingHandler(text="Rendered a pizza carousel!")


@pytest.fixture
def paid_handler() -> RecordingHandler:
    return RecordingHandler(text="Pizza order placed")


@pytest.fixture
def registry(
    make_price: Any, free_handler: RecordingHandler, paid_handler: RecordingHandler
) -> ToolRegistry:
    """Registry with one free and one priced tool."""
    reg = ToolRegistry()
    reg.register(ToolDescriptor(name="pizza-carousel", handler=free_handler, price=FREE))
    reg.register(
        ToolDescriptor(
            name="place-pizza-order",
            handler=paid_handler,
            price=make_price(),
            description="Order a pizza",
        )
    )
    return reg


@pytest.fixture
def verifier() -> ScriptedVerifier:
    return ScriptedVerifier()


@pytest.fixture
def invoker(registry: ToolRegistry, verifier: ScriptedVerifier) -> ToolInvoker:
    return ToolInvoker(registry, verifier, verify_timeout=1.0)


@pytest.fixture
def order_request(make_proof: Any) -> Any:
    """Factory for place-pizza-order call requests."""

    def _make(call_id: str | int, proof: PaymentProof | None = None) -> CallRequest:
        return CallRequest(
            id=call_id,
            tool_name="place-pizza-order",
            arguments={"placeId": "place-123"},
            payment_proof=proof,
        )

    return _make
