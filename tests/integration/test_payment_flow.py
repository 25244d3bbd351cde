"""End-to-end payment flows through the HTTP transport with the demo tools."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.fixtures.tools import RECIPIENT, USDC_MINT
from tollgate.api.app import create_app
from tollgate.config.schema import TollgateConfig
from tollgate.invocation.engine import ToolInvoker
from tollgate.payments.verifier import InMemoryLedger, LedgerBackedVerifier, Transfer
from tollgate.runtime import build_registry

PROOF = {"signature": "sig-1", "amount": 15000000, "payer": "W"}


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def client(ledger: InMemoryLedger) -> TestClient:
    config = TollgateConfig.model_validate({"payments": {"recipient": RECIPIENT}})
    invoker = ToolInvoker(build_registry(config), LedgerBackedVerifier(ledger))
    return TestClient(create_app(config, invoker=invoker))


def _settle(ledger: InMemoryLedger, signature: str, amount: int) -> None:
    ledger.record(
        signature,
        Transfer(
            amount=amount,
            asset_address=USDC_MINT,
            recipient=RECIPIENT,
            network="solana-devnet",
            payer="W",
        ),
    )


def _order(call_id: int, proof: dict | None = None) -> dict:
    envelope: dict = {
        "id": call_id,
        "toolName": "place-pizza-order",
        "arguments": {"placeId": "place-123"},
    }
    if proof is not None:
        envelope["paymentProof"] = proof
    return envelope


class TestFreeTool:
    def test_free_call_has_no_payment_fields(self, client: TestClient) -> None:
        body = client.post(
            "/rpc",
            json={
                "id": 1,
                "toolName": "pizza-carousel",
                "arguments": {"topping": "pepperoni"},
            },
        ).json()
        assert body["id"] == 1
        assert body["result"]["content"][0]["text"] == "Rendered a pizza carousel!"
        assert "error" not in body
        assert "payment" not in str(body).lower()


class TestPaidTool:
    def test_unpaid_call_asks_for_payment(self, client: TestClient) -> None:
        body = client.post("/rpc", json=_order(2)).json()
        assert body["error"]["code"] == -32001
        requirement = body["error"]["data"]["paymentRequirement"]
        assert requirement == {
            "amount": 15_000_000,
            "asset": {"address": USDC_MINT},
            "currency": "USDC",
            "recipient": RECIPIENT,
            "description": "Order a pizza",
            "network": "solana-devnet",
        }

    def test_pay_then_replay(self, client: TestClient, ledger: InMemoryLedger) -> None:
        _settle(ledger, "sig-1", 15_000_000)

        paid = client.post("/rpc", json=_order(3, PROOF)).json()
        assert "Pizza order placed successfully!" in paid["result"]["content"][0]["text"]

        replay = client.post("/rpc", json=_order(4, PROOF)).json()
        assert replay["error"]["code"] == -32003
        assert replay["error"]["data"] == {
            "kind": "proof_already_used",
            "retryable": False,
        }

    def test_identical_resend_returns_same_result(
        self, client: TestClient, ledger: InMemoryLedger
    ) -> None:
        _settle(ledger, "sig-1", 15_000_000)
        first = client.post("/rpc", json=_order(3, PROOF)).json()
        second = client.post("/rpc", json=_order(3, PROOF)).json()
        assert first == second

    def test_underpayment_then_fresh_payment(
        self, client: TestClient, ledger: InMemoryLedger
    ) -> None:
        _settle(ledger, "sig-low", 5_000_000)
        low = {"signature": "sig-low", "amount": 5_000_000, "payer": "W"}
        rejected = client.post("/rpc", json=_order(5, low)).json()
        assert rejected["error"]["code"] == -32002

        _settle(ledger, "sig-full", 15_000_000)
        full = {"signature": "sig-full", "amount": 15_000_000, "payer": "W"}
        accepted = client.post("/rpc", json=_order(6, full)).json()
        assert "result" in accepted

    def test_rejected_proof_can_be_resubmitted(
        self, client: TestClient, ledger: InMemoryLedger
    ) -> None:
        # Not yet settled on the ledger
        early = client.post("/rpc", json=_order(7, PROOF)).json()
        assert early["error"]["code"] == -32002

        _settle(ledger, "sig-1", 15_000_000)
        later = client.post("/rpc", json=_order(8, PROOF)).json()
        assert "result" in later

    def test_jsonrpc_shape(self, client: TestClient, ledger: InMemoryLedger) -> None:
        _settle(ledger, "sig-1", 15_000_000)
        body = client.post(
            "/rpc",
            json={
                "jsonrpc": "2.0",
                "id": "abc",
                "method": "tools/call",
                "params": {
                    "name": "place-pizza-order",
                    "arguments": {"placeId": "place-123", "_payment": PROOF},
                },
            },
        ).json()
        assert body["id"] == "abc"
        assert body["result"]["content"][1]["data"]["placeId"] == "place-123"
