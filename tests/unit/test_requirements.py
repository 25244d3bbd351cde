"""Tests for the payment requirement issuer."""

from __future__ import annotations

from typing import Any

import pytest

from tests.fixtures.tools import RECIPIENT, USDC_MINT
from tollgate.core.errors import NotPricedError
from tollgate.payments.requirements import issue
from tollgate.tools.base import FREE, ToolDescriptor


def _tool(price: Any, description: str = "Order a pizza") -> ToolDescriptor:
    return ToolDescriptor.from_function(
        "place-pizza-order", lambda args: "ok", price=price, description=description
    )


class TestIssue:
    def test_restates_price(self, make_price):
        req = issue(_tool(make_price()))
        assert req.amount == 15_000_000
        assert req.asset.address == USDC_MINT
        assert req.currency == "USDC"
        assert req.recipient == RECIPIENT
        assert req.network == "solana-devnet"
        assert req.description == "Order a pizza"

    def test_deterministic(self, make_price):
        tool = _tool(make_price())
        assert issue(tool) == issue(tool)

    def test_description_falls_back_to_tool(self, make_price):
        req = issue(_tool(make_price(description=""), description="Tool text"))
        assert req.description == "Tool text"

    def test_free_tool_not_priced(self):
        with pytest.raises(NotPricedError):
            issue(_tool(FREE))

    def test_zero_price_not_priced(self, make_price):
        with pytest.raises(NotPricedError):
            issue(_tool(make_price(amount=0)))


class TestWireForm:
    def test_to_dict(self, make_price):
        assert issue(_tool(make_price())).to_dict() == {
            "amount": 15_000_000,
            "asset": {"address": USDC_MINT},
            "currency": "USDC",
            "recipient": RECIPIENT,
            "description": "Order a pizza",
            "network": "solana-devnet",
        }
