"""Tests for the MCP transport."""

from __future__ import annotations

import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from tests.fixtures.tools import RecordingHandler
from tollgate.invocation.engine import ToolInvoker
from tollgate.mcp.server import (
    CALL_ID_META_KEY,
    _get_tools,
    _to_call_result,
    call_tool,
    create_server,
)
from tollgate.tools.base import ContentBlock, ToolResult

PROOF = {"signature": "sig-1", "amount": 15000000, "payer": "W"}


class TestToolListing:
    def test_lists_registry(self, invoker: ToolInvoker) -> None:
        tools = {t.name: t for t in _get_tools(invoker)}
        assert set(tools) == {"pizza-carousel", "place-pizza-order"}

    def test_priced_tools_flagged(self, invoker: ToolInvoker) -> None:
        tools = {t.name: t for t in _get_tools(invoker)}
        assert "requires payment" in (tools["place-pizza-order"].description or "")
        assert "requires payment" not in (tools["pizza-carousel"].description or "")


class TestCallResult:
    def test_structured_content(self) -> None:
        result = _to_call_result(
            ToolResult(
                content=(
                    ContentBlock(type="text", text="hi"),
                    ContentBlock(type="structured", data={"a": 1}),
                ),
                metadata={"m": True},
            )
        )
        assert result.isError is False
        assert result.structuredContent == {"a": 1}
        assert result.content[0].text == "hi"


class TestCallTool:
    async def test_free(self, invoker: ToolInvoker) -> None:
        result = await call_tool(invoker, "pizza-carousel", {"topping": "x"}, 1)
        assert isinstance(result, types.CallToolResult)

    async def test_payment_required_code(self, invoker: ToolInvoker) -> None:
        with pytest.raises(McpError) as excinfo:
            await call_tool(invoker, "place-pizza-order", {"placeId": "p"}, 2)
        error = excinfo.value.error
        assert error.code == -32001
        assert error.data["paymentRequirement"]["amount"] == 15_000_000

    async def test_paid(
        self, invoker: ToolInvoker, paid_handler: RecordingHandler
    ) -> None:
        await call_tool(
            invoker, "place-pizza-order", {"placeId": "p", "_payment": PROOF}, 3
        )
        assert paid_handler.calls == [{"placeId": "p"}]

    async def test_replay(self, invoker: ToolInvoker) -> None:
        args = {"placeId": "p", "_payment": PROOF}
        await call_tool(invoker, "place-pizza-order", args, 3)
        with pytest.raises(McpError) as excinfo:
            await call_tool(invoker, "place-pizza-order", args, 4)
        assert excinfo.value.error.code == -32003

    async def test_malformed_proof(self, invoker: ToolInvoker) -> None:
        with pytest.raises(McpError) as excinfo:
            await call_tool(
                invoker, "place-pizza-order", {"_payment": {"amount": 1}}, 5
            )
        assert excinfo.value.error.code == -32600


class TestServer:
    def test_handlers_registered(self, invoker: ToolInvoker) -> None:
        server = create_server(invoker)
        assert types.CallToolRequest in server.request_handlers
        assert types.ListToolsRequest in server.request_handlers

    async def test_call_handler_outside_request(self, invoker: ToolInvoker) -> None:
        server = create_server(invoker)
        handler = server.request_handlers[types.CallToolRequest]
        request = types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(
                name="pizza-carousel", arguments={"topping": "x"}
            ),
        )
        result = await handler(request)
        assert isinstance(result.root, types.CallToolResult)

    async def test_stable_call_id_serves_resend_from_cache(
        self, invoker: ToolInvoker, paid_handler: RecordingHandler
    ) -> None:
        handler = create_server(invoker).request_handlers[types.CallToolRequest]
        request = types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams.model_validate(
                {
                    "name": "place-pizza-order",
                    "arguments": {"placeId": "p", "_payment": PROOF},
                    "_meta": {CALL_ID_META_KEY: "order-7"},
                }
            ),
        )
        first = await handler(request)
        second = await handler(request)
        assert second.root == first.root
        assert paid_handler.calls == [{"placeId": "p"}]

    async def test_resend_without_stable_id_is_replay(
        self, invoker: ToolInvoker
    ) -> None:
        handler = create_server(invoker).request_handlers[types.CallToolRequest]
        request = types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(
                name="place-pizza-order",
                arguments={"placeId": "p", "_payment": PROOF},
            ),
        )
        await handler(request)
        with pytest.raises(McpError) as excinfo:
            await handler(request)
        assert excinfo.value.error.code == -32003
