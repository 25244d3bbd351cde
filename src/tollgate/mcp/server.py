"""MCP server exposing registered tools with payment gating.

``tools/call`` results map onto MCP as follows: ``Success`` becomes a
``CallToolResult``; ``PaymentRequired`` and every ``Failure`` are raised
as ``McpError`` so the client sees the same JSON-RPC error codes as the
HTTP transport (``-32001`` for payment required).

The invoker binds a payment proof to a call id. MCP request ids change
on every resend, so a client that wants an identical resend to get the
cached result (rather than ``-32003``) puts a stable id under
``params._meta["tollgate/callId"]``. Without it the transport request id
is used.
"""

from __future__ import annotations

import json
import uuid
from typing import TYPE_CHECKING, Any, NoReturn

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from tollgate.core.errors import ProtocolError
from tollgate.invocation.outcome import Success
from tollgate.rpc.codec import (
    TOOLS_CALL_METHOD,
    decode_request,
    encode_outcome,
    encode_protocol_error,
)

if TYPE_CHECKING:
    from tollgate.invocation.engine import ToolInvoker
    from tollgate.tools.base import ToolResult

CALL_ID_META_KEY = "tollgate/callId"


def _get_tools(invoker: ToolInvoker) -> list[types.Tool]:
    """MCP tool listing built from the registry."""
    tools = []
    for tool in invoker.registry:
        description = tool.description
        if tool.priced:
            description = f"{description} (requires payment)".strip()
        tools.append(
            types.Tool(
                name=tool.name,
                description=description,
                inputSchema=tool.parameters_schema,
            )
        )
    return tools


def _to_call_result(result: ToolResult) -> types.CallToolResult:
    content: list[dict[str, Any]] = []
    structured: dict[str, Any] = {}
    for block in result.content:
        if block.type == "text":
            content.append({"type": "text", "text": block.text or ""})
        else:
            structured.update(block.data or {})
            content.append({"type": "text", "text": json.dumps(block.data or {})})
    payload: dict[str, Any] = {"content": content, "isError": False}
    if structured:
        payload["structuredContent"] = structured
    if result.metadata:
        payload["_meta"] = dict(result.metadata)
    return types.CallToolResult.model_validate(payload)


def _raise_error(envelope: dict[str, Any]) -> NoReturn:
    error = envelope["error"]
    raise McpError(
        types.ErrorData(
            code=error["code"],
            message=error["message"],
            data=error.get("data"),
        )
    )


async def call_tool(
    invoker: ToolInvoker,
    name: str,
    arguments: dict[str, Any] | None,
    call_id: str | int,
) -> types.CallToolResult:
    """Run one MCP tool call through the invoker.

    Raises:
        McpError: For payment-required, failures and malformed arguments.
    """
    envelope = {
        "jsonrpc": "2.0",
        "id": call_id,
        "method": TOOLS_CALL_METHOD,
        "params": {"name": name, "arguments": arguments or {}},
    }
    try:
        request = decode_request(envelope)
    except ProtocolError as exc:
        _raise_error(encode_protocol_error(call_id, exc))

    outcome = await invoker.invoke(request)
    if isinstance(outcome, Success):
        return _to_call_result(outcome.result)
    _raise_error(encode_outcome(call_id, outcome))


def _caller_call_id(params: types.CallToolRequestParams) -> str | int | None:
    meta = params.meta
    if meta is None:
        return None
    value = (meta.model_extra or {}).get(CALL_ID_META_KEY)
    if isinstance(value, bool) or not isinstance(value, str | int):
        return None
    return value


def create_server(invoker: ToolInvoker) -> Server:
    """Build an MCP server bound to ``invoker``."""
    server: Server = Server("tollgate")

    @server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
    async def list_tools() -> list[types.Tool]:
        """List available MCP tools."""
        return _get_tools(invoker)

    # Registered directly so McpError reaches the JSON-RPC layer with its code.
    async def handle_call_tool(req: types.CallToolRequest) -> types.ServerResult:
        call_id = _caller_call_id(req.params)
        if call_id is None:
            try:
                call_id = server.request_context.request_id
            except LookupError:
                call_id = uuid.uuid4().hex
        result = await call_tool(invoker, req.params.name, req.params.arguments, call_id)
        return types.ServerResult(result)

    server.request_handlers[types.CallToolRequest] = handle_call_tool
    return server


async def run_server(invoker: ToolInvoker) -> None:
    """Start the MCP server on stdio."""
    server = create_server(invoker)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
