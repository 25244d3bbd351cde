"""POST /rpc -- JSON-RPC tool calls."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from tollgate.rpc.dispatch import dispatch

router = APIRouter(tags=["rpc"])


@router.post("/rpc")
async def rpc(request: Request) -> dict[str, Any]:
    """Invoke a tool.

    Every decoded envelope, error envelopes included, is returned with
    HTTP 200; the outcome lives in the JSON-RPC body.
    """
    body = await request.body()
    return await dispatch(body, request.app.state.invoker)
