"""Liveness and component status."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from tollgate import __version__

if TYPE_CHECKING:
    from tollgate.config.schema import TollgateConfig
    from tollgate.invocation.engine import ToolInvoker

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()


def _components(invoker: ToolInvoker | None, config: TollgateConfig) -> dict[str, Any]:
    return {
        "tools": 0 if invoker is None else len(invoker.registry),
        "verifier": config.payments.verifier,
        "replay": config.replay.backend,
    }


@router.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/health/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    """Report ``degraded`` until the runtime has built an invoker."""
    invoker = getattr(request.app.state, "invoker", None)
    return {
        "status": "degraded" if invoker is None else "ok",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _STARTED, 1),
        "components": _components(invoker, request.app.state.config),
    }
