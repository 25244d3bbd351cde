"""FastAPI application factory for the tollgate HTTP transport."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tollgate.config.schema import TollgateConfig
    from tollgate.invocation.engine import ToolInvoker


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the invoker on startup unless one was injected."""
    from tollgate.runtime import build_runtime

    if getattr(app.state, "invoker", None) is not None:
        yield
        return

    config: TollgateConfig = app.state.config
    runtime = await build_runtime(config)
    app.state.invoker = runtime.invoker

    yield

    await runtime.aclose()


def create_app(
    config: TollgateConfig | None = None,
    invoker: ToolInvoker | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    from tollgate import __version__
    from tollgate.config.loader import load_config

    if config is None:
        config = load_config()

    app = FastAPI(
        title="tollgate",
        description="Payment-gated tool invocation over JSON-RPC",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.invoker = invoker

    from tollgate.api.health import router as health_router
    from tollgate.api.routes.rpc import router as rpc_router
    from tollgate.api.routes.tools import router as tools_router

    app.include_router(rpc_router)
    app.include_router(tools_router)
    app.include_router(health_router)

    return app
