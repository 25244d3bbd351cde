"""Wire configuration into a ready-to-serve invoker."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tollgate.core.errors import ConfigError
from tollgate.invocation.engine import ToolInvoker
from tollgate.payments.replay import InMemoryReplayStore, ResultCache
from tollgate.payments.verifier import (
    HttpLedgerVerifier,
    LedgerBackedVerifier,
    StaticVerifier,
    VerificationStatus,
)
from tollgate.tools.pizza import pizza_tools
from tollgate.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from tollgate.config.schema import PaymentsConfig, TollgateConfig
    from tollgate.payments.replay import ReplayStore
    from tollgate.payments.verifier import LedgerVerifier
    from tollgate.tools.base import ToolDescriptor

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """An invoker plus the resources it owns."""

    invoker: ToolInvoker
    verifier: LedgerVerifier
    engine: AsyncEngine | None = None

    async def aclose(self) -> None:
        if isinstance(self.verifier, HttpLedgerVerifier):
            await self.verifier.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def build_verifier(payments: PaymentsConfig) -> LedgerVerifier:
    """Instantiate the configured ledger verifier."""
    if payments.verifier == "http":
        if not payments.verifier_url:
            msg = "payments.verifier_url is required for the http verifier"
            raise ConfigError(msg)
        return HttpLedgerVerifier(payments.verifier_url, timeout=payments.verify_timeout)
    if payments.verifier == "ledger":
        return LedgerBackedVerifier()
    return StaticVerifier(VerificationStatus(payments.static_status))


def build_registry(
    config: TollgateConfig, tools: list[ToolDescriptor] | None = None
) -> ToolRegistry:
    """Registry with ``tools`` (default: the demo pizza tools), frozen."""
    if tools is None:
        if not config.payments.recipient:
            msg = "payments.recipient (or $TOLLGATE_RECIPIENT) must be set"
            raise ConfigError(msg)
        tools = pizza_tools(config.payments)
    registry = ToolRegistry(tools)
    registry.freeze()
    return registry


async def build_runtime(
    config: TollgateConfig,
    registry: ToolRegistry | None = None,
    verifier: LedgerVerifier | None = None,
) -> Runtime:
    """Build the invoker and its collaborators from config."""
    if registry is None:
        registry = build_registry(config)
    if verifier is None:
        verifier = build_verifier(config.payments)

    engine: AsyncEngine | None = None
    store: ReplayStore
    if config.replay.backend == "sql":
        from tollgate.payments.store import SqlReplayStore, create_replay_engine

        factory, engine = await create_replay_engine(config.replay.database_url)
        store = SqlReplayStore(factory)
    else:
        store = InMemoryReplayStore()

    invoker = ToolInvoker(
        registry,
        verifier,
        replay_store=store,
        result_cache=ResultCache(
            ttl=config.replay.result_cache_ttl,
            max_size=config.replay.result_cache_size,
        ),
        verify_timeout=config.payments.verify_timeout,
    )
    logger.info(
        "Runtime ready: %d tools, verifier=%s, replay=%s",
        len(registry),
        config.payments.verifier,
        config.replay.backend,
    )
    return Runtime(invoker=invoker, verifier=verifier, engine=engine)
