"""Pydantic models for tollgate configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class PaymentsConfig(BaseModel):
    """Price defaults and ledger verifier settings."""

    recipient: str | None = None
    recipient_env: str | None = "TOLLGATE_RECIPIENT"
    asset_address: str = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
    currency: str = "USDC"
    decimals: int = 6
    network: str = "solana-devnet"
    verifier: Literal["static", "ledger", "http"] = "static"
    verifier_url: str | None = None
    verify_timeout: float = Field(default=10.0, gt=0)
    static_status: Literal["verified", "insufficient", "invalid", "unreachable"] = (
        "verified"
    )


class ReplayConfig(BaseModel):
    """Anti-replay store and result cache settings."""

    backend: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite+aiosqlite:///~/.local/share/tollgate/replay.db"
    result_cache_ttl: float = Field(default=600.0, ge=0)
    result_cache_size: int = Field(default=1024, ge=0)


class APIConfig(BaseModel):
    """HTTP transport settings."""

    host: str = "127.0.0.1"
    port: int = 8000


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class TollgateConfig(BaseModel):
    """Top-level configuration for tollgate."""

    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    replay: ReplayConfig = Field(default_factory=ReplayConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
