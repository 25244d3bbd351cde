"""Configuration loading and validation."""

from tollgate.config.loader import load_config
from tollgate.config.schema import (
    APIConfig,
    LoggingConfig,
    PaymentsConfig,
    ReplayConfig,
    TollgateConfig,
)

__all__ = [
    "APIConfig",
    "LoggingConfig",
    "PaymentsConfig",
    "ReplayConfig",
    "TollgateConfig",
    "load_config",
]
