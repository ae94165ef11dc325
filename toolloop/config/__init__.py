"""Configuration: defaults, pydantic models and the TOML loader."""

from toolloop.config.defaults import CONFIG
from toolloop.config.loader import find_config_file, load_config, load_config_from_file
from toolloop.config.models import (
    AgentSettings,
    CompressionConfig,
    LoopConfig,
    ModelEndpoint,
    RetryConfig,
    RuntimeConfig,
)

__all__ = [
    "CONFIG",
    "AgentSettings",
    "CompressionConfig",
    "LoopConfig",
    "ModelEndpoint",
    "RetryConfig",
    "RuntimeConfig",
    "find_config_file",
    "load_config",
    "load_config_from_file",
]
