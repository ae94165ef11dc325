"""Pydantic models for toolloop configuration."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from toolloop.config.defaults import CONFIG


class ModelEndpoint(BaseModel):
    """One OpenAI-compatible model endpoint."""

    model: str = Field(default=CONFIG["model"], description="Model identifier")
    base_url: str = Field(default=CONFIG["base_url"], description="API base URL")
    api_key_env: str = Field(
        default=CONFIG["api_key_env"], description="Environment variable holding the API key"
    )
    max_tokens: int = Field(default=CONFIG["max_tokens"], description="Maximum tokens per response")
    temperature: float = Field(default=CONFIG["temperature"], description="Sampling temperature")
    timeout: float = Field(default=CONFIG["timeout"], description="Seconds per request")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def get_api_key(self) -> str:
        """Read the API key from the environment.

        Local servers often need no key, so a missing one yields an empty
        string rather than an error.
        """
        return os.environ.get(self.api_key_env, "")


def _worker_endpoint() -> ModelEndpoint:
    return ModelEndpoint(model=CONFIG["worker_model"], base_url=CONFIG["worker_base_url"])


class RetryConfig(BaseModel):
    """Configuration for retrying model calls."""

    max_attempts: int = Field(default=3, description="Maximum retry attempts")
    base_delay: float = Field(default=1.0, description="Base delay in seconds")
    max_delay: float = Field(default=30.0, description="Maximum delay in seconds")
    retry_on_status: list[int] = Field(
        default=[429, 500, 502, 503, 504], description="HTTP status codes to retry on"
    )


class CompressionConfig(BaseModel):
    """Configuration for tool result compression."""

    enabled: bool = Field(default=CONFIG["compression_enabled"], description="Summarize large results")
    threshold: int = Field(
        default=CONFIG["compression_threshold"], description="Token threshold per tool result"
    )

    @field_validator("threshold")
    @classmethod
    def positive_threshold(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("threshold must be positive")
        return v


class LoopConfig(BaseModel):
    """Configuration for the tool-call loop."""

    max_iterations: int = Field(default=CONFIG["max_iterations"], description="Maximum round-trips")
    max_consecutive_malformed: int = Field(
        default=CONFIG["max_consecutive_malformed"],
        description="Consecutive all-malformed turns before giving up",
    )


class AgentSettings(BaseModel):
    """Configuration for the research agent."""

    max_attempts: int = Field(
        default=CONFIG["agent_max_attempts"], description="Attempts for bounded retries"
    )
    diagrams: bool = Field(default=CONFIG["agent_diagrams"], description="Generate Mermaid diagrams")


class RuntimeConfig(BaseModel):
    """Main configuration for the toolloop runtime."""

    primary: ModelEndpoint = Field(default_factory=ModelEndpoint)
    worker: ModelEndpoint = Field(default_factory=_worker_endpoint)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    data_dir: str = Field(
        default=CONFIG["data_dir"], description="Application data directory", validate_default=True
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str) -> str:
        return str(Path(v).expanduser())

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)
