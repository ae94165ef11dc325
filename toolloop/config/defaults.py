"""
Default configuration for the toolloop runtime.

Values here seed the pydantic models in ``toolloop.config.models``; a TOML
file or CLI overrides replace them per run.
"""

from __future__ import annotations

import os
from typing import Any, Dict

CONFIG: Dict[str, Any] = {
    # ==========================================================================
    # Models (OpenAI-compatible chat/completions endpoints)
    # ==========================================================================
    # Primary conversational model
    "model": os.environ.get("TOOLLOOP_MODEL", "gpt-4o-mini"),
    "base_url": os.environ.get("TOOLLOOP_BASE_URL", "https://api.openai.com/v1"),
    "api_key_env": "OPENAI_API_KEY",
    # Worker model for summarization and yes/no checks
    "worker_model": os.environ.get("TOOLLOOP_WORKER_MODEL", "gpt-4o-mini"),
    "worker_base_url": os.environ.get(
        "TOOLLOOP_WORKER_BASE_URL",
        os.environ.get("TOOLLOOP_BASE_URL", "https://api.openai.com/v1"),
    ),
    "max_tokens": 4096,
    "temperature": 0.0,
    # Seconds per model round-trip
    "timeout": 120,
    # ==========================================================================
    # Tool-call loop
    # ==========================================================================
    "max_iterations": 30,
    # Stop after this many consecutive turns in which every call was malformed
    "max_consecutive_malformed": 3,
    # ==========================================================================
    # Context compression
    # ==========================================================================
    "compression_enabled": True,
    # Tool results above this many estimated tokens are summarized
    "compression_threshold": 2000,
    # ==========================================================================
    # Research agent
    # ==========================================================================
    # Bounded retries for yes/no checks, section decoding and drafts
    "agent_max_attempts": 3,
    "agent_diagrams": False,
    # ==========================================================================
    # Storage
    # ==========================================================================
    # Category selection lives under <data_dir>/Cache/
    "data_dir": os.environ.get("TOOLLOOP_DATA_DIR", "~/.toolloop"),
}
