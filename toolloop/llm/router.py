"""Model routing by role.

The runtime talks to two models: the primary conversational model and a
cheaper worker used for auxiliary round-trips (summaries, yes/no checks).
``ModelRouter`` maps each ``ModelKind`` to its endpoint settings.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from toolloop.config.models import ModelEndpoint, RuntimeConfig


class ModelKind(str, Enum):
    """Which model serves a round-trip."""

    REGULAR = "regular"
    WORKER = "worker"


class Mode(str, Enum):
    """What the round-trip is for; agent modes may receive tool schemas."""

    CHAT = "chat"
    AGENT = "agent"
    DEEP_RESEARCH = "deep_research"


class ModelRouter:
    """Selects the endpoint for a model kind.

    Usage::

        router = ModelRouter(config)
        endpoint = router.select(ModelKind.WORKER)
    """

    def __init__(self, config: Optional[RuntimeConfig] = None):
        self.config = config or RuntimeConfig()

    def select(self, kind: ModelKind) -> ModelEndpoint:
        if kind is ModelKind.WORKER:
            return self.config.worker
        return self.config.primary
