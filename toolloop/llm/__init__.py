"""Model facade, HTTP client and routing."""

from toolloop.llm.client import (
    ContextWindowExceeded,
    FunctionCall,
    LLMError,
    ModelClient,
    ModelFacade,
    ModelResponse,
)
from toolloop.llm.router import Mode, ModelKind, ModelRouter

__all__ = [
    "ContextWindowExceeded",
    "FunctionCall",
    "LLMError",
    "Mode",
    "ModelClient",
    "ModelFacade",
    "ModelKind",
    "ModelResponse",
    "ModelRouter",
]
