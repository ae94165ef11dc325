"""
toolloop - tool dispatch and agent orchestration for language models.

Heavy modules (core.loop, core.agent, llm.client) are not re-exported here
to keep imports cheap. Import them directly::

    from toolloop.tools.registry import CapabilityRegistry
    from toolloop.core.loop import ToolCallLoop
"""

__version__ = "0.1.0"

from toolloop.config.defaults import CONFIG
from toolloop.output.jsonl import emit

__all__ = [
    "CONFIG",
    "emit",
    "__version__",
]
