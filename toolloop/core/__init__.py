"""Core runtime: compressor, tool-call loop and the research agent.

Import submodules directly::

    from toolloop.core.loop import ToolCallLoop
    from toolloop.core.agent import DeepResearchAgent
"""
