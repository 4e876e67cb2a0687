"""Tools: the per-agent ToolSet and the built-in scratchpad tools."""

from kestrel_swarm.tools.framework import Tool, ToolContext, ToolResult
from kestrel_swarm.tools.registry import (
    UNRESTRICTED,
    Restricted,
    ToolEntry,
    ToolMode,
    ToolSet,
    Unrestricted,
)
from kestrel_swarm.tools.scratchpad import SCRATCHPAD_TOOL_NAMES, scratchpad_tools
from kestrel_swarm.tools.wrappers import RenamedTool

__all__ = [
    "Tool",
    "ToolContext",
    "ToolResult",
    "ToolSet",
    "ToolEntry",
    "ToolMode",
    "Unrestricted",
    "Restricted",
    "UNRESTRICTED",
    "RenamedTool",
    "scratchpad_tools",
    "SCRATCHPAD_TOOL_NAMES",
]
