"""Per-agent tool set with skill-aware active subsets.

The active subset is never stored. It is computed on demand from a ToolMode:
- Unrestricted(): every registered tool is active
- Restricted(tools): non-removable tools plus the named tools
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from kestrel_swarm.core.errors import (
    ConfigurationError,
    NonRetryableTransportError,
    SwarmTimeoutError,
)
from kestrel_swarm.core.result import Err, Ok, Result
from kestrel_swarm.tools.framework import Tool, ToolContext, ToolResult

logger = logging.getLogger(__name__)

# Raised through tool execution instead of being reported to the model
PROPAGATED_ERRORS = (
    ConfigurationError,
    SwarmTimeoutError,
    NonRetryableTransportError,
)


@dataclass(frozen=True)
class Unrestricted:
    """All registered tools are active."""


@dataclass(frozen=True)
class Restricted:
    """Only non-removable tools plus `tools` are active."""

    tools: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tools", frozenset(self.tools))


ToolMode = Union[Unrestricted, Restricted]
UNRESTRICTED = Unrestricted()


@dataclass(frozen=True)
class ToolEntry:
    """Registered tool plus registration metadata."""

    tool: Tool
    source: str = "builtin"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def removable(self) -> bool:
        return self.tool.removable

    @property
    def base_tool(self) -> Tool:
        """Innermost tool when the entry is a wrapper."""
        tool = self.tool
        while hasattr(tool, "inner"):
            tool = tool.inner
        return tool


class ToolSet:
    """Tools available to one agent session."""

    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self._lock = threading.Lock()
        self._entries: Dict[str, ToolEntry] = {}
        for tool in tools or []:
            self.register(tool)

    def register(
        self, tool: Tool, source: str = "builtin", metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Register a tool under its name.

        Raises:
            ValueError: If a tool with the same name is registered.
        """
        if not tool.name:
            raise ValueError(f"Tool {tool!r} has no name")
        with self._lock:
            if tool.name in self._entries:
                raise ValueError(f"Tool '{tool.name}' is already registered")
            entries = dict(self._entries)
            entries[tool.name] = ToolEntry(tool=tool, source=source, metadata=dict(metadata or {}))
            self._entries = entries

    def unregister(self, name: str) -> Optional[ToolEntry]:
        with self._lock:
            if name not in self._entries:
                return None
            entries = dict(self._entries)
            removed = entries.pop(name)
            self._entries = entries
        return removed

    def get(self, name: str) -> Optional[Tool]:
        entry = self._entries.get(name)
        return entry.tool if entry else None

    def entry(self, name: str) -> Optional[ToolEntry]:
        return self._entries.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._entries

    def tool_names(self) -> List[str]:
        return list(self._entries)

    def non_removable_tool_names(self) -> List[str]:
        return [name for name, entry in self._entries.items() if not entry.removable]

    def active_tools(self, mode: ToolMode = UNRESTRICTED) -> List[Tool]:
        """Tools active under mode, in registration order."""
        entries = self._entries
        if isinstance(mode, Restricted):
            return [
                entry.tool
                for name, entry in entries.items()
                if not entry.removable or name in mode.tools
            ]
        return [entry.tool for entry in entries.values()]

    def schemas(self, mode: ToolMode = UNRESTRICTED) -> List[Dict[str, Any]]:
        return [tool.schema() for tool in self.active_tools(mode)]

    async def execute(
        self,
        name: str,
        args: Dict[str, Any],
        ctx: ToolContext,
        mode: ToolMode = UNRESTRICTED,
    ) -> Result[ToolResult]:
        """Execute an active tool.

        Returns:
            Ok(ToolResult) on success; Err with code TOOL_NOT_AVAILABLE when
            the tool is unknown or inactive, TOOL_ERROR when it raised.
        """
        tool = next((t for t in self.active_tools(mode) if t.name == name), None)
        if tool is None:
            available = ", ".join(t.name for t in self.active_tools(mode)) or "none"
            return Err(
                f"Tool '{name}' is not available. Available tools: {available}",
                code="TOOL_NOT_AVAILABLE",
            )

        try:
            return Ok(await tool.execute(args, ctx))
        except PROPAGATED_ERRORS:
            raise
        except Exception as e:
            logger.warning(f"Tool {name} failed for {ctx.agent_name}: {e}")
            return Err(str(e), code="TOOL_ERROR", exception=e)


__all__ = [
    "ToolSet",
    "ToolEntry",
    "ToolMode",
    "Unrestricted",
    "Restricted",
    "UNRESTRICTED",
    "PROPAGATED_ERRORS",
]
