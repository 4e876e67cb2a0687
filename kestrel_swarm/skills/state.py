"""Active skill state for an agent session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

from kestrel_swarm.tools.registry import Restricted, ToolMode, UNRESTRICTED


@dataclass(frozen=True)
class SkillState:
    """A loaded skill that may narrow the agent's active tools.

    Attributes:
        file_path: Where the skill was loaded from; also its identity.
        tools: Tool names the skill allows. None or empty means no restriction.
        permissions: Per-tool permission overrides.
    """

    file_path: str
    tools: Optional[Tuple[str, ...]] = None
    permissions: Dict[str, Dict[str, Any]] = field(default_factory=dict, hash=False)

    def __init__(
        self,
        file_path: str,
        tools: Optional[Iterable[str]] = None,
        permissions: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        object.__setattr__(self, "file_path", str(file_path))
        object.__setattr__(self, "tools", tuple(tools) if tools is not None else None)
        object.__setattr__(self, "permissions", dict(permissions or {}))

    def restricts_tools(self) -> bool:
        return bool(self.tools)

    def allows_tool(self, name: str) -> bool:
        return not self.restricts_tools() or name in (self.tools or ())

    def permissions_for(self, tool_name: str) -> Optional[Dict[str, Any]]:
        return self.permissions.get(tool_name)

    def tool_mode(self) -> ToolMode:
        if self.restricts_tools():
            return Restricted(self.tools or ())
        return UNRESTRICTED


__all__ = ["SkillState"]
