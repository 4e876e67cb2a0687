"""Tool interface consumed by agent sessions.

This module provides:
- ToolContext: what a tool knows about its caller
- ToolResult: normalized tool output
- Tool: base class for callable tools
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from kestrel_swarm.agents.session import AgentSession
    from kestrel_swarm.delegation.graph import DelegationGraph


@dataclass
class ToolContext:
    """Execution context passed to every tool call."""

    agent_name: str
    session: Optional["AgentSession"] = None
    graph: Optional["DelegationGraph"] = None
    tool_call_id: Optional[str] = None


@dataclass
class ToolResult:
    """Output of a successful tool call."""

    output: str
    title: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class Tool(ABC):
    """Base class for tools.

    Subclasses set `id` and `description` and implement `execute`. Tools
    signal failure by raising; the ToolSet turns exceptions into Err results
    that are reported back to the model.

    Attributes:
        id: Name the model uses to call the tool.
        description: Shown to the model.
        removable: False keeps the tool active while a skill restricts tools.
    """

    id: str = ""
    description: str = ""
    removable: bool = True

    @property
    def name(self) -> str:
        return self.id

    def parameters(self) -> Dict[str, Any]:
        """JSON schema for the tool's arguments."""
        return {"type": "object", "properties": {}}

    def schema(self) -> Dict[str, Any]:
        """Function-calling schema sent to the transport."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters(),
        }

    @abstractmethod
    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        """Run the tool.

        Args:
            args: Arguments parsed from the model's tool call.
            ctx: Caller context.

        Returns:
            ToolResult with the text fed back to the model.
        """


__all__ = ["Tool", "ToolContext", "ToolResult"]
