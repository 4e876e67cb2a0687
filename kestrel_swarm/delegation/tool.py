"""DelegateTool: lets an agent hand a task to another agent or sub-graph."""

from __future__ import annotations

from typing import Any, Dict, Optional

from kestrel_swarm.core.errors import SwarmError
from kestrel_swarm.tools.framework import Tool, ToolContext, ToolResult


class DelegateTool(Tool):
    """Forward a task to a delegation target through the caller's graph.

    Delegation tools stay active while a skill restricts the agent's tools.
    """

    removable = False

    def __init__(self, target: str, tool_name: str, description: Optional[str] = None):
        """Initialize the DelegateTool.

        Args:
            target: Agent or sub-graph name the task goes to.
            tool_name: Name the model calls the tool by.
            description: What the target does, shown to the model.
        """
        self.target = target
        self.id = tool_name
        summary = f": {description}" if description else ""
        self.description = f"Delegate a task to {target}{summary}"

    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "task": {
                    "type": "string",
                    "description": f"Task for {self.target}, with all context it needs",
                },
            },
            "required": ["task"],
        }

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        if ctx.graph is None:
            raise SwarmError(f"{self.id} can only run inside a delegation graph")

        caller = ctx.session.definition.name if ctx.session is not None else ctx.agent_name
        result = await ctx.graph.invoke(self.target, caller, args.get("task", ""))
        if result.error is not None:
            raise SwarmError(f"Delegation to '{self.target}' failed: {result.error}")
        return ToolResult(
            output=result.content or "",
            title=f"{self.target} responded",
            metadata={"agent": result.agent, "duration": result.duration},
        )


__all__ = ["DelegateTool"]
